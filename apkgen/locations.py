"""Deterministic layout of every intermediate and output file of a build."""
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict
import os

from .app import ApplicationDescriptor
from .environment import EnvironmentDescriptor
from .errors import ConfigValidationError


@dataclass(frozen=True, slots=True)
class Locations:
    out_dir: Path
    build_dir: Path
    project_dir: Path
    manifest: Path
    res_dir: Path
    assets_dir: Path
    extensions_dir: Path
    src_dir: Path
    java_src_dir: Path
    gen_dir: Path
    libs_dir: Path
    classes_dir: Path
    dex_file: Path
    unsigned_apk: Path
    signed_apk: Path
    final_apk: Path

    def to_mapping(self) -> Dict[str, str]:
        return {item.name: str(getattr(self, item.name)) for item in fields(self)}


def build_label(app: ApplicationDescriptor, env: EnvironmentDescriptor) -> str:
    return f"{app.name}-{env.arch}" if env.arch else app.name


def resolve_locations(
    app: ApplicationDescriptor,
    env: EnvironmentDescriptor,
    out_dir: str | os.PathLike[str],
    *,
    cwd: Path | None = None,
) -> Locations:
    """Derive the build layout; performs no filesystem access."""

    base = Path(out_dir)
    if not base.is_absolute():
        base = Path(cwd or os.getcwd()) / base
    base = Path(os.path.normpath(base))

    label = build_label(app, env)
    build_dir = base / label
    project_dir = build_dir / "project"
    src_dir = project_dir / "src"

    return Locations(
        out_dir=base,
        build_dir=build_dir,
        project_dir=project_dir,
        manifest=project_dir / "AndroidManifest.xml",
        res_dir=project_dir / "res",
        assets_dir=project_dir / "assets" / "www",
        extensions_dir=project_dir / "assets" / "xwalk-extensions",
        src_dir=src_dir,
        java_src_dir=src_dir / app.package_path,
        gen_dir=project_dir / "gen",
        libs_dir=project_dir / "libs",
        classes_dir=build_dir / "classes",
        dex_file=build_dir / "classes.dex",
        unsigned_apk=build_dir / f"{label}-unsigned.apk",
        signed_apk=build_dir / f"{label}-signed.apk",
        final_apk=base / f"{label}.apk",
    )


def _overlaps(path: Path, directory: Path) -> bool:
    return path == directory or path.is_relative_to(directory)


def check_locations(app: ApplicationDescriptor, locations: Locations) -> None:
    """Reject layouts where cleaning the build directory would remove inputs.

    ``out_dir`` may live inside ``appRoot``; the assets stage skips it when
    copying the application.
    """

    build_dir = locations.build_dir.resolve()
    inputs = [("appRoot", app.app_root)]
    inputs.extend(("javaSrcDirs", path) for path in app.java_src_dirs)
    inputs.extend(("extensions", ext.jsapi) for ext in app.extensions)
    for option, path in inputs:
        if path is None:
            continue
        resolved = path.resolve()
        clashes = _overlaps(resolved, build_dir)
        if option != "appRoot":
            clashes = clashes or _overlaps(build_dir, resolved)
        if clashes:
            raise ConfigValidationError(
                f"'{resolved}' overlaps the build directory '{build_dir}'; choose another outDir",
                option=option,
            )


__all__ = ["Locations", "build_label", "check_locations", "resolve_locations"]
