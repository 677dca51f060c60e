"""Validated description of the HTML5 application being packaged."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence
from urllib.parse import urlparse
import re

from core.config_loader import normalize_string_list, unique_paths

from .errors import ConfigValidationError
from .options import APP_DEFAULTS, OPTIONS, coerce_option


_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_PACKAGE_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)+$")
_EXTENSION_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")

ORIENTATIONS = frozenset(
    {
        "unspecified",
        "landscape",
        "portrait",
        "sensor",
        "sensorLandscape",
        "sensorPortrait",
        "reverseLandscape",
        "reversePortrait",
        "fullSensor",
        "behind",
        "user",
        "nosensor",
    }
)

LOCAL_ASSET_PREFIX = "file:///android_asset/www/"
_SPECS = {spec.name: spec for spec in OPTIONS}


@dataclass(frozen=True, slots=True)
class Extension:
    name: str
    jsapi: Path


@dataclass(frozen=True, slots=True)
class ApplicationDescriptor:
    name: str
    pkg: str
    version: str
    app_root: Path | None
    app_local_path: str | None
    app_url: str | None
    icon: Path | None
    orientation: str
    fullscreen: bool
    remote_debugging: bool
    java_src_dirs: tuple[Path, ...]
    jars: tuple[Path, ...]
    extensions: tuple[Extension, ...]

    @property
    def entry_url(self) -> str:
        if self.app_url:
            return self.app_url
        return LOCAL_ASSET_PREFIX + Path(str(self.app_local_path)).as_posix()

    @property
    def activity_name(self) -> str:
        return f"{self.name}Activity"

    @property
    def package_path(self) -> str:
        return self.pkg.replace(".", "/")

    def to_mapping(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "pkg": self.pkg,
            "version": self.version,
            "orientation": self.orientation,
            "fullscreen": self.fullscreen,
            "remoteDebugging": self.remote_debugging,
        }
        optional = {
            "appRoot": str(self.app_root) if self.app_root else None,
            "appLocalPath": self.app_local_path,
            "appUrl": self.app_url,
            "icon": str(self.icon) if self.icon else None,
        }
        for key, value in optional.items():
            if value is not None:
                data[key] = value
        if self.java_src_dirs:
            data["javaSrcDirs"] = [str(path) for path in self.java_src_dirs]
        if self.jars:
            data["jars"] = [str(path) for path in self.jars]
        if self.extensions:
            data["extensions"] = [{"name": ext.name, "jsapi": str(ext.jsapi)} for ext in self.extensions]
        return data


def _text(options: Mapping[str, Any], key: str) -> str | None:
    value = options.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(options: Mapping[str, Any], key: str) -> bool:
    value = options.get(key)
    if value is None:
        return bool(APP_DEFAULTS[key])
    return bool(coerce_option(_SPECS[key], value))


def _normalize_extensions(value: Any) -> List[tuple[str, str]]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigValidationError("must be a list of {name, jsapi} records", option="extensions")
    records: List[tuple[str, str]] = []
    for index, entry in enumerate(value):
        if not isinstance(entry, Mapping):
            raise ConfigValidationError(f"entry {index} must be a mapping", option="extensions")
        name = entry.get("name")
        jsapi = entry.get("jsapi")
        if not isinstance(name, str) or not name.strip():
            raise ConfigValidationError(f"entry {index} requires a non-empty name", option="extensions")
        if not _EXTENSION_NAME_PATTERN.match(name.strip()):
            raise ConfigValidationError(f"'{name}' is not a valid extension name", option="extensions")
        if not isinstance(jsapi, (str, Path)) or not str(jsapi).strip():
            raise ConfigValidationError(f"extension '{name}' requires a jsapi path", option="extensions")
        records.append((name.strip(), str(jsapi)))
    names = [name for name, _ in records]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigValidationError(f"duplicate extension names: {', '.join(duplicates)}", option="extensions")
    return records


def check_app_options(options: Mapping[str, Any]) -> None:
    """Validate application options without touching the filesystem."""

    name = _text(options, "name")
    if not name:
        raise ConfigValidationError("application name is required", option="name")
    if not _NAME_PATTERN.match(name):
        raise ConfigValidationError(f"'{name}' is not a valid identifier", option="name")

    pkg = _text(options, "pkg")
    if not pkg:
        raise ConfigValidationError("Java package is required", option="pkg")
    if not _PACKAGE_PATTERN.match(pkg):
        raise ConfigValidationError(
            f"'{pkg}' is not a valid Java package (expected at least two dot-separated identifiers)",
            option="pkg",
        )

    if not _text(options, "version"):
        raise ConfigValidationError("application version is required", option="version")

    local_path = _text(options, "appLocalPath")
    app_url = _text(options, "appUrl")
    if local_path and app_url:
        raise ConfigValidationError("appLocalPath and appUrl are mutually exclusive", option="appUrl")
    if not local_path and not app_url:
        raise ConfigValidationError("one of appLocalPath or appUrl must be set", option="appLocalPath")

    if app_url:
        parsed = urlparse(app_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ConfigValidationError(f"'{app_url}' is not an http(s) URL", option="appUrl")

    if local_path:
        if not _text(options, "appRoot"):
            raise ConfigValidationError("appRoot is required when appLocalPath is set", option="appRoot")
        if Path(local_path).is_absolute():
            raise ConfigValidationError("must be relative to appRoot", option="appLocalPath")

    orientation = _text(options, "orientation") or APP_DEFAULTS["orientation"]
    if orientation not in ORIENTATIONS:
        allowed = ", ".join(sorted(ORIENTATIONS))
        raise ConfigValidationError(f"'{orientation}' is not one of: {allowed}", option="orientation")

    for key in ("javaSrcDirs", "jars"):
        try:
            normalize_string_list(options.get(key), field_name=key)
        except TypeError as exc:
            raise ConfigValidationError(str(exc), option=key) from exc

    _normalize_extensions(options.get("extensions"))


def create_app(options: Mapping[str, Any], *, cwd: Path | None = None) -> ApplicationDescriptor:
    """Validate ``options`` and build an :class:`ApplicationDescriptor`.

    Relative paths other than ``appLocalPath`` are resolved against ``cwd``
    (the process working directory by default).
    """

    check_app_options(options)
    base = cwd or Path.cwd()

    app_root: Path | None = None
    root_text = _text(options, "appRoot")
    if root_text:
        app_root = (base / root_text).resolve()
        if not app_root.is_dir():
            raise ConfigValidationError(f"directory '{app_root}' does not exist", option="appRoot")

    local_path = _text(options, "appLocalPath")
    if local_path and app_root is not None:
        entry = (app_root / local_path).resolve()
        if not entry.is_relative_to(app_root):
            raise ConfigValidationError(f"'{local_path}' escapes appRoot", option="appLocalPath")
        if not entry.is_file():
            raise ConfigValidationError(f"'{local_path}' does not exist under '{app_root}'", option="appLocalPath")
        local_path = entry.relative_to(app_root).as_posix()

    icon: Path | None = None
    icon_text = _text(options, "icon")
    if icon_text:
        icon = (base / icon_text).resolve()
        if not icon.is_file():
            raise ConfigValidationError(f"icon file '{icon}' does not exist", option="icon")

    java_src_dirs = unique_paths(base, normalize_string_list(options.get("javaSrcDirs")))
    for path in java_src_dirs:
        if not path.is_dir():
            raise ConfigValidationError(f"Java source directory '{path}' does not exist", option="javaSrcDirs")

    jars = unique_paths(base, normalize_string_list(options.get("jars")))
    for path in jars:
        if not path.is_file():
            raise ConfigValidationError(f"jar file '{path}' does not exist", option="jars")

    extensions: List[Extension] = []
    for ext_name, jsapi in _normalize_extensions(options.get("extensions")):
        jsapi_path = base / jsapi
        if not jsapi_path.is_file():
            raise ConfigValidationError(
                f"JS API file '{jsapi_path}' for extension '{ext_name}' does not exist",
                option="extensions",
            )
        extensions.append(Extension(name=ext_name, jsapi=jsapi_path))

    return ApplicationDescriptor(
        name=str(_text(options, "name")),
        pkg=str(_text(options, "pkg")),
        version=str(_text(options, "version")),
        app_root=app_root,
        app_local_path=local_path,
        app_url=_text(options, "appUrl"),
        icon=icon,
        orientation=_text(options, "orientation") or APP_DEFAULTS["orientation"],
        fullscreen=_flag(options, "fullscreen"),
        remote_debugging=_flag(options, "remoteDebugging"),
        java_src_dirs=java_src_dirs,
        jars=jars,
        extensions=tuple(extensions),
    )


__all__ = [
    "ApplicationDescriptor",
    "Extension",
    "LOCAL_ASSET_PREFIX",
    "ORIENTATIONS",
    "check_app_options",
    "create_app",
]
