"""Descriptor loading and the ordered apk build pipeline."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence
import json
import os
import shutil

from core.command_runner import CommandRunner

from .app import ApplicationDescriptor, check_app_options, create_app
from .environment import EnvironmentDescriptor, create_environment
from .errors import BuildStepError
from .locations import Locations, check_locations, resolve_locations
from .options import ResolvedConfig
from .skeleton import generate_skeleton


SkeletonGenerator = Callable[..., None]


def load_descriptors(
    app_options: Mapping[str, Any],
    env_options: Mapping[str, Any],
    runner: CommandRunner,
    *,
    cwd: Path | None = None,
) -> tuple[ApplicationDescriptor, EnvironmentDescriptor]:
    """Validate the application and the environment concurrently.

    The first failure is raised; the executor still waits for the other task
    so no work is left running in the background.
    """

    check_app_options(app_options)

    with ThreadPoolExecutor(max_workers=2) as executor:
        app_future = executor.submit(create_app, app_options, cwd=cwd)
        env_future = executor.submit(create_environment, env_options, runner, cwd=cwd)
        for future in as_completed([app_future, env_future]):
            error = future.exception()
            if error is not None:
                raise error
        return app_future.result(), env_future.result()


@dataclass(frozen=True, slots=True)
class BuildStage:
    name: str
    action: Callable[[], None]


class BuildPipeline:
    """Runs the build stages strictly in order and stops at the first failure."""

    def __init__(
        self,
        *,
        app: ApplicationDescriptor,
        env: EnvironmentDescriptor,
        locations: Locations,
        command_runner: CommandRunner,
        skeleton: SkeletonGenerator = generate_skeleton,
    ) -> None:
        self._app = app
        self._env = env
        self._locations = locations
        self._command_runner = command_runner
        self._skeleton = skeleton

    def stages(self) -> List[BuildStage]:
        return [
            BuildStage("skeleton", self._materialize_skeleton),
            BuildStage("assets", self._stage_assets),
            BuildStage("compile", self._compile_java),
            BuildStage("package", self._package),
            BuildStage("sign", self._sign),
            BuildStage("align", self._align),
        ]

    def build(self) -> Path:
        check_locations(self._app, self._locations)
        for stage in self.stages():
            try:
                stage.action()
            except Exception as exc:
                raise BuildStepError(stage.name, exc) from exc
        return self._locations.final_apk

    def _run(self, command: Sequence[Any], *, note: str, cwd: Path | None = None) -> None:
        self._command_runner.run([os.fspath(part) for part in command], cwd=cwd, check=True, note=note)

    def skeleton_options(self) -> Dict[str, Any]:
        app = self._app
        options: Dict[str, Any] = {
            "name": app.name,
            "pkg": app.pkg,
            "version": app.version,
            "icon": str(app.icon) if app.icon else None,
            "orientation": app.orientation,
            "fullscreen": app.fullscreen,
            "appRoot": str(app.app_root) if app.app_root else None,
            "remoteDebugging": app.remote_debugging,
            "androidAPILevel": self._env.android_api_level,
        }
        if app.app_url:
            options["appUrl"] = app.app_url
        else:
            options["appLocalPath"] = app.app_local_path
        return options

    def _materialize_skeleton(self) -> None:
        # Each run starts from an empty per-build directory; other builds in
        # out_dir and the previous final apk are left alone until replaced.
        build_dir = self._locations.build_dir
        if build_dir.exists():
            shutil.rmtree(build_dir)
        build_dir.mkdir(parents=True)
        self._skeleton(
            self.skeleton_options(),
            self._locations.project_dir,
            template_dir=self._env.xwalk_android_dir,
        )

    def _skip_output_tree(self, directory: str, names: List[str]) -> List[str]:
        # appRoot may contain outDir (e.g. appRoot="." with outDir="build").
        output = {self._locations.out_dir.resolve(), self._locations.build_dir.resolve()}
        return [name for name in names if (Path(directory) / name).resolve() in output]

    def _stage_assets(self) -> None:
        app = self._app
        locations = self._locations

        locations.assets_dir.mkdir(parents=True, exist_ok=True)
        if app.app_root is not None:
            shutil.copytree(
                app.app_root,
                locations.assets_dir,
                ignore=self._skip_output_tree,
                dirs_exist_ok=True,
            )

        if app.extensions:
            records = []
            for extension in app.extensions:
                target_dir = locations.extensions_dir / extension.name
                target_dir.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(extension.jsapi, target_dir / f"{extension.name}.js")
                records.append({"name": extension.name, "jsapi": f"{extension.name}/{extension.name}.js"})
            (locations.extensions_dir / "extensions-config.json").write_text(
                json.dumps(records, indent=2), encoding="utf-8"
            )

        locations.libs_dir.mkdir(parents=True, exist_ok=True)
        for jar in app.jars:
            shutil.copyfile(jar, locations.libs_dir / jar.name)

        if self._env.native_libs_dir is not None and self._env.abi:
            shutil.copytree(
                self._env.native_libs_dir,
                locations.build_dir / "lib" / self._env.abi,
                dirs_exist_ok=True,
            )

    def _jar_classpath(self) -> List[Path]:
        jars = sorted(self._locations.libs_dir.glob("*.jar"))
        if not any(jar.name == self._env.runtime_jar.name for jar in jars):
            jars.insert(0, self._env.runtime_jar)
        return jars

    def _java_sources(self) -> List[Path]:
        roots = [self._locations.src_dir, self._locations.gen_dir, *self._app.java_src_dirs]
        sources: List[Path] = []
        for root in roots:
            if root.is_dir():
                sources.extend(sorted(root.rglob("*.java")))
        return sources

    def _compile_java(self) -> None:
        env = self._env
        locations = self._locations

        locations.gen_dir.mkdir(parents=True, exist_ok=True)
        self._run(
            [
                env.aapt,
                "package",
                "-f",
                "-m",
                "-J", locations.gen_dir,
                "-M", locations.manifest,
                "-S", locations.res_dir,
                "-I", env.android_jar,
            ],
            note="generate R.java",
        )

        locations.classes_dir.mkdir(parents=True, exist_ok=True)
        classpath = self._jar_classpath()
        source_roots = [locations.src_dir, locations.gen_dir, *self._app.java_src_dirs]
        self._run(
            [
                "javac",
                "-source", "1.7",
                "-target", "1.7",
                "-encoding", "UTF-8",
                "-d", locations.classes_dir,
                "-bootclasspath", env.android_jar,
                "-classpath", os.pathsep.join(os.fspath(path) for path in classpath),
                "-sourcepath", os.pathsep.join(os.fspath(path) for path in source_roots),
                *self._java_sources(),
            ],
            note="compile java",
        )

        self._run(
            [env.dx, "--dex", "--output", locations.dex_file, locations.classes_dir, *classpath],
            note="dex",
        )

    def _package(self) -> None:
        env = self._env
        locations = self._locations

        self._run(
            [
                env.aapt,
                "package",
                "-f",
                "--min-sdk-version", "14",
                "--target-sdk-version", str(env.android_api_level),
                "-M", locations.manifest,
                "-S", locations.res_dir,
                "-A", locations.assets_dir.parent,
                "-I", env.android_jar,
                "-F", locations.unsigned_apk,
            ],
            note="package resources",
        )

        entries = [locations.dex_file.name]
        lib_root = locations.build_dir / "lib"
        if lib_root.is_dir():
            entries.extend(
                path.relative_to(locations.build_dir).as_posix()
                for path in sorted(lib_root.rglob("*"))
                if path.is_file()
            )
        self._run(
            [env.aapt, "add", "-f", locations.unsigned_apk, *entries],
            cwd=locations.build_dir,
            note="add classes and native libraries",
        )

    def _sign(self) -> None:
        env = self._env
        locations = self._locations
        self._run(
            [
                "jarsigner",
                "-sigalg", "SHA1withRSA",
                "-digestalg", "SHA1",
                "-keystore", env.keystore,
                "-storepass", env.keystore_password,
                "-keypass", env.keystore_password,
                "-signedjar", locations.signed_apk,
                locations.unsigned_apk,
                env.keystore_alias,
            ],
            note="sign",
        )

    def _align(self) -> None:
        locations = self._locations
        locations.final_apk.parent.mkdir(parents=True, exist_ok=True)
        self._run(
            [self._env.zipalign, "-f", "4", locations.signed_apk, locations.final_apk],
            note="align",
        )


def prepare_build(
    config: ResolvedConfig,
    command_runner: CommandRunner,
    *,
    cwd: Path | None = None,
) -> tuple[ApplicationDescriptor, EnvironmentDescriptor, Locations]:
    app, env = load_descriptors(config.app_options(), config.env_options(), command_runner, cwd=cwd)
    locations = resolve_locations(app, env, config.out_dir, cwd=cwd)
    return app, env, locations


def run_build(config: ResolvedConfig, command_runner: CommandRunner, *, cwd: Path | None = None) -> Path:
    """Validate, lay out and build; returns the path of the final apk."""

    app, env, locations = prepare_build(config, command_runner, cwd=cwd)
    pipeline = BuildPipeline(app=app, env=env, locations=locations, command_runner=command_runner)
    return pipeline.build()


__all__ = [
    "BuildPipeline",
    "BuildStage",
    "load_descriptors",
    "prepare_build",
    "run_build",
]
