"""Validated description of the local Android SDK and Crosswalk toolchain."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping
import os
import re

from core.command_runner import CommandRunner

from .errors import EnvironmentValidationError
from .options import ENV_DEFAULTS


MIN_API_LEVEL = 14

ARCH_ABIS: Dict[str, str] = {
    "x86": "x86",
    "arm": "armeabi-v7a",
}
"""Supported ``arch`` values and the ABI directory each one maps to."""

BUILD_TOOLS = ("aapt", "dx", "zipalign")
TEMPLATE_ENTRY_POINTS = ("AndroidManifest.xml", "res", "libs/xwalk_app_runtime_java.jar")
DEBUG_KEYSTORE = "xwalk-debug.keystore"

_BUILD_TOOLS_VERSION = re.compile(r"^([0-9]+)\.([0-9]+)\.([0-9]+)$")


@dataclass(frozen=True, slots=True)
class EnvironmentDescriptor:
    android_sdk_dir: Path
    xwalk_android_dir: Path
    android_api_level: int
    arch: str | None
    keystore: Path
    keystore_alias: str
    keystore_password: str
    build_tools_dir: Path
    android_jar: Path
    runtime_jar: Path
    native_libs_dir: Path | None

    @property
    def abi(self) -> str | None:
        return ARCH_ABIS[self.arch] if self.arch else None

    @property
    def aapt(self) -> Path:
        return self.build_tools_dir / "aapt"

    @property
    def dx(self) -> Path:
        return self.build_tools_dir / "dx"

    @property
    def zipalign(self) -> Path:
        return self.build_tools_dir / "zipalign"

    def to_mapping(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "androidSDKDir": str(self.android_sdk_dir),
            "xwalkAndroidDir": str(self.xwalk_android_dir),
            "androidAPILevel": self.android_api_level,
            "keystore": str(self.keystore),
            "keystoreAlias": self.keystore_alias,
            "buildTools": str(self.build_tools_dir),
        }
        if self.arch:
            data["arch"] = self.arch
        return data


def _text(options: Mapping[str, Any], key: str) -> str | None:
    value = options.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_dir(options: Mapping[str, Any], key: str, base: Path) -> Path:
    text = _text(options, key)
    if not text:
        raise EnvironmentValidationError("is required", option=key)
    path = (base / text).resolve()
    if not path.is_dir():
        raise EnvironmentValidationError(f"directory '{path}' does not exist", option=key)
    return path


def normalize_api_level(value: Any) -> int:
    """Return ``value`` as a supported integer API level."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return int(ENV_DEFAULTS["androidAPILevel"])
    if isinstance(value, bool):
        raise EnvironmentValidationError(f"'{value}' is not a number", option="androidAPILevel")
    try:
        level = int(str(value).strip())
    except ValueError as exc:
        raise EnvironmentValidationError(f"'{value}' is not a number", option="androidAPILevel") from exc
    if level < MIN_API_LEVEL:
        raise EnvironmentValidationError(
            f"API level {level} is not supported (minimum {MIN_API_LEVEL})",
            option="androidAPILevel",
        )
    return level


def normalize_arch(value: Any) -> str | None:
    text = str(value).strip().lower() if value is not None else ""
    if not text:
        return None
    if text not in ARCH_ABIS:
        allowed = ", ".join(sorted(ARCH_ABIS))
        raise EnvironmentValidationError(f"'{value}' is not one of: {allowed}", option="arch")
    return text


def build_tools_versions(sdk_dir: Path) -> List[tuple[int, int, int]]:
    build_tools = sdk_dir / "build-tools"
    versions: List[tuple[int, int, int]] = []
    if build_tools.is_dir():
        for item in build_tools.iterdir():
            match = _BUILD_TOOLS_VERSION.match(item.name)
            if match and item.is_dir():
                versions.append((int(match.group(1)), int(match.group(2)), int(match.group(3))))
    return sorted(versions)


def select_build_tools(sdk_dir: Path) -> Path:
    """Pick the newest ``build-tools`` directory that holds every required tool."""

    for version in reversed(build_tools_versions(sdk_dir)):
        candidate = sdk_dir / "build-tools" / "{}.{}.{}".format(*version)
        if all((candidate / tool).is_file() for tool in BUILD_TOOLS):
            return candidate
    tools = ", ".join(BUILD_TOOLS)
    raise EnvironmentValidationError(
        f"no build-tools directory under '{sdk_dir}' provides {tools}",
        option="androidSDKDir",
    )


def _probe(runner: CommandRunner, command: List[str], *, option: str) -> None:
    result = runner.run(command, note="probe")
    if not result.ok:
        detail = result.spawn_error or result.stderr.strip() or f"exit code {result.returncode}"
        raise EnvironmentValidationError(f"toolchain probe '{' '.join(command)}' failed: {detail}", option=option)


def create_environment(
    options: Mapping[str, Any],
    runner: CommandRunner,
    *,
    cwd: Path | None = None,
) -> EnvironmentDescriptor:
    """Validate ``options`` against the installed toolchain.

    Only read-only probes are issued through ``runner``.
    """

    base = cwd or Path.cwd()
    api_level = normalize_api_level(options.get("androidAPILevel"))
    arch = normalize_arch(options.get("arch"))

    sdk_dir = _require_dir(options, "androidSDKDir", base)
    android_jar = sdk_dir / "platforms" / f"android-{api_level}" / "android.jar"
    if not android_jar.is_file():
        raise EnvironmentValidationError(
            f"platform android-{api_level} is not installed ('{android_jar}' missing)",
            option="androidSDKDir",
        )
    build_tools_dir = select_build_tools(sdk_dir)

    template_dir = _require_dir(options, "xwalkAndroidDir", base)
    missing = [entry for entry in TEMPLATE_ENTRY_POINTS if not (template_dir / entry).exists()]
    if missing:
        raise EnvironmentValidationError(
            f"'{template_dir}' is not an xwalk app template (missing {', '.join(missing)})",
            option="xwalkAndroidDir",
        )

    native_libs_dir: Path | None = None
    if arch:
        native_libs_dir = template_dir / "native_libs" / ARCH_ABIS[arch]
        if not native_libs_dir.is_dir():
            raise EnvironmentValidationError(
                f"no native libraries for '{arch}' in '{native_libs_dir.parent}'",
                option="arch",
            )

    keystore_text = _text(options, "keystore")
    keystore = (base / keystore_text).resolve() if keystore_text else template_dir / DEBUG_KEYSTORE
    if not keystore.is_file():
        raise EnvironmentValidationError(f"keystore '{keystore}' does not exist", option="keystore")

    _probe(runner, [os.fspath(build_tools_dir / "aapt"), "version"], option="androidSDKDir")
    _probe(runner, ["javac", "-version"], option="javac")

    return EnvironmentDescriptor(
        android_sdk_dir=sdk_dir,
        xwalk_android_dir=template_dir,
        android_api_level=api_level,
        arch=arch,
        keystore=keystore,
        keystore_alias=_text(options, "keystoreAlias") or str(ENV_DEFAULTS["keystoreAlias"]),
        keystore_password=_text(options, "keystorePassword") or str(ENV_DEFAULTS["keystorePassword"]),
        build_tools_dir=build_tools_dir,
        android_jar=android_jar,
        runtime_jar=template_dir / "libs" / "xwalk_app_runtime_java.jar",
        native_libs_dir=native_libs_dir,
    )


__all__ = [
    "ARCH_ABIS",
    "BUILD_TOOLS",
    "DEBUG_KEYSTORE",
    "EnvironmentDescriptor",
    "MIN_API_LEVEL",
    "TEMPLATE_ENTRY_POINTS",
    "build_tools_versions",
    "create_environment",
    "normalize_api_level",
    "normalize_arch",
    "select_build_tools",
]
