"""Option table and layered configuration resolution.

Options can be set with environment variables, on the command line, or in
configuration files named by ``--app-config`` / ``--env-config``. Environment
variables take precedence over command line flags, which take precedence over
file properties; among files the one registered last wins. Defaults apply
only when no source supplies a value.
"""
from __future__ import annotations

from argparse import SUPPRESS, ArgumentParser
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence
import os

from core.config_loader import (
    ConfigFileError,
    OptionSource,
    load_config_file,
    normalize_string_list,
    resolve_layered,
)

from .errors import ConfigValidationError


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Any = _NoDefault()

RUNTIME = "Runtime"
GENERAL = "General"
ENVIRONMENT = "Environment (env)"
APPLICATION = "Application (app)"


class OptionKind(str, Enum):
    VALUE = "value"
    BOOL = "bool"
    LIST = "list"


@dataclass(frozen=True, slots=True)
class OptionSpec:
    name: str
    help: str
    section: str = GENERAL
    flags: tuple[str, ...] = ()
    default: Any = NO_DEFAULT
    kind: OptionKind = OptionKind.VALUE
    default_description: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def command_line_flags(self) -> tuple[str, ...]:
        primary = f"--{self.name}"
        return self.flags if primary in self.flags else (primary, *self.flags)


APP_DEFAULTS: Dict[str, Any] = {
    "orientation": "unspecified",
    "fullscreen": False,
    "remoteDebugging": False,
    "javaSrcDirs": [],
    "jars": [],
}

ENV_DEFAULTS: Dict[str, Any] = {
    "androidAPILevel": 19,
    "keystoreAlias": "xwalkdebugkey",
    "keystorePassword": "xwalkdebug",
}

OPTIONS: tuple[OptionSpec, ...] = (
    OptionSpec("outDir", "output directory for apk and other build files", RUNTIME, ("-o",), default="build"),
    OptionSpec("app-config", "configuration file for (app) options", GENERAL),
    OptionSpec("env-config", "configuration file for (env) options", GENERAL),
    OptionSpec("ext-config", "configuration JSON file for Crosswalk extensions", GENERAL),
    OptionSpec("androidSDKDir", "root directory of the Android SDK installation", ENVIRONMENT, ("-a",)),
    OptionSpec(
        "xwalkAndroidDir",
        "xwalk_app_template directory inside an xwalk-android download",
        ENVIRONMENT,
        ("-x",),
    ),
    OptionSpec(
        "androidAPILevel",
        "level of the Android API to use (e.g. 18, 19)",
        ENVIRONMENT,
        ("--android-api-level",),
        default=ENV_DEFAULTS["androidAPILevel"],
    ),
    OptionSpec(
        "keystore",
        "path to the JKS keystore to use for apk signing",
        ENVIRONMENT,
        ("--keystore-path",),
        default_description="debug keystore in xwalk-android download",
    ),
    OptionSpec(
        "keystoreAlias",
        "alias for the signing key entry in the keystore",
        ENVIRONMENT,
        ("--keystore-alias",),
        default=ENV_DEFAULTS["keystoreAlias"],
    ),
    OptionSpec(
        "keystorePassword",
        "password for the signing key entry in the keystore",
        ENVIRONMENT,
        ("--keystore-passcode",),
        default=ENV_DEFAULTS["keystorePassword"],
    ),
    OptionSpec("arch", "architecture to build for (x86 or arm), unset for shared", ENVIRONMENT),
    OptionSpec("appRoot", "root directory containing application files", APPLICATION, ("--app-root",)),
    OptionSpec("appLocalPath", "path from app root to main HTML file for app", APPLICATION, ("--app-local-path",)),
    OptionSpec("appUrl", "URL of main HTML page for app", APPLICATION, ("--app-url",)),
    OptionSpec("name", "application name", APPLICATION),
    OptionSpec("pkg", "package for application Java classes", APPLICATION, ("--package",)),
    OptionSpec("version", 'application version string (e.g. "1.0.0")', APPLICATION),
    OptionSpec(
        "orientation",
        'orientation for the application (e.g. "portrait", "landscape")',
        APPLICATION,
        default=APP_DEFAULTS["orientation"],
    ),
    OptionSpec(
        "icon",
        "path to the icon file for the application",
        APPLICATION,
        default_description="Crosswalk default icon",
    ),
    OptionSpec(
        "fullscreen",
        "run app in fullscreen on the device",
        APPLICATION,
        default=APP_DEFAULTS["fullscreen"],
        kind=OptionKind.BOOL,
    ),
    OptionSpec(
        "remoteDebugging",
        "add code to switch on debugging for the app on the device",
        APPLICATION,
        ("--enable-remote-debugging",),
        default=APP_DEFAULTS["remoteDebugging"],
        kind=OptionKind.BOOL,
    ),
    OptionSpec(
        "javaSrcDirs",
        "comma-separated list of Java source directories to compile",
        APPLICATION,
        default=APP_DEFAULTS["javaSrcDirs"],
        kind=OptionKind.LIST,
    ),
    OptionSpec(
        "jars",
        "comma-separated list of jars to bundle into the apk file",
        APPLICATION,
        default=APP_DEFAULTS["jars"],
        kind=OptionKind.LIST,
    ),
    OptionSpec("dry-run", "print toolchain commands without executing them", RUNTIME, kind=OptionKind.BOOL),
    OptionSpec("help", "show this help message and exit", GENERAL, ("-h",), kind=OptionKind.BOOL),
)

APP_OPTION_NAMES: tuple[str, ...] = (
    "name",
    "pkg",
    "version",
    "appRoot",
    "appLocalPath",
    "appUrl",
    "icon",
    "orientation",
    "fullscreen",
    "remoteDebugging",
    "javaSrcDirs",
    "jars",
)

ENV_OPTION_NAMES: tuple[str, ...] = (
    "androidSDKDir",
    "xwalkAndroidDir",
    "androidAPILevel",
    "keystore",
    "keystoreAlias",
    "keystorePassword",
    "arch",
)

CONFIG_FILE_OPTIONS: tuple[str, ...] = ("app-config", "env-config")
"""File options in registration order; a later file overrides an earlier one."""

_FILE_KEYS = frozenset(APP_OPTION_NAMES) | frozenset(ENV_OPTION_NAMES) | {"outDir", "ext-config"}
_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class _OptionParser(ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise ConfigValidationError(message)


def build_parser(options: Sequence[OptionSpec] = OPTIONS) -> ArgumentParser:
    parser = _OptionParser(
        prog="xwalk-apkgen",
        description=(
            "Generate a Crosswalk apk from an HTML5 app. Options can be set with "
            "environment variables, using command line options, or via JSON config "
            "files (see General options below)."
        ),
        add_help=False,
        argument_default=SUPPRESS,
    )
    groups: Dict[str, Any] = {}
    for spec in options:
        group = groups.get(spec.section)
        if group is None:
            group = parser.add_argument_group(f"{spec.section} options")
            groups[spec.section] = group

        help_text = spec.help
        if spec.default_description:
            help_text = f"{help_text} (default: {spec.default_description})"
        elif spec.has_default and spec.default not in ([], None):
            help_text = f"{help_text} (default: {spec.default})"

        if spec.name == "help":
            group.add_argument(*spec.command_line_flags, dest=spec.name, action="store_true", help=help_text)
        elif spec.kind is OptionKind.BOOL:
            group.add_argument(
                *spec.command_line_flags,
                dest=spec.name,
                nargs="?",
                const="true",
                metavar="BOOL",
                help=help_text,
            )
        else:
            group.add_argument(*spec.command_line_flags, dest=spec.name, metavar="VALUE", help=help_text)
    return parser


def coerce_option(spec: OptionSpec, value: Any) -> Any:
    """Convert a raw source value according to ``spec.kind``."""

    if value is None:
        return None
    if spec.kind is OptionKind.BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        raise ConfigValidationError(f"expected a boolean, got {value!r}", option=spec.name)
    if spec.kind is OptionKind.LIST:
        try:
            return normalize_string_list(value, field_name=spec.name)
        except TypeError as exc:
            raise ConfigValidationError(str(exc), option=spec.name) from exc
    return value


def load_extensions(path: str | os.PathLike[str]) -> List[Dict[str, Any]]:
    """Read an extensions config file.

    Every ``jsapi`` entry is rewritten relative to the directory containing
    the file, independent of the process working directory.
    """

    config_file = Path(path)
    try:
        entries = load_config_file(config_file, expect=list)
    except ConfigFileError as exc:
        raise ConfigValidationError(str(exc), option="ext-config") from exc

    base_dir = os.path.dirname(os.path.abspath(config_file))
    extensions: List[Dict[str, Any]] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ConfigValidationError(f"entry {index} must be an object", option="ext-config")
        name = entry.get("name")
        jsapi = entry.get("jsapi")
        if not isinstance(name, str) or not name.strip():
            raise ConfigValidationError(f"entry {index} requires a non-empty 'name'", option="ext-config")
        if not isinstance(jsapi, str) or not jsapi.strip():
            raise ConfigValidationError(f"extension '{name}' requires a 'jsapi' path", option="ext-config")
        extension = dict(entry)
        extension["jsapi"] = os.path.join(base_dir, jsapi)
        extensions.append(extension)
    return extensions


@dataclass(frozen=True)
class ResolvedConfig:
    values: Mapping[str, Any] = field(default_factory=dict)
    origins: Mapping[str, str] = field(default_factory=dict)
    extensions: tuple[Mapping[str, Any], ...] | None = None
    help_requested: bool = False

    @property
    def out_dir(self) -> str:
        return str(self.values.get("outDir") or "build")

    @property
    def dry_run(self) -> bool:
        return bool(self.values.get("dry-run", False))

    def app_options(self) -> Dict[str, Any]:
        options = {name: self.values.get(name) for name in APP_OPTION_NAMES}
        options["extensions"] = [dict(ext) for ext in self.extensions] if self.extensions is not None else None
        return options

    def env_options(self) -> Dict[str, Any]:
        return {name: self.values.get(name) for name in ENV_OPTION_NAMES}


class ConfigResolver:
    """Merges environment variables, command line flags and config files."""

    def __init__(
        self,
        options: Sequence[OptionSpec] = OPTIONS,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._options = tuple(options)
        self._specs = {spec.name: spec for spec in self._options}
        self._environ = dict(environ) if environ is not None else dict(os.environ)
        self._parser = build_parser(self._options)

    @property
    def options(self) -> tuple[OptionSpec, ...]:
        return self._options

    def format_usage(self) -> str:
        return self._parser.format_help()

    def resolve(self, argv: Iterable[str]) -> ResolvedConfig:
        args = list(argv)
        # Help wins even when the rest of the command line does not parse.
        if any(arg in self._specs["help"].command_line_flags for arg in args):
            return ResolvedConfig(help_requested=True)
        command_line = self._parse_command_line(args)

        environment = OptionSource(
            "environment",
            {name: self._environ[name] for name in self._specs if name != "help" and name in self._environ},
        )
        cli = OptionSource("command line", command_line)

        file_sources = self._load_config_files([environment, cli])
        sources: List[OptionSource] = [environment, cli, *reversed(file_sources)]
        defaults = {spec.name: spec.default for spec in self._options if spec.has_default}

        raw, origins = resolve_layered(self._specs.keys(), sources, defaults)
        values = {name: coerce_option(self._specs[name], value) for name, value in raw.items()}
        values.pop("help", None)

        extensions = None
        ext_config = values.get("ext-config")
        if ext_config:
            extensions = tuple(load_extensions(str(ext_config)))

        return ResolvedConfig(values=values, origins=origins, extensions=extensions)

    def _parse_command_line(self, argv: Iterable[str]) -> Dict[str, Any]:
        namespace = self._parser.parse_args(list(argv))
        return dict(vars(namespace))

    def _load_config_files(self, sources: Sequence[OptionSource]) -> List[OptionSource]:
        loaded: List[OptionSource] = []
        for option in CONFIG_FILE_OPTIONS:
            resolved, _ = resolve_layered([option], sources)
            path = resolved.get(option)
            if not path:
                continue
            try:
                data = load_config_file(Path(str(path)))
            except ConfigFileError as exc:
                raise ConfigValidationError(str(exc), option=option) from exc
            unknown = sorted(str(key) for key in data if str(key) not in _FILE_KEYS)
            if unknown:
                joined = ", ".join(unknown)
                raise ConfigValidationError(f"'{path}' contains unknown keys: {joined}", option=option)
            loaded.append(OptionSource(f"{option} ({path})", {str(key): value for key, value in data.items()}))
        return loaded


__all__ = [
    "APP_DEFAULTS",
    "APP_OPTION_NAMES",
    "CONFIG_FILE_OPTIONS",
    "ConfigResolver",
    "ENV_DEFAULTS",
    "ENV_OPTION_NAMES",
    "NO_DEFAULT",
    "OPTIONS",
    "OptionKind",
    "OptionSpec",
    "ResolvedConfig",
    "build_parser",
    "coerce_option",
    "load_extensions",
]
