"""Shared helpers for loading configuration files and layering option sources."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import json
import tomllib

import yaml


_Loader = Callable[[Any], Any]


class ConfigFileError(ValueError):
    """Raised when a configuration file cannot be read or decoded."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Invalid configuration file '{path}': {reason}")
        self.path = path
        self.reason = reason


FILE_LOADERS: Dict[str, _Loader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""

DEFAULT_SUFFIX = ".json"
"""Suffix whose loader is used for files with an unregistered extension."""

_DECODE_ERRORS = (json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError, UnicodeDecodeError)


def load_config_file(path: Path, *, expect: type | tuple[type, ...] = dict) -> Any:
    """Load and decode a configuration document from ``path``.

    The decoded root must be an instance of ``expect``; files with an unknown
    suffix are decoded as JSON.
    """

    suffix = path.suffix.lower()
    if suffix not in FILE_LOADERS:
        suffix = DEFAULT_SUFFIX
    loader = FILE_LOADERS[suffix]

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except FileNotFoundError as exc:
        raise ConfigFileError(path, "file does not exist") from exc
    except OSError as exc:
        raise ConfigFileError(path, exc.strerror or str(exc)) from exc
    except _DECODE_ERRORS as exc:
        raise ConfigFileError(path, str(exc)) from exc

    if not isinstance(data, expect):
        if isinstance(expect, tuple):
            expected = " or ".join(kind.__name__ for kind in expect)
        else:
            expected = expect.__name__
        raise ConfigFileError(path, f"root must be a {expected}, got {type(data).__name__}")

    return data


def normalize_string_list(value: Any, *, field_name: str | None = None) -> List[str]:
    """Coerce ``value`` into a list of trimmed strings.

    Plain strings are treated as comma-separated lists.
    """

    if value is None:
        return []

    if isinstance(value, (str, bytes)):
        text = value.decode() if isinstance(value, bytes) else value
        return [part.strip() for part in text.split(",") if part.strip()]

    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if not isinstance(item, (str, bytes, Path)):
                label = f"{field_name} " if field_name else ""
                raise TypeError(f"{label}entries must be strings")
            text = (item.decode() if isinstance(item, bytes) else str(item)).strip()
            if text:
                items.append(text)
        return items

    label = f"{field_name} " if field_name else ""
    raise TypeError(f"{label}must be a string or sequence of strings")


def unique_paths(root: Path, values: Iterable[str]) -> tuple[Path, ...]:
    """Resolve ``values`` relative to ``root`` keeping first-seen order."""

    resolved: List[Path] = []
    seen: set[Path] = set()
    for raw in values:
        candidate = Path(raw)
        path = candidate if candidate.is_absolute() else (root / candidate)
        if path in seen:
            continue
        seen.add(path)
        resolved.append(path)
    return tuple(resolved)


@dataclass(slots=True)
class OptionSource:
    """A named layer of option values."""

    label: str
    values: Mapping[str, Any] = field(default_factory=dict)

    def defines(self, key: str) -> bool:
        return key in self.values and self.values[key] is not None


def resolve_layered(
    keys: Iterable[str],
    sources: Sequence[OptionSource],
    defaults: Mapping[str, Any] | None = None,
) -> tuple[Dict[str, Any], Dict[str, str]]:
    """Resolve ``keys`` against ``sources`` ordered from highest precedence.

    Returns the resolved values and, for each key, the label of the source that
    supplied it (``"default"`` for values taken from ``defaults``). Keys that no
    source and no default define are omitted.
    """

    defaults = defaults or {}
    resolved: Dict[str, Any] = {}
    origins: Dict[str, str] = {}
    for key in keys:
        for source in sources:
            if source.defines(key):
                resolved[key] = source.values[key]
                origins[key] = source.label
                break
        else:
            if key in defaults:
                resolved[key] = defaults[key]
                origins[key] = "default"
    return resolved, origins


__all__ = [
    "ConfigFileError",
    "DEFAULT_SUFFIX",
    "FILE_LOADERS",
    "OptionSource",
    "load_config_file",
    "normalize_string_list",
    "resolve_layered",
    "unique_paths",
]
