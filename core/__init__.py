"""Shared core utilities for command execution and configuration loading."""

from .command_runner import (
    CommandExecutionError,
    CommandResult,
    CommandRunner,
    RecordedCommand,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import (
    ConfigFileError,
    FILE_LOADERS,
    OptionSource,
    load_config_file,
    normalize_string_list,
    resolve_layered,
    unique_paths,
)

__all__ = [
    "CommandExecutionError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "ConfigFileError",
    "FILE_LOADERS",
    "OptionSource",
    "load_config_file",
    "normalize_string_list",
    "resolve_layered",
    "unique_paths",
]
