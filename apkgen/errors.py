"""Exception hierarchy for the apk generator."""
from __future__ import annotations

from core.command_runner import CommandExecutionError


class ApkGenError(Exception):
    """Base class for failures surfaced to the command line."""


class ConfigValidationError(ApkGenError, ValueError):
    """Raised when option values are malformed or contradictory."""

    def __init__(self, message: str, *, option: str | None = None):
        if option:
            message = f"{option}: {message}"
        super().__init__(message)
        self.option = option


class EnvironmentValidationError(ApkGenError):
    """Raised when the Android SDK or Crosswalk installation is unusable."""

    def __init__(self, message: str, *, option: str | None = None):
        if option:
            message = f"{option}: {message}"
        super().__init__(message)
        self.option = option


class BuildStepError(ApkGenError):
    """Raised when a pipeline stage fails; wraps the underlying error."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"Build stage '{stage}' failed: {cause}")
        self.stage = stage
        self.cause = cause

    @property
    def command_error(self) -> CommandExecutionError | None:
        return self.cause if isinstance(self.cause, CommandExecutionError) else None


__all__ = [
    "ApkGenError",
    "BuildStepError",
    "CommandExecutionError",
    "ConfigValidationError",
    "EnvironmentValidationError",
]
