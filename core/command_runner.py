"""Utilities for executing external toolchain commands with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


SPAWN_FAILURE_RETURNCODE = 127


@dataclass(frozen=True)
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    note: str | None = None
    spawn_error: str | None = None

    @property
    def program(self) -> str:
        return self.command[0] if self.command else ""

    @property
    def arguments(self) -> List[str]:
        return list(self.command[1:])

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def raise_for_status(self) -> "CommandResult":
        if not self.ok:
            raise CommandExecutionError(self)
        return self


class CommandExecutionError(RuntimeError):
    """Raised when a command exits non-zero or cannot be spawned."""

    def __init__(self, result: CommandResult):
        formatted = " ".join(map(shlex.quote, result.command))
        if result.spawn_error is not None:
            message = f"Command could not be started: {formatted}\n{result.spawn_error}"
        else:
            message = f"Command failed with exit code {result.returncode}: {formatted}"
            if result.stderr.strip():
                message = f"{message}\nstderr: {result.stderr.strip()}"
        super().__init__(message)
        self.result = result

    @property
    def command(self) -> Sequence[str]:
        return self.result.command

    @property
    def stderr(self) -> str:
        return self.result.stderr


class CommandRunner:
    """Abstract command runner interface.

    Runners hold no lock; callers that depend on working-directory state pass
    ``cwd`` explicitly instead of changing the process directory.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
        note: str | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(str(part)) for part in command)

    @staticmethod
    def _finalize(result: CommandResult, *, check: bool) -> CommandResult:
        if check:
            result.raise_for_status()
        return result


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
        note: str | None = None,
    ) -> CommandResult:
        argv = [str(part) for part in command]
        try:
            process = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=self._merge_environment(env),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            result = CommandResult(
                command=argv,
                returncode=SPAWN_FAILURE_RETURNCODE,
                stdout="",
                stderr=str(exc),
                note=note,
                spawn_error=str(exc),
            )
            return self._finalize(result, check=check)

        return self._finalize(
            CommandResult(
                command=argv,
                returncode=process.returncode,
                stdout=process.stdout or "",
                stderr=process.stderr or "",
                note=note,
            ),
            check=check,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None


@dataclass(slots=True)
class _PrimedFailure:
    returncode: int
    stderr: str


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    ``fail_on`` maps a program basename (``"javac"``) or full path to a
    simulated failure; recorded commands still include the failing call.
    """

    def __init__(self, *, fail_on: Mapping[str, int | tuple[int, str]] | None = None) -> None:
        self.commands: List[RecordedCommand] = []
        self._failures: Dict[str, _PrimedFailure] = {}
        for program, outcome in (fail_on or {}).items():
            if isinstance(outcome, tuple):
                code, stderr = outcome
            else:
                code, stderr = outcome, ""
            self._failures[program] = _PrimedFailure(returncode=code, stderr=stderr)

    def _primed_failure(self, program: str) -> _PrimedFailure | None:
        return self._failures.get(program) or self._failures.get(os.path.basename(program))

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = False,
        note: str | None = None,
    ) -> CommandResult:
        argv = [str(part) for part in command]
        self.commands.append(
            RecordedCommand(
                command=argv,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else {},
                note=note,
            )
        )
        failure = self._primed_failure(argv[0]) if argv else None
        if failure is not None:
            result = CommandResult(
                command=argv,
                returncode=failure.returncode,
                stdout="",
                stderr=failure.stderr,
                note=note,
            )
        else:
            result = CommandResult(command=argv, returncode=0, stdout="", stderr="", note=note)
        return self._finalize(result, check=check)

    def programs(self) -> List[str]:
        return [os.path.basename(record.command[0]) for record in self.commands if record.command]

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            yield " ".join(parts)


__all__ = [
    "CommandExecutionError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SPAWN_FAILURE_RETURNCODE",
    "SubprocessCommandRunner",
]
