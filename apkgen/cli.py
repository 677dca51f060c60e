"""Command line interface for the apk generator."""
from __future__ import annotations

from pathlib import Path
from pprint import pprint
from typing import Iterable, Mapping
import sys
import time

from core.command_runner import CommandExecutionError, RecordingCommandRunner, SubprocessCommandRunner

from .build import BuildPipeline, prepare_build
from .errors import ApkGenError
from .options import ConfigResolver


def _make_runner(dry_run: bool) -> SubprocessCommandRunner | RecordingCommandRunner:
    return RecordingCommandRunner() if dry_run else SubprocessCommandRunner()


def _emit_dry_run_output(runner: RecordingCommandRunner, *, workspace: Path) -> None:
    for line in runner.iter_formatted(workspace=workspace):
        print(line)


def main(argv: Iterable[str] | None = None, *, environ: Mapping[str, str] | None = None) -> int:
    started = time.monotonic()
    workspace = Path.cwd()
    resolver = ConfigResolver(environ=environ)

    try:
        config = resolver.resolve(sys.argv[1:] if argv is None else argv)
    except ApkGenError as exc:
        return _report_failure(exc)

    if config.help_requested:
        print(resolver.format_usage())
        return 0

    runner = _make_runner(config.dry_run)

    print("\n*** STARTING BUILD")
    print("\n*** CHECKING ENVIRONMENT...")
    try:
        app, env, locations = prepare_build(config, runner, cwd=workspace)

        print("\n*** APPLICATION:")
        pprint(app.to_mapping())
        print("\n*** ENVIRONMENT:")
        pprint(env.to_mapping())
        print("\n*** LOCATIONS:")
        pprint(locations.to_mapping())

        print(f"\n*** BUILDING APPLICATION IN {locations.out_dir}")
        pipeline = BuildPipeline(app=app, env=env, locations=locations, command_runner=runner)
        final_apk = pipeline.build()
    except (ApkGenError, CommandExecutionError) as exc:
        return _report_failure(exc)
    finally:
        if isinstance(runner, RecordingCommandRunner):
            _emit_dry_run_output(runner, workspace=workspace)

    elapsed = time.monotonic() - started
    print(f"\n*** DONE\n*** BUILD TIME: {elapsed:.2f} seconds\n*** Final output apk:\n    {final_apk}")
    return 0


def _report_failure(exc: BaseException) -> int:
    print("!!!!!!! error occurred")
    print(f"Error: {exc}")
    print("show options by calling this script with the --help option")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
