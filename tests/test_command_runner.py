from __future__ import annotations

from pathlib import Path
import subprocess
import unittest
from unittest.mock import patch

from core.command_runner import (
    SPAWN_FAILURE_RETURNCODE,
    CommandExecutionError,
    CommandResult,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)


class SubprocessCommandRunnerTests(unittest.TestCase):
    def test_successful_command_captures_output(self) -> None:
        completed = subprocess.CompletedProcess(["aapt", "version"], 0, stdout="Android Asset Packaging Tool\n", stderr="")
        with patch("core.command_runner.subprocess.run", return_value=completed) as run:
            result = SubprocessCommandRunner().run(["aapt", "version"], cwd=Path("/tmp"))

        self.assertTrue(result.ok)
        self.assertEqual(result.stdout, "Android Asset Packaging Tool\n")
        self.assertEqual(result.program, "aapt")
        self.assertEqual(result.arguments, ["version"])
        kwargs = run.call_args.kwargs
        self.assertEqual(kwargs["cwd"], "/tmp")
        self.assertTrue(kwargs["capture_output"])
        self.assertTrue(kwargs["text"])

    def test_non_zero_exit_returns_failure_result(self) -> None:
        completed = subprocess.CompletedProcess(["javac"], 2, stdout="", stderr="error: cannot find symbol\n")
        with patch("core.command_runner.subprocess.run", return_value=completed):
            result = SubprocessCommandRunner().run(["javac", "Main.java"])

        self.assertFalse(result.ok)
        self.assertEqual(result.returncode, 2)
        self.assertIn("cannot find symbol", result.stderr)

    def test_check_raises_with_command_and_stderr(self) -> None:
        completed = subprocess.CompletedProcess(["zipalign"], 1, stdout="", stderr="Unable to open 'in.apk'\n")
        with patch("core.command_runner.subprocess.run", return_value=completed):
            with self.assertRaises(CommandExecutionError) as ctx:
                SubprocessCommandRunner().run(["zipalign", "-f", "4", "in.apk", "out.apk"], check=True)

        error = ctx.exception
        self.assertEqual(list(error.command), ["zipalign", "-f", "4", "in.apk", "out.apk"])
        self.assertIn("exit code 1", str(error))
        self.assertIn("Unable to open 'in.apk'", str(error))
        self.assertEqual(error.result.arguments, ["-f", "4", "in.apk", "out.apk"])

    def test_missing_program_is_reported_as_spawn_failure(self) -> None:
        with patch("core.command_runner.subprocess.run", side_effect=FileNotFoundError(2, "No such file", "dx")):
            result = SubprocessCommandRunner().run(["dx", "--dex"])

        self.assertFalse(result.ok)
        self.assertEqual(result.returncode, SPAWN_FAILURE_RETURNCODE)
        self.assertIsNotNone(result.spawn_error)
        with self.assertRaises(CommandExecutionError) as ctx:
            result.raise_for_status()
        self.assertIn("could not be started", str(ctx.exception))

    def test_environment_overrides_are_merged(self) -> None:
        completed = subprocess.CompletedProcess(["true"], 0, stdout="", stderr="")
        with patch("core.command_runner.subprocess.run", return_value=completed) as run, patch.dict(
            "os.environ", {"PATH": "/usr/bin"}, clear=True
        ):
            SubprocessCommandRunner().run(["true"], env={"JAVA_HOME": "/opt/jdk"})

        self.assertEqual(run.call_args.kwargs["env"], {"PATH": "/usr/bin", "JAVA_HOME": "/opt/jdk"})


class RecordingCommandRunnerTests(unittest.TestCase):
    def test_records_commands_and_formats_dry_run_lines(self) -> None:
        runner = RecordingCommandRunner()
        runner.run(["aapt", "add", "-f", "My App.apk", "classes.dex"], cwd=Path("/out/build"), note="add classes")
        runner.run(["javac", "-version"])

        lines = list(runner.iter_formatted(workspace=Path("/work")))
        self.assertEqual(
            lines,
            [
                "[dry-run] add classes (cwd=/out/build) aapt add -f 'My App.apk' classes.dex",
                "[dry-run] (cwd=/work) javac -version",
            ],
        )
        self.assertEqual(runner.programs(), ["aapt", "javac"])

    def test_primed_failure_matches_program_basename(self) -> None:
        runner = RecordingCommandRunner(fail_on={"zipalign": (1, "bad zip")})
        result = runner.run(["/sdk/build-tools/19.1.0/zipalign", "-f", "4", "a.apk", "b.apk"])

        self.assertFalse(result.ok)
        self.assertEqual(result.stderr, "bad zip")
        self.assertEqual(len(runner.commands), 1)
        with self.assertRaises(CommandExecutionError):
            runner.run(["zipalign"], check=True)

    def test_result_reports_success(self) -> None:
        result = CommandResult(command=["jarsigner"], returncode=0, stdout="", stderr="")
        self.assertIs(result.raise_for_status(), result)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
