from __future__ import annotations

from pathlib import Path
import shutil
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner

from apkgen.environment import create_environment, normalize_api_level, select_build_tools
from apkgen.errors import EnvironmentValidationError

from stubs import env_options, make_sdk, make_template


class EnvironmentDescriptorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.sdk = make_sdk(self.root)
        self.template = make_template(self.root)
        self.runner = RecordingCommandRunner()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_defaults_to_bundled_debug_keystore(self) -> None:
        env = create_environment(env_options(self.sdk, self.template), self.runner, cwd=self.root)

        self.assertEqual(env.keystore, self.template.resolve() / "xwalk-debug.keystore")
        self.assertTrue(env.keystore.is_file())
        self.assertEqual(env.keystore_alias, "xwalkdebugkey")
        self.assertEqual(env.keystore_password, "xwalkdebug")

    def test_resolves_toolchain_entry_points(self) -> None:
        env = create_environment(env_options(self.sdk, self.template), self.runner, cwd=self.root)

        sdk = self.sdk.resolve()
        self.assertEqual(env.android_api_level, 19)
        self.assertEqual(env.android_jar, sdk / "platforms" / "android-19" / "android.jar")
        self.assertEqual(env.build_tools_dir, sdk / "build-tools" / "19.1.0")
        self.assertEqual(env.aapt, sdk / "build-tools" / "19.1.0" / "aapt")
        self.assertIsNone(env.arch)
        self.assertIsNone(env.abi)
        self.assertIsNone(env.native_libs_dir)

    def test_probes_are_read_only_version_queries(self) -> None:
        create_environment(env_options(self.sdk, self.template), self.runner, cwd=self.root)

        commands = [record.command for record in self.runner.commands]
        self.assertEqual(len(commands), 2)
        self.assertTrue(commands[0][0].endswith("aapt"))
        self.assertEqual(commands[0][1:], ["version"])
        self.assertEqual(commands[1], ["javac", "-version"])

    def test_failed_probe_is_an_environment_error(self) -> None:
        runner = RecordingCommandRunner(fail_on={"javac": (127, "javac: not found")})

        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(env_options(self.sdk, self.template), runner, cwd=self.root)
        self.assertIn("javac: not found", str(ctx.exception))

    def test_missing_sdk_directory(self) -> None:
        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(env_options(self.root / "nowhere", self.template), self.runner, cwd=self.root)
        self.assertEqual(ctx.exception.option, "androidSDKDir")
        self.assertEqual(self.runner.commands, [])

    def test_sdk_dir_is_required(self) -> None:
        options = env_options(self.sdk, self.template, androidSDKDir=None)

        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(options, self.runner, cwd=self.root)
        self.assertEqual(ctx.exception.option, "androidSDKDir")

    def test_missing_platform_for_api_level(self) -> None:
        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(env_options(self.sdk, self.template, androidAPILevel="21"), self.runner, cwd=self.root)
        self.assertIn("android-21", str(ctx.exception))

    def test_template_without_entry_points(self) -> None:
        (self.template / "libs" / "xwalk_app_runtime_java.jar").unlink()

        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(env_options(self.sdk, self.template), self.runner, cwd=self.root)
        self.assertEqual(ctx.exception.option, "xwalkAndroidDir")
        self.assertIn("xwalk_app_runtime_java.jar", str(ctx.exception))

    def test_architecture_selects_native_libraries(self) -> None:
        env = create_environment(env_options(self.sdk, self.template, arch="ARM"), self.runner, cwd=self.root)

        self.assertEqual(env.arch, "arm")
        self.assertEqual(env.abi, "armeabi-v7a")
        self.assertEqual(env.native_libs_dir, self.template.resolve() / "native_libs" / "armeabi-v7a")

    def test_unknown_architecture(self) -> None:
        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(env_options(self.sdk, self.template, arch="mips"), self.runner, cwd=self.root)
        self.assertEqual(ctx.exception.option, "arch")

    def test_architecture_without_native_libraries(self) -> None:
        shutil.rmtree(self.template / "native_libs" / "x86")

        with self.assertRaises(EnvironmentValidationError):
            create_environment(env_options(self.sdk, self.template, arch="x86"), self.runner, cwd=self.root)

    def test_explicit_keystore_must_exist(self) -> None:
        with self.assertRaises(EnvironmentValidationError) as ctx:
            create_environment(
                env_options(self.sdk, self.template, keystore="release.keystore"), self.runner, cwd=self.root
            )
        self.assertEqual(ctx.exception.option, "keystore")


class ApiLevelTests(unittest.TestCase):
    def test_normalization(self) -> None:
        self.assertEqual(normalize_api_level(None), 19)
        self.assertEqual(normalize_api_level(""), 19)
        self.assertEqual(normalize_api_level("21"), 21)
        self.assertEqual(normalize_api_level(18), 18)

    def test_rejects_unsupported_values(self) -> None:
        for value in ("abc", 10, True):
            with self.subTest(value=value):
                with self.assertRaises(EnvironmentValidationError):
                    normalize_api_level(value)


class BuildToolsSelectionTests(unittest.TestCase):
    def test_newest_complete_version_wins(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            sdk = make_sdk(Path(temp), build_tools="19.1.0")
            (sdk / "build-tools" / "20.0.0").mkdir()
            (sdk / "build-tools" / "20.0.0" / "aapt").write_text("")
            complete = sdk / "build-tools" / "19.10.2"
            complete.mkdir()
            for tool in ("aapt", "dx", "zipalign"):
                (complete / tool).write_text("")

            self.assertEqual(select_build_tools(sdk), complete)

    def test_no_build_tools(self) -> None:
        with tempfile.TemporaryDirectory() as temp:
            with self.assertRaises(EnvironmentValidationError):
                select_build_tools(Path(temp))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
