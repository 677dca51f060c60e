from __future__ import annotations

from pathlib import Path
import dataclasses
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner

from apkgen.app import create_app
from apkgen.environment import create_environment
from apkgen.locations import build_label, resolve_locations

from stubs import app_options, env_options, make_sdk, make_template, make_www


class LocationsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        make_www(self.root)
        self.sdk = make_sdk(self.root)
        self.template = make_template(self.root)
        self.app = create_app(app_options(), cwd=self.root)
        self.env = create_environment(env_options(self.sdk, self.template), RecordingCommandRunner(), cwd=self.root)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_layout_is_deterministic_and_touches_nothing(self) -> None:
        out_dir = self.root / "dist"

        first = resolve_locations(self.app, self.env, out_dir)
        second = resolve_locations(self.app, self.env, out_dir)

        self.assertEqual(first, second)
        self.assertFalse(out_dir.exists())

    def test_relative_out_dir_is_anchored_at_cwd(self) -> None:
        locations = resolve_locations(self.app, self.env, "build", cwd=self.root)

        self.assertEqual(locations.out_dir, self.root / "build")
        self.assertEqual(locations.final_apk, self.root / "build" / "Test.apk")
        self.assertEqual(locations.build_dir, self.root / "build" / "Test")

    def test_out_dir_is_normalized(self) -> None:
        locations = resolve_locations(self.app, self.env, "out/../build", cwd=self.root)

        self.assertEqual(locations.out_dir, self.root / "build")

    def test_intermediates_live_under_build_dir(self) -> None:
        locations = resolve_locations(self.app, self.env, "build", cwd=self.root)

        for item in dataclasses.fields(locations):
            if item.name in ("out_dir", "final_apk"):
                continue
            with self.subTest(location=item.name):
                path = getattr(locations, item.name)
                self.assertTrue(path.is_relative_to(locations.build_dir))
        self.assertEqual(locations.java_src_dir, locations.src_dir / "org" / "test")
        self.assertEqual(locations.assets_dir, locations.project_dir / "assets" / "www")

    def test_architecture_is_part_of_the_label(self) -> None:
        env = dataclasses.replace(self.env, arch="x86")

        locations = resolve_locations(self.app, env, "build", cwd=self.root)

        self.assertEqual(build_label(self.app, env), "Test-x86")
        self.assertEqual(locations.final_apk.name, "Test-x86.apk")
        self.assertEqual(locations.unsigned_apk.name, "Test-x86-unsigned.apk")

    def test_mapping_is_printable(self) -> None:
        mapping = resolve_locations(self.app, self.env, "build", cwd=self.root).to_mapping()

        self.assertEqual(mapping["final_apk"], str(self.root / "build" / "Test.apk"))
        self.assertTrue(all(isinstance(value, str) for value in mapping.values()))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
