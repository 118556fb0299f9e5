import tempfile
import unittest
from pathlib import Path

from helpers import RecordingSession

from release_deployer.errors import RuntimeMarkerError
from release_deployer.runtime import (
    RuntimeSpec,
    RuntimeVersionMatcher,
    RvmManager,
    has_vendored_cache,
    read_marker,
    write_marker,
)


class RuntimeSpecTests(unittest.TestCase):
    def test_parse_with_and_without_namespace(self) -> None:
        spec = RuntimeSpec.parse("3.0.0@app")
        self.assertEqual(spec.version, "3.0.0")
        self.assertEqual(spec.namespace, "app")
        self.assertTrue(spec.has_namespace)
        self.assertEqual(str(spec), "3.0.0@app")

        plain = RuntimeSpec.parse("ruby-2.7.8")
        self.assertIsNone(plain.namespace)
        self.assertFalse(plain.has_namespace)
        self.assertEqual(str(plain), "ruby-2.7.8")

    def test_parse_rejects_malformed(self) -> None:
        for bad in ("", "@app", "3.0.0 @app"):
            with self.assertRaises(ValueError):
                RuntimeSpec.parse(bad)


class MarkerTests(unittest.TestCase):
    def test_marker_records_full_specifier(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            release = Path(tmp)
            marker = write_marker(release, RuntimeSpec.parse("3.0.0@app"))

            self.assertEqual(marker.read_text(encoding="utf-8"), "rvm use 3.0.0@app --create\n")
            self.assertEqual(read_marker(release), RuntimeSpec("3.0.0", "app"))

    def test_missing_or_garbled_marker_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            release = Path(tmp)
            with self.assertRaises(RuntimeMarkerError) as missing:
                read_marker(release)
            self.assertEqual(missing.exception.detail, "missing")

            (release / ".rvmrc").write_text("use ruby 3\n", encoding="utf-8")
            with self.assertRaises(RuntimeMarkerError):
                read_marker(release)

    def test_custom_marker_file_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            release = Path(tmp)
            write_marker(release, RuntimeSpec.parse("2.7.0"), marker_file=".runtime-version")
            self.assertEqual(read_marker(release, ".runtime-version").version, "2.7.0")


class RuntimeVersionMatcherTests(unittest.TestCase):
    def test_compares_version_segment_only(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            release = Path(tmp)
            write_marker(release, RuntimeSpec.parse("2.7.0@app"))
            matcher = RuntimeVersionMatcher()

            self.assertTrue(matcher.matches(release, "2.7.0@other"))
            self.assertTrue(matcher.matches(release, "2.7.0"))
            comparison = matcher.compare(release, "3.0.0@app")
            self.assertFalse(comparison.matched)
            self.assertEqual(comparison.recorded, RuntimeSpec("2.7.0", "app"))
            self.assertIsNone(comparison.error)

    def test_missing_marker_never_matches(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            comparison = RuntimeVersionMatcher().compare(Path(tmp), "3.0.0@app")

            self.assertFalse(comparison.matched)
            self.assertIsInstance(comparison.error, RuntimeMarkerError)
            self.assertIn("missing", comparison.reason)


class RvmManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = RecordingSession()
        self.rvm = RvmManager(self.session, rvm_root_path="/opt/rvm")

    def test_commands_run_inside_rvm_environment(self) -> None:
        self.rvm.run("3.0.0@app", "bundle exec rake db:migrate", cwd=Path("/srv/app"), user="deploy",
                     environment={"RAILS_ENV": "production"})

        command, kwargs = self.session.commands[0]
        self.assertEqual(
            command,
            "source /opt/rvm/scripts/rvm && rvm use 3.0.0@app > /dev/null && bundle exec rake db:migrate",
        )
        self.assertEqual(kwargs["cwd"], "/srv/app")
        self.assertEqual(kwargs["user"], "deploy")
        self.assertEqual(kwargs["env"], {"RAILS_ENV": "production"})

    def test_offline_install_uses_vendored_cache(self) -> None:
        self.rvm.install_dependencies(Path("/srv/app"), "3.0.0@app", offline=True)
        self.rvm.install_dependencies(Path("/srv/app"), "3.0.0@app", offline=False)

        first, second = (command for command, _ in self.session.commands)
        self.assertTrue(first.endswith("bundle install --without development test assets --local"))
        self.assertTrue(second.endswith("&& bundle install"))

    def test_namespace_path_and_ownership(self) -> None:
        self.assertEqual(self.rvm.namespace_path("3.0.0@app"), Path("/opt/rvm/gems/3.0.0@app"))

        self.rvm.fix_namespace_ownership("3.0.0@app", "deploy")

        self.assertEqual(self.session.commands[0][0], "chown -R deploy /opt/rvm/gems/3.0.0@app")

    def test_create_namespace(self) -> None:
        self.rvm.create_namespace("3.0.0", "app")

        self.assertIn("rvm use 3.0.0 > /dev/null && rvm gemset create app", self.session.commands[0][0])

    def test_has_vendored_cache(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            release = Path(tmp)
            self.assertFalse(has_vendored_cache(release))
            (release / "vendor" / "cache").mkdir(parents=True)
            self.assertTrue(has_vendored_cache(release))


if __name__ == "__main__":
    unittest.main()
