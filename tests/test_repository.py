import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from release_deployer.errors import InconsistentStateError
from release_deployer.releases import ReleaseCleaner, ReleaseRepository


class ReleaseRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.repository = ReleaseRepository(Path(self._tmp.name) / "app")
        self.repository.verify_directories(["config", "log"])

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _release(self, name: str, mtime: int) -> Path:
        path = self.repository.release_path(name)
        path.mkdir()
        os.utime(path, (mtime, mtime))
        return path

    def test_verify_directories_creates_layout(self) -> None:
        self.assertTrue(self.repository.releases_path.is_dir())
        self.assertTrue((self.repository.shared_path / "config").is_dir())
        self.assertTrue((self.repository.shared_path / "log").is_dir())

    def test_current_is_unset_initially(self) -> None:
        self.assertIsNone(self.repository.current_release())
        self.assertIsNone(self.repository.pointer_target())

    def test_switch_current_replaces_pointer(self) -> None:
        first = self._release("r1", 100)
        second = self._release("r2", 200)

        self.repository.switch_current(first)
        self.assertEqual(self.repository.current_release(), first)
        self.repository.switch_current(second)

        self.assertTrue(self.repository.current_path.is_symlink())
        self.assertEqual(self.repository.current_release(), second)
        self.assertTrue(self.repository.is_current(second))
        self.assertFalse(self.repository.is_current(first))
        leftovers = [p.name for p in self.repository.deploy_to.iterdir() if p.name.startswith(".current")]
        self.assertEqual(leftovers, [])

    def test_switch_to_missing_release_is_refused(self) -> None:
        with self.assertRaises(InconsistentStateError):
            self.repository.switch_current(self.repository.release_path("nope"))
        self.assertFalse(self.repository.current_path.is_symlink())

    def test_restore_pointer_unsets_or_repoints(self) -> None:
        first = self._release("r1", 100)
        self.repository.switch_current(first)
        raw = self.repository.pointer_target()

        self.repository.restore_pointer(None)
        self.assertIsNone(self.repository.current_release())

        self.repository.restore_pointer(raw)
        self.assertEqual(self.repository.current_release(), first)

    def test_relative_pointer_is_understood(self) -> None:
        release = self._release("r1", 100)
        os.symlink("releases/r1", self.repository.current_path)

        self.assertEqual(self.repository.current_release(), release)

    def test_inconsistent_pointers_raise(self) -> None:
        os.symlink(str(self.repository.releases_path / "gone"), self.repository.current_path)
        with self.assertRaises(InconsistentStateError):
            self.repository.current_release()

        self.repository.current_path.unlink()
        os.symlink(str(self.repository.shared_path), self.repository.current_path)
        with self.assertRaises(InconsistentStateError):
            self.repository.current_release()

        self.repository.current_path.unlink()
        self.repository.current_path.mkdir()
        with self.assertRaises(InconsistentStateError):
            self.repository.current_release()

    def test_all_releases_sorted_by_age_without_hidden_dirs(self) -> None:
        newer = self._release("zzz", 200)
        older = self._release("aaa", 300)
        oldest = self._release("mmm", 100)
        (self.repository.releases_path / ".aaa.snapshot").mkdir()

        self.assertEqual(self.repository.all_releases(), [oldest, newer, older])

    def test_previous_release(self) -> None:
        first = self._release("r1", 100)
        second = self._release("r2", 200)
        self.assertIsNone(self.repository.previous_release())

        self.repository.switch_current(second)
        self.assertEqual(self.repository.previous_release(), first)
        self.repository.switch_current(first)
        self.assertIsNone(self.repository.previous_release())

    def test_remove_release_refuses_current(self) -> None:
        release = self._release("r1", 100)
        self.repository.switch_current(release)

        with self.assertRaises(InconsistentStateError):
            self.repository.remove_release(release)
        self.assertTrue(release.exists())

    def test_snapshot_round_trip(self) -> None:
        release = self._release("r1", 100)
        (release / "VERSION").write_text("old", encoding="utf-8")
        self.repository.snapshot(release)

        (release / "VERSION").write_text("new", encoding="utf-8")
        (release / "extra").write_text("junk", encoding="utf-8")
        self.repository.restore_snapshot(release)

        self.assertEqual((release / "VERSION").read_text(encoding="utf-8"), "old")
        self.assertFalse((release / "extra").exists())
        self.assertEqual([p.name for p in self.repository.releases_path.iterdir()], ["r1"])

    def test_restoring_serving_release_keeps_current_resolvable(self) -> None:
        release = self._release("r1", 100)
        (release / "VERSION").write_text("old", encoding="utf-8")
        self.repository.switch_current(release)
        raw = self.repository.pointer_target()
        self.repository.snapshot(release)
        (release / "VERSION").write_text("new", encoding="utf-8")
        seen = []
        real_rename = os.rename

        def checked_rename(src, dst):
            seen.append(self.repository.current_release())
            real_rename(src, dst)
            seen.append(self.repository.current_release())

        with mock.patch("release_deployer.releases.repository.os.rename", side_effect=checked_rename):
            self.repository.restore_snapshot(release)

        self.assertTrue(seen)
        self.assertTrue(all(path is not None and path.is_dir() for path in seen))
        self.assertEqual(self.repository.pointer_target(), raw)
        self.assertEqual((release / "VERSION").read_text(encoding="utf-8"), "old")
        self.assertEqual([p.name for p in self.repository.releases_path.iterdir()], ["r1"])

    def test_restore_without_snapshot_raises(self) -> None:
        release = self._release("r1", 100)
        with self.assertRaises(InconsistentStateError):
            self.repository.restore_snapshot(release)

    def test_invalid_release_ids_are_rejected(self) -> None:
        for bad in ("", "../etc", ".hidden"):
            with self.assertRaises(ValueError):
                self.repository.release_path(bad)


class ReleaseCleanerTests(unittest.TestCase):
    def test_keeps_newest_releases_and_current(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            repository = ReleaseRepository(Path(tmp) / "app")
            repository.verify_directories()
            paths = []
            for index, name in enumerate(["r1", "r2", "r3", "r4"]):
                path = repository.release_path(name)
                path.mkdir()
                os.utime(path, (100 + index, 100 + index))
                paths.append(path)
            repository.switch_current(paths[0])

            removed = ReleaseCleaner(repository).cleanup(keep_releases=2)

            self.assertEqual(removed, [paths[1]])
            self.assertEqual(
                sorted(p.name for p in repository.all_releases()), ["r1", "r3", "r4"]
            )


if __name__ == "__main__":
    unittest.main()
