"""Filesystem view of a deploy target: releases, shared storage and ``current``."""

from __future__ import annotations

import grp
import os
import pwd
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..errors import InconsistentStateError
from ..utils.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_SUFFIX = ".snapshot"


class ReleaseRepository:
    """Owns ``<deploy_to>/releases``, ``<deploy_to>/shared`` and ``<deploy_to>/current``.

    ``current`` is a symlink; it is only ever replaced atomically, so readers
    see either the old release or the new one.
    """

    def __init__(self, deploy_to: Union[str, Path]) -> None:
        self.deploy_to = Path(os.path.abspath(deploy_to))
        self.releases_path = self.deploy_to / "releases"
        self.shared_path = self.deploy_to / "shared"
        self.current_path = self.deploy_to / "current"
        self.cached_copy_path = self.shared_path / "cached-copy"

    def release_path(self, release_id: str) -> Path:
        if not release_id or "/" in release_id or release_id.startswith("."):
            raise ValueError(f"Invalid release id: {release_id!r}")
        return self.releases_path / release_id

    def exists(self, release_id: str) -> bool:
        return self.release_path(release_id).is_dir()

    def all_releases(self) -> List[Path]:
        """Release directories, oldest first."""
        if not self.releases_path.is_dir():
            return []
        releases = [
            path for path in self.releases_path.iterdir()
            if path.is_dir() and not path.name.startswith(".")
        ]
        return sorted(releases, key=lambda path: (path.stat().st_mtime, path.name))

    def pointer_target(self) -> Optional[str]:
        """Raw link target of ``current`` without any validation."""
        if not self.current_path.is_symlink():
            return None
        return os.readlink(self.current_path)

    def current_release(self) -> Optional[Path]:
        """Release directory ``current`` points at, or None when unset.

        Raises:
            InconsistentStateError: ``current`` is not a symlink, dangles, or
                points outside ``releases/``.
        """
        if not self.current_path.is_symlink():
            if self.current_path.exists():
                raise InconsistentStateError(f"{self.current_path} exists but is not a symlink")
            return None

        target = self._absolute(os.readlink(self.current_path))
        if not target.is_dir():
            raise InconsistentStateError(
                f"{self.current_path} points to missing release {target}"
            )
        if target.parent != self._absolute(str(self.releases_path)):
            raise InconsistentStateError(
                f"{self.current_path} points outside {self.releases_path}: {target}"
            )
        return target

    def is_current(self, release_path: Path) -> bool:
        current = self.current_release()
        return current is not None and current == self._absolute(str(release_path))

    def previous_release(self) -> Optional[Path]:
        """The release deployed before the current one (by age)."""
        current = self.current_release()
        releases = self.all_releases()
        if current is None or current not in releases:
            return None
        index = releases.index(current)
        return releases[index - 1] if index > 0 else None

    def verify_directories(self, shared_dirs: Iterable[str] = ()) -> None:
        self.deploy_to.mkdir(parents=True, exist_ok=True)
        self.releases_path.mkdir(exist_ok=True)
        self.shared_path.mkdir(exist_ok=True)
        for name in shared_dirs:
            (self.shared_path / name).mkdir(parents=True, exist_ok=True)

    def enforce_ownership(self, user: Optional[str], group: Optional[str] = None) -> None:
        """Recursively chown the deploy target; a no-op without a user."""
        if not user or not self.deploy_to.exists():
            return
        uid = pwd.getpwnam(user).pw_uid
        gid = grp.getgrnam(group).gr_gid if group else -1
        os.lchown(self.deploy_to, uid, gid)
        for root, dirs, files in os.walk(self.deploy_to):
            for name in dirs + files:
                os.lchown(os.path.join(root, name), uid, gid)

    def switch_current(self, release_path: Path) -> None:
        """Point ``current`` at ``release_path`` in a single rename."""
        if not release_path.is_dir():
            raise InconsistentStateError(f"Cannot switch to missing release {release_path}")
        self._replace_pointer(str(release_path))

    def restore_pointer(self, target: Optional[str]) -> None:
        """Put ``current`` back to a raw value from :meth:`pointer_target`."""
        if target is None:
            if self.current_path.is_symlink():
                self.current_path.unlink()
                self._sync_dir()
            return
        self._replace_pointer(target)

    def remove_release(self, release_path: Path) -> None:
        if self.is_current(release_path):
            raise InconsistentStateError(f"Refusing to remove current release {release_path}")
        if release_path.exists():
            shutil.rmtree(release_path)

    def snapshot(self, release_path: Path) -> Path:
        snapshot = self._snapshot_path(release_path)
        if snapshot.exists():
            shutil.rmtree(snapshot)
        shutil.copytree(release_path, snapshot, symlinks=True)
        return snapshot

    def restore_snapshot(self, release_path: Path) -> None:
        snapshot = self._snapshot_path(release_path)
        if not snapshot.is_dir():
            raise InconsistentStateError(f"No snapshot to restore for {release_path}")
        failed = release_path.parent / f".{release_path.name}.failed"
        if failed.exists():
            shutil.rmtree(failed)

        raw_pointer = self.pointer_target()
        serving = raw_pointer is not None and self._absolute(raw_pointer) == self._absolute(
            str(release_path)
        )
        if not serving:
            if release_path.exists():
                os.rename(release_path, failed)
            os.rename(snapshot, release_path)
        else:
            # current keeps resolving: it serves the snapshot while the
            # release path is swapped, then moves back in one rename
            self._replace_pointer(str(snapshot))
            if release_path.exists():
                os.rename(release_path, failed)
            shutil.copytree(snapshot, release_path, symlinks=True)
            self._replace_pointer(raw_pointer)
            shutil.rmtree(snapshot)

        if failed.exists():
            shutil.rmtree(failed)

    def discard_snapshot(self, release_path: Path) -> None:
        snapshot = self._snapshot_path(release_path)
        if snapshot.exists():
            shutil.rmtree(snapshot)

    def _snapshot_path(self, release_path: Path) -> Path:
        return release_path.parent / f".{release_path.name}{SNAPSHOT_SUFFIX}"

    def _replace_pointer(self, target: str) -> None:
        tmp_link = self.deploy_to / f".current.{os.getpid()}.tmp"
        if tmp_link.is_symlink() or tmp_link.exists():
            tmp_link.unlink()
        os.symlink(target, tmp_link)
        os.replace(tmp_link, self.current_path)
        self._sync_dir()

    def _sync_dir(self) -> None:
        fd = os.open(self.deploy_to, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def _absolute(self, target: str) -> Path:
        return Path(os.path.normpath(os.path.join(os.path.abspath(self.deploy_to), target)))
