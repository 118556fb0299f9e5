"""Atomic switch of ``current`` to a provisioned release."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Mapping, Optional

from ..errors import InconsistentStateError
from ..local import LocalSession
from ..releases import ReleaseRepository
from ..utils.logging import get_logger
from .hooks import HookRegistry
from .models import DeploymentTarget

logger = get_logger(__name__)


def _remove_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


class CutoverSwitch:
    """Links shared paths into a release and makes it ``current``.

    ``before_symlink`` runs before the pointer moves and ``before_restart``
    right after it. The pointer itself is replaced with one rename, so no
    observer ever sees ``current`` missing or half-written.
    """

    def __init__(
        self,
        repository: ReleaseRepository,
        hooks: HookRegistry,
        session: LocalSession,
    ) -> None:
        self.repository = repository
        self.hooks = hooks
        self.session = session

    def cutover(
        self,
        release_path: Path,
        target: DeploymentTarget,
        extra_symlinks: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.before(release_path, target)
        self.commit(release_path, target, extra_symlinks)
        self.after(release_path, target)

    def before(self, release_path: Path, target: DeploymentTarget) -> None:
        self.hooks.invoke("before_symlink", release_path, target, self.session)

    def after(self, release_path: Path, target: DeploymentTarget) -> None:
        self.hooks.invoke("before_restart", release_path, target, self.session)

    def commit(
        self,
        release_path: Path,
        target: DeploymentTarget,
        extra_symlinks: Optional[Mapping[str, str]] = None,
    ) -> None:
        for relative in target.purge_before_symlink:
            _remove_path(release_path / relative)
        for relative in target.create_dirs_before_symlink:
            (release_path / relative).mkdir(parents=True, exist_ok=True)

        links = dict(target.symlinks)
        links.update(extra_symlinks or {})
        self.link_shared(release_path, links)

        previous = self.repository.pointer_target()
        self.repository.switch_current(release_path)
        if not self.repository.is_current(release_path):
            raise InconsistentStateError(f"current does not resolve to {release_path} after cutover")
        logger.info("🔀 current -> %s (was %s)", release_path.name, previous or "unset")

    def link_shared(self, release_path: Path, links: Mapping[str, str]) -> None:
        """Symlink ``shared/<key>`` to ``<release>/<value>`` for each entry."""
        for shared_relative, release_relative in links.items():
            source = self.repository.shared_path / shared_relative
            dest = release_path / release_relative
            dest.parent.mkdir(parents=True, exist_ok=True)
            _remove_path(dest)
            os.symlink(source, dest)
