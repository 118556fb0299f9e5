"""Undo a failed provisioning attempt."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from ..errors import RollbackError
from ..releases import ReleaseRepository
from ..utils.logging import get_logger
from .models import DeployAction

logger = get_logger(__name__)


class RollbackManager:
    """Wraps a pipeline run so a failure leaves the previous release serving.

    - ``current`` is put back to whatever it pointed at before the run.
    - A new release directory is deleted.
    - A force-redeployed release is restored from the snapshot taken before
      the run, so the serving release is byte-for-byte what it was.

    The original exception is always re-raised. If cleanup fails as well a
    :class:`RollbackError` carrying both is raised instead, chained from the
    original.
    """

    def __init__(self, repository: ReleaseRepository) -> None:
        self.repository = repository

    @contextmanager
    def guard(self, release_path: Path, action: DeployAction) -> Iterator[None]:
        prior_pointer = self.repository.pointer_target()
        in_place = action is DeployAction.FORCE_REDEPLOY
        if in_place:
            snapshot = self.repository.snapshot(release_path)
            logger.info("📸 Snapshot of %s saved to %s", release_path.name, snapshot.name)

        try:
            yield
        except BaseException as exc:
            logger.error("💥 Deployment of %s failed: %s", release_path.name, exc)
            cleanup_errors = self.rollback(release_path, prior_pointer, in_place=in_place)
            if cleanup_errors:
                raise RollbackError(exc, cleanup_errors) from exc
            raise

        if in_place:
            try:
                self.repository.discard_snapshot(release_path)
            except OSError as exc:
                logger.warning("Could not remove snapshot of %s: %s", release_path.name, exc)

    @contextmanager
    def guard_pointer(self) -> Iterator[None]:
        """Put ``current`` back if the wrapped switch fails; releases are left on disk."""
        prior_pointer = self.repository.pointer_target()
        try:
            yield
        except BaseException as exc:
            logger.error("💥 Switch failed: %s", exc)
            cleanup_errors = self._restore_pointer(prior_pointer)
            if cleanup_errors:
                raise RollbackError(exc, cleanup_errors) from exc
            raise

    def rollback(
        self, release_path: Path, prior_pointer: Optional[str], *, in_place: bool
    ) -> List[Exception]:
        errors = self._restore_pointer(prior_pointer)

        try:
            if in_place:
                self.repository.restore_snapshot(release_path)
                logger.info("↩️  %s restored from snapshot", release_path.name)
            elif release_path.exists():
                self.repository.remove_release(release_path)
                logger.info("🗑️  Removed failed release %s", release_path.name)
        except Exception as exc:
            logger.error("Failed to clean up %s: %s", release_path.name, exc)
            errors.append(exc)

        return errors

    def _restore_pointer(self, prior_pointer: Optional[str]) -> List[Exception]:
        try:
            if self.repository.pointer_target() != prior_pointer:
                self.repository.restore_pointer(prior_pointer)
                logger.info("↩️  current restored to %s", prior_pointer or "unset")
        except Exception as exc:
            logger.error("Failed to restore current pointer: %s", exc)
            return [exc]
        return []
