"""Classify a deploy request against what is already on disk."""

from __future__ import annotations

from ..releases import ReleaseRepository
from ..runtime import RuntimeVersionMatcher, read_marker
from ..utils.logging import get_logger
from .models import Decision, DeployAction, DeploymentTarget, ReleaseState

logger = get_logger(__name__)


class DeploymentDecision:
    """Picks the action for a target revision.

    ======== ================== ======================
    state    runtime matches?   action
    ======== ================== ======================
    absent   -                  full-deploy
    current  yes                no-op
    current  no / unreadable    force-redeploy
    stale    -                  rollback-to-existing
    ======== ================== ======================

    A dangling or foreign ``current`` pointer, or a stale release without a
    readable runtime marker, raises
    :class:`~release_deployer.errors.InconsistentStateError` instead of
    being mistaken for "nothing to do".
    """

    def __init__(self, repository: ReleaseRepository, matcher: RuntimeVersionMatcher) -> None:
        self.repository = repository
        self.matcher = matcher

    def decide(self, target: DeploymentTarget, release_id: str) -> Decision:
        release_path = self.repository.release_path(release_id)
        current = self.repository.current_release()

        if not release_path.is_dir():
            decision = Decision(
                action=DeployAction.FULL_DEPLOY,
                state=ReleaseState.ABSENT,
                release_id=release_id,
                release_path=release_path,
                current_release=current,
                reason=f"no release directory for {release_id}",
            )
        elif current == release_path:
            comparison = self.matcher.compare(release_path, target.runtime_spec)
            decision = Decision(
                action=DeployAction.NO_OP if comparison.matched else DeployAction.FORCE_REDEPLOY,
                state=ReleaseState.CURRENT,
                release_id=release_id,
                release_path=release_path,
                current_release=current,
                reason=comparison.reason,
            )
        else:
            # only a release whose pipeline wrote a marker may become current
            read_marker(release_path, self.matcher.marker_file)
            decision = Decision(
                action=DeployAction.ROLLBACK_TO_EXISTING,
                state=ReleaseState.STALE,
                release_id=release_id,
                release_path=release_path,
                current_release=current,
                reason=f"release {release_id} exists but current is "
                       f"{current.name if current else 'unset'}",
            )

        logger.info(
            "🧭 %s is %s -> %s (%s)",
            release_id[:12],
            decision.state.value,
            decision.action.value,
            decision.reason,
        )
        return decision
