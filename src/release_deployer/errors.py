"""Error taxonomy for release deployments."""

from __future__ import annotations

from typing import List, Optional


class DeploymentError(RuntimeError):
    """Base class for every failure surfaced by the deployer."""


class InconsistentStateError(DeploymentError):
    """On-disk release state contradicts itself (dangling pointer, broken release)."""


class RuntimeMarkerError(InconsistentStateError):
    """Raised when a release's runtime-version marker is missing or unparsable."""

    def __init__(self, marker_path: str, detail: str) -> None:
        self.marker_path = marker_path
        self.detail = detail
        super().__init__(f"Runtime marker {marker_path}: {detail}")


class VersionMismatch(DeploymentError):
    """Recorded and desired runtime versions differ.

    Not raised to callers; the decision carries it as its reason so that
    a drift shows up in logs and results next to the chosen action.
    """

    def __init__(self, recorded: Optional[str], desired: str) -> None:
        self.recorded = recorded
        self.desired = desired
        super().__init__(f"release built for {recorded or 'unknown'}, target wants {desired}")


class StepFailure(DeploymentError):
    """A pipeline step raised; the deployment attempt is aborted."""

    def __init__(self, step_name: str, cause: BaseException) -> None:
        self.step_name = step_name
        self.cause = cause
        super().__init__(f"Step '{step_name}' failed: {cause}")


class NotificationError(DeploymentError):
    """Deploy notification could not be delivered."""


class RollbackError(DeploymentError):
    """Rollback cleanup failed after a step failure.

    ``original`` is the failure that triggered the rollback; it is also the
    ``__cause__`` of this exception.
    """

    def __init__(self, original: BaseException, cleanup_errors: List[BaseException]) -> None:
        self.original = original
        self.cleanup_errors = cleanup_errors
        details = "; ".join(str(err) for err in cleanup_errors)
        super().__init__(f"{original} (rollback incomplete: {details})")
