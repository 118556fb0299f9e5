"""Application restart collaborator."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

from ..local import LocalSession
from ..utils.logging import get_logger

logger = get_logger(__name__)


class ProcessRestarter:
    """Restarts the application serving a release.

    With a ``restart_command`` the command runs inside the release directory.
    Without one, ``tmp/restart.txt`` is touched, which app servers such as
    Passenger watch for.
    """

    def __init__(self, session: LocalSession, restart_command: Optional[str] = None) -> None:
        self.session = session
        self.restart_command = restart_command

    def restart(
        self,
        release_path: Path,
        *,
        user: Optional[str] = None,
        environment: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not self.restart_command:
            marker = release_path / "tmp" / "restart.txt"
            marker.parent.mkdir(parents=True, exist_ok=True)
            marker.touch()
            logger.info("♻️  Touched %s", marker)
            return

        logger.info("♻️  Restarting: %s", self.restart_command)
        self.session.run_checked(
            self.restart_command,
            cwd=str(release_path),
            user=user,
            env=dict(environment or {}),
        )
