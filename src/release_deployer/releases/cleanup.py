"""Release retention."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List

from ..utils.logging import get_logger
from .repository import ReleaseRepository

logger = get_logger(__name__)


class ReleaseCleaner:
    """Keeps the newest ``keep_releases`` releases and deletes the rest."""

    def __init__(self, repository: ReleaseRepository) -> None:
        self.repository = repository

    def cleanup(self, keep_releases: int) -> List[Path]:
        keep_releases = max(1, keep_releases)
        releases = self.repository.all_releases()
        current = self.repository.current_release()
        doomed = [path for path in releases[:-keep_releases] if path != current]
        for path in doomed:
            logger.info("🧹 Removing old release %s", path.name)
            shutil.rmtree(path)
        return doomed
