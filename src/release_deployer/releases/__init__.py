"""Release directories, the current pointer and retention cleanup."""

from .cleanup import ReleaseCleaner
from .repository import ReleaseRepository

__all__ = ["ReleaseCleaner", "ReleaseRepository"]
