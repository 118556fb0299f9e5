"""Runtime-version specifiers, release markers and the RVM collaborator."""

from .rvm import DEFAULT_RVM_ROOT, RvmManager, has_vendored_cache
from .specifier import (
    DEFAULT_MARKER_FILE,
    RuntimeSpec,
    RuntimeVersionMatcher,
    VersionComparison,
    read_marker,
    write_marker,
)

__all__ = [
    "DEFAULT_MARKER_FILE",
    "DEFAULT_RVM_ROOT",
    "RuntimeSpec",
    "RuntimeVersionMatcher",
    "RvmManager",
    "VersionComparison",
    "has_vendored_cache",
    "read_marker",
    "write_marker",
]
