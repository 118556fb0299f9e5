"""Runtime-version specifiers and the per-release marker file."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..errors import RuntimeMarkerError, VersionMismatch
from ..utils.logging import get_logger

logger = get_logger(__name__)

NAMESPACE_SEPARATOR = "@"
DEFAULT_MARKER_FILE = ".rvmrc"

_MARKER_RE = re.compile(r"^rvm use ([^@\s]+)(?:@(\S*))?")


@dataclass(frozen=True)
class RuntimeSpec:
    """A ``<version>`` or ``<version>@<namespace>`` runtime specifier."""

    version: str
    namespace: Optional[str] = None

    @classmethod
    def parse(cls, value: str) -> "RuntimeSpec":
        text = (value or "").strip()
        version, _, namespace = text.partition(NAMESPACE_SEPARATOR)
        if not version or any(ch.isspace() for ch in text):
            raise ValueError(f"Invalid runtime specifier: {value!r}")
        return cls(version=version, namespace=namespace or None)

    @property
    def has_namespace(self) -> bool:
        return bool(self.namespace)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.version}{NAMESPACE_SEPARATOR}{self.namespace}"
        return self.version


def marker_content(spec: RuntimeSpec) -> str:
    return f"rvm use {spec} --create\n"


def write_marker(release_path: Path, spec: RuntimeSpec, marker_file: str = DEFAULT_MARKER_FILE) -> Path:
    path = release_path / marker_file
    path.write_text(marker_content(spec), encoding="utf-8")
    return path


def read_marker(release_path: Path, marker_file: str = DEFAULT_MARKER_FILE) -> RuntimeSpec:
    """Return the specifier recorded in a release, raising if it cannot be read."""
    path = release_path / marker_file
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RuntimeMarkerError(str(path), "missing") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise RuntimeMarkerError(str(path), f"unreadable ({exc})") from exc

    match = _MARKER_RE.match(text.strip())
    if not match:
        raise RuntimeMarkerError(str(path), f"unparsable content {text.strip()[:60]!r}")
    return RuntimeSpec(version=match.group(1), namespace=match.group(2) or None)


@dataclass(frozen=True)
class VersionComparison:
    recorded: Optional[RuntimeSpec]
    desired: RuntimeSpec
    error: Optional[Exception] = None

    @property
    def matched(self) -> bool:
        return self.recorded is not None and self.recorded.version == self.desired.version

    @property
    def reason(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.matched:
            return f"runtime {self.desired.version} already active"
        return str(VersionMismatch(str(self.recorded) if self.recorded else None, str(self.desired)))


class RuntimeVersionMatcher:
    """Compares the version a release was built with against the desired one.

    Only the version segment takes part in the comparison; the namespace is
    ignored. A marker that cannot be read is never a match.
    """

    def __init__(self, marker_file: str = DEFAULT_MARKER_FILE) -> None:
        self.marker_file = marker_file

    def compare(self, release_path: Path, desired: Union[str, RuntimeSpec]) -> VersionComparison:
        if isinstance(desired, str):
            desired = RuntimeSpec.parse(desired)
        try:
            recorded = read_marker(release_path, self.marker_file)
        except RuntimeMarkerError as exc:
            logger.warning("⚠️ %s; treating release as out of date", exc)
            return VersionComparison(recorded=None, desired=desired, error=exc)
        return VersionComparison(recorded=recorded, desired=desired)

    def matches(self, release_path: Path, desired: Union[str, RuntimeSpec]) -> bool:
        return self.compare(release_path, desired).matched
