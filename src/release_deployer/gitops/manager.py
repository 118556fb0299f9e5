"""Git-based source fetching for releases."""

from __future__ import annotations

import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..errors import DeploymentError
from ..utils.logging import get_logger

logger = get_logger(__name__)

_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


class GitCommandError(DeploymentError):
    """Raised when a git command fails."""

    def __init__(self, command: list[str], exit_code: int, stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Git command {' '.join(command)} failed with code {exit_code}: {stderr}")


@dataclass
class GitCloneResult:
    """Details about a completed clone/update of the cached checkout."""

    commit_sha: str
    path: Path


class GitRepositoryManager:
    """Wraps `git` CLI commands for the cached checkout a release is copied from."""

    def __init__(self, git_binary: str = "git") -> None:
        self.git_binary = git_binary

    def resolve_revision(self, repo_url: str, revision: str) -> str:
        """Turn a branch, tag or SHA into the commit SHA naming the release."""
        if _SHA_RE.match(revision):
            return revision
        output = self._run(["ls-remote", repo_url, revision])
        for line in output.splitlines():
            sha, _, ref = line.partition("\t")
            if ref in (revision, f"refs/heads/{revision}", f"refs/tags/{revision}^{{}}"):
                return sha
        first = output.split("\t", 1)[0].strip()
        if _SHA_RE.match(first):
            return first
        raise GitCommandError(
            [self.git_binary, "ls-remote", repo_url, revision],
            1,
            f"revision {revision!r} not found in {repo_url}",
        )

    def update_cached_repo(self, repo_url: str, revision: str, cached_dir: Path) -> GitCloneResult:
        cached_dir = cached_dir.resolve()
        if (cached_dir / ".git").exists():
            self._run(["remote", "set-url", "origin", repo_url], cwd=cached_dir)
            self._run(["fetch", "--prune", "--tags", "origin"], cwd=cached_dir)
        else:
            if cached_dir.exists():
                shutil.rmtree(cached_dir, ignore_errors=True)
            cached_dir.parent.mkdir(parents=True, exist_ok=True)
            self._run(["clone", "--no-checkout", repo_url, str(cached_dir)])

        self._run(["checkout", "--force", "--detach", revision], cwd=cached_dir)
        self._run(["clean", "-d", "-f"], cwd=cached_dir)
        commit_sha = self._run(["rev-parse", "HEAD"], cwd=cached_dir).strip()
        logger.info("Cached checkout %s at %s", cached_dir, commit_sha[:12])
        return GitCloneResult(commit_sha=commit_sha, path=cached_dir)

    def materialize(self, cached_dir: Path, release_path: Path) -> None:
        """Copy the cached checkout into a fresh release directory."""
        if release_path.exists():
            raise FileExistsError(f"Release directory already exists: {release_path}")
        release_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(
            cached_dir, release_path, symlinks=True, ignore=shutil.ignore_patterns(".git")
        )

    def _run(self, args: list[str], cwd: Optional[Path] = None) -> str:
        command = [self.git_binary] + args
        process = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            check=False,
        )
        if process.returncode != 0:
            raise GitCommandError(command, process.returncode, process.stderr.strip())
        return process.stdout
