"""Local command execution session."""

from __future__ import annotations

import getpass
import os
import selectors
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ..errors import DeploymentError
from ..utils.logging import get_logger

logger = get_logger(__name__)


class CommandError(DeploymentError):
    """Raised when a checked command exits with a non-zero status."""

    def __init__(self, result: "LocalCommandResult") -> None:
        self.result = result
        detail = result.stderr or result.stdout
        super().__init__(
            f"Command `{result.command}` failed with code {result.exit_status}: {detail}"
        )


@dataclass
class LocalCommandResult:
    """Result of executing a local command."""
    command: str
    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class LocalSession:
    """
    Local command execution session.

    Every collaborator that shells out (git, rvm, bundler, restart) goes
    through a session so tests can swap in a recording fake.
    """

    def __init__(
        self,
        working_dir: Optional[str] = None,
        *,
        default_timeout: int = 1800,
        shell: str = "/bin/bash",
    ) -> None:
        """
        Initialize local session.

        Args:
            working_dir: Default working directory for commands.
            default_timeout: Total timeout in seconds applied when a call passes none.
            shell: Shell executable used to interpret command strings.
        """
        self.working_dir = working_dir or os.getcwd()
        self.default_timeout = default_timeout
        self.shell = shell
        self._current_user = getpass.getuser()

    def __enter__(self) -> "LocalSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def run(
        self,
        command: str,
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        user: Optional[str] = None,
        timeout: Optional[int] = None,
        stream_output: bool = False,
    ) -> LocalCommandResult:
        """
        Execute a command locally.

        Args:
            command: The shell command to execute
            cwd: Working directory (defaults to the session's working_dir)
            env: Extra environment variables layered over os.environ
            user: Run as this user via sudo when it differs from the current user
            timeout: Total timeout in seconds
            stream_output: Log output lines as they arrive

        Returns:
            LocalCommandResult with stdout, stderr, and exit status
        """
        timeout = timeout or self.default_timeout
        actual_command = self._wrap_user(command, user, env)
        workdir = str(cwd or self.working_dir)
        logger.debug("$ %s (cwd=%s)", actual_command, workdir)

        if stream_output:
            return self._run_streaming(actual_command, workdir, env, timeout)
        return self._run_blocking(actual_command, workdir, env, timeout)

    def run_checked(self, command: str, **kwargs) -> LocalCommandResult:
        """Like :meth:`run` but raise :class:`CommandError` on failure."""
        result = self.run(command, **kwargs)
        if not result.ok:
            raise CommandError(result)
        return result

    def _wrap_user(
        self, command: str, user: Optional[str], env: Optional[Mapping[str, str]]
    ) -> str:
        if not user or user == self._current_user:
            return command
        # sudo drops the caller's environment, so pass the extras explicitly
        assignments = " ".join(
            f"{key}={shlex.quote(str(value))}" for key, value in (env or {}).items()
        )
        prefix = f"sudo -u {shlex.quote(user)} -H"
        if assignments:
            prefix = f"{prefix} env {assignments}"
        return f"{prefix} {self.shell} -c {shlex.quote(command)}"

    def _run_blocking(
        self,
        command: str,
        cwd: str,
        env: Optional[Mapping[str, str]],
        timeout: int,
    ) -> LocalCommandResult:
        try:
            result = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=cwd,
                env=self._get_env(env),
                executable=self.shell,
            )
        except subprocess.TimeoutExpired:
            return LocalCommandResult(
                command=command,
                stdout="",
                stderr=f"Command timed out after {timeout} seconds",
                exit_status=-1,
            )
        except OSError as exc:
            return LocalCommandResult(
                command=command,
                stdout="",
                stderr=str(exc),
                exit_status=-1,
            )

        return LocalCommandResult(
            command=command,
            stdout=result.stdout.strip(),
            stderr=result.stderr.strip(),
            exit_status=result.returncode,
        )

    def _run_streaming(
        self,
        command: str,
        cwd: str,
        env: Optional[Mapping[str, str]],
        timeout: int,
    ) -> LocalCommandResult:
        """Run command and log each output line as it arrives."""
        try:
            process = subprocess.Popen(
                command,
                shell=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                cwd=cwd,
                env=self._get_env(env),
                executable=self.shell,
            )
        except OSError as exc:
            return LocalCommandResult(command=command, stdout="", stderr=str(exc), exit_status=-1)

        stdout_chunks = []
        stderr_chunks = []
        start_time = time.time()

        sel = selectors.DefaultSelector()
        sel.register(process.stdout, selectors.EVENT_READ)
        sel.register(process.stderr, selectors.EVENT_READ)
        try:
            while process.poll() is None:
                for key, _ in sel.select(timeout=0.1):
                    line = key.fileobj.readline()
                    if not line:
                        continue
                    if key.fileobj is process.stdout:
                        stdout_chunks.append(line)
                    else:
                        stderr_chunks.append(line)
                    logger.info("   │ %s", line.rstrip())

                if time.time() - start_time > timeout:
                    process.kill()
                    process.wait()
                    return LocalCommandResult(
                        command=command,
                        stdout="".join(stdout_chunks).strip(),
                        stderr=f"Command exceeded {timeout} seconds total execution time",
                        exit_status=-2,
                    )

            # drain whatever arrived after the last select
            for line in process.stdout:
                stdout_chunks.append(line)
                logger.info("   │ %s", line.rstrip())
            for line in process.stderr:
                stderr_chunks.append(line)
                logger.info("   │ %s", line.rstrip())
        finally:
            sel.close()

        return LocalCommandResult(
            command=command,
            stdout="".join(stdout_chunks).strip(),
            stderr="".join(stderr_chunks).strip(),
            exit_status=process.returncode or 0,
        )

    def _get_env(self, extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
        """Get environment variables for subprocess."""
        env = os.environ.copy()
        for key, value in (extra or {}).items():
            env[key] = str(value)
        return env
