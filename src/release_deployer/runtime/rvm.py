"""RVM-backed runtime and dependency collaborator."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from ..local import LocalCommandResult, LocalSession
from ..utils.logging import get_logger
from .specifier import RuntimeSpec

logger = get_logger(__name__)

DEFAULT_RVM_ROOT = "/usr/local/rvm"


def _as_spec(value: Union[str, RuntimeSpec]) -> RuntimeSpec:
    return value if isinstance(value, RuntimeSpec) else RuntimeSpec.parse(value)


class RvmManager:
    """Runs commands inside an RVM environment.

    The RVM root is passed in explicitly; it locates both the loader script
    and the gemset directories whose ownership the pipeline fixes up.
    """

    def __init__(
        self,
        session: LocalSession,
        rvm_root_path: str = DEFAULT_RVM_ROOT,
        bundle_without: str = "development test assets",
    ) -> None:
        self.session = session
        self.rvm_root_path = Path(rvm_root_path)
        self.bundle_without = bundle_without

    def wrap(self, spec: Union[str, RuntimeSpec], code: str) -> str:
        loader = self.rvm_root_path / "scripts" / "rvm"
        return (
            f"source {shlex.quote(str(loader))} && "
            f"rvm use {shlex.quote(str(_as_spec(spec)))} > /dev/null && {code}"
        )

    def run(
        self,
        spec: Union[str, RuntimeSpec],
        code: str,
        *,
        cwd: Optional[Path] = None,
        user: Optional[str] = None,
        environment: Optional[Mapping[str, str]] = None,
        stream_output: bool = True,
    ) -> LocalCommandResult:
        return self.session.run_checked(
            self.wrap(spec, code),
            cwd=str(cwd) if cwd else None,
            user=user,
            env=environment,
            stream_output=stream_output,
        )

    def create_namespace(self, version: str, namespace: str) -> None:
        logger.info("Creating gemset %s@%s", version, namespace)
        self.run(version, f"rvm gemset create {shlex.quote(namespace)}")

    def bind(
        self, spec: Union[str, RuntimeSpec], user: Optional[str] = None
    ) -> Dict[str, str]:
        """Initialise the environment for ``spec`` and return it."""
        result = self.run(spec, "env -0", user=user, stream_output=False)
        environment = {}
        for entry in result.stdout.split("\0"):
            key, sep, value = entry.partition("=")
            if sep and key:
                environment[key.strip()] = value
        return environment

    def namespace_path(self, spec: Union[str, RuntimeSpec]) -> Path:
        return self.rvm_root_path / "gems" / str(_as_spec(spec))

    def fix_namespace_ownership(self, spec: Union[str, RuntimeSpec], user: str) -> None:
        path = self.namespace_path(spec)
        self.session.run_checked(f"chown -R {shlex.quote(user)} {shlex.quote(str(path))}")

    def install_dependencies(
        self,
        release_path: Path,
        spec: Union[str, RuntimeSpec],
        *,
        user: Optional[str] = None,
        offline: bool = False,
    ) -> None:
        if offline:
            code = f"bundle install --without {self.bundle_without} --local"
        else:
            code = "bundle install"
        logger.info("Installing dependencies (%s)", "vendored cache" if offline else "network")
        self.run(spec, code, cwd=release_path, user=user)


def has_vendored_cache(release_path: Path) -> bool:
    return (release_path / "vendor" / "cache").is_dir()
