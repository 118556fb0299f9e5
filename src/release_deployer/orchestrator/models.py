"""Data models for deployment decisions and pipeline runs."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..runtime import RuntimeSpec

DEFAULT_SYMLINKS = {"system": "public/system", "pids": "tmp/pids", "log": "log"}
DEFAULT_SYMLINK_BEFORE_MIGRATE = {"config/database.yml": "config/database.yml"}
DEFAULT_PURGE_BEFORE_SYMLINK = ("log", "tmp/pids", "public/system")
DEFAULT_CREATE_DIRS_BEFORE_SYMLINK = ("tmp", "public", "config")

# A hook handler is either a callable taking a HookContext or a shell command.
HookHandler = Union[Callable[[Any], None], str]


class DeployAction(Enum):
    """What a deploy invocation has to do"""
    NO_OP = "no-op"
    FULL_DEPLOY = "full-deploy"
    FORCE_REDEPLOY = "force-redeploy"
    ROLLBACK_TO_EXISTING = "rollback-to-existing"


class ReleaseState(Enum):
    """Where the target revision's release stands relative to ``current``"""
    ABSENT = "absent"
    CURRENT = "current"
    STALE = "stale"


class StepStatus(Enum):
    """Step execution status"""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    IGNORED = "ignored"        # failed, but the step is best-effort


@dataclass(frozen=True)
class DeploymentTarget:
    """Desired state for one deploy invocation.

    Built once from configuration and CLI flags and never mutated while the
    invocation runs.
    """
    deploy_to: str
    repo: str
    runtime: str
    revision: str = "HEAD"
    user: Optional[str] = None
    group: Optional[str] = None
    migrate: bool = False
    migration_command: str = "bundle exec rake db:migrate"
    precompile_assets: bool = False
    environment: Mapping[str, str] = field(default_factory=dict)
    hooks: Mapping[str, Tuple[HookHandler, ...]] = field(default_factory=dict)
    symlinks: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_SYMLINKS))
    symlink_before_migrate: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_SYMLINK_BEFORE_MIGRATE)
    )
    purge_before_symlink: Tuple[str, ...] = DEFAULT_PURGE_BEFORE_SYMLINK
    create_dirs_before_symlink: Tuple[str, ...] = DEFAULT_CREATE_DIRS_BEFORE_SYMLINK
    restart_command: Optional[str] = None
    keep_releases: int = 5

    def __post_init__(self) -> None:
        # fail on a malformed specifier before anything touches the disk
        RuntimeSpec.parse(self.runtime)
        for name in ("environment", "symlinks", "symlink_before_migrate"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        hooks = {
            hook: (handlers,) if isinstance(handlers, str) else tuple(handlers)
            for hook, handlers in self.hooks.items()
        }
        object.__setattr__(self, "hooks", MappingProxyType(hooks))
        object.__setattr__(self, "purge_before_symlink", tuple(self.purge_before_symlink))
        object.__setattr__(
            self, "create_dirs_before_symlink", tuple(self.create_dirs_before_symlink)
        )

    @property
    def runtime_spec(self) -> RuntimeSpec:
        return RuntimeSpec.parse(self.runtime)

    @property
    def app_environment(self) -> str:
        return self.environment.get("RAILS_ENV") or "production"


@dataclass(frozen=True)
class Decision:
    """Outcome of classifying the target revision against on-disk state"""
    action: DeployAction
    state: ReleaseState
    release_id: str
    release_path: Path
    current_release: Optional[Path] = None
    reason: str = ""

    @property
    def runs_pipeline(self) -> bool:
        return self.action in (DeployAction.FULL_DEPLOY, DeployAction.FORCE_REDEPLOY)


@dataclass
class StepResult:
    """Result of one pipeline step"""
    ordinal: int
    name: str
    status: StepStatus
    duration: float = 0.0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in (StepStatus.SUCCESS, StepStatus.SKIPPED, StepStatus.IGNORED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordinal": self.ordinal,
            "name": self.name,
            "status": self.status.value,
            "duration": round(self.duration, 3),
            "error": self.error,
        }


@dataclass
class DeploymentResult:
    """What a deploy invocation did"""
    decision: Decision
    steps: List[StepResult] = field(default_factory=list)
    success: bool = True
    error: Optional[str] = None

    @property
    def action(self) -> DeployAction:
        return self.decision.action

    @property
    def failed_step(self) -> Optional[StepResult]:
        for step in self.steps:
            if step.status == StepStatus.FAILED:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.decision.action.value,
            "state": self.decision.state.value,
            "release": str(self.decision.release_path),
            "reason": self.decision.reason,
            "success": self.success,
            "error": self.error,
            "steps": [step.to_dict() for step in self.steps],
        }
