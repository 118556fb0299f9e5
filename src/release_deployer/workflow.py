"""High-level workflow: decide, then deploy, roll back or do nothing."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import AppConfig
from .errors import DeploymentError, InconsistentStateError, RuntimeMarkerError
from .gitops import GitRepositoryManager
from .local import LocalSession
from .notify import AirbrakeNotifier
from .orchestrator import (
    CutoverSwitch,
    DeployAction,
    DeploymentDecision,
    DeploymentResult,
    DeploymentTarget,
    HookRegistry,
    PipelineExecutor,
    RollbackManager,
    StepContext,
    StepResult,
)
from .process import ProcessRestarter
from .releases import ReleaseCleaner, ReleaseRepository
from .runtime import RuntimeVersionMatcher, RvmManager, read_marker
from .utils.logging import get_logger

logger = get_logger(__name__)


def build_target(config: AppConfig, **overrides: Any) -> DeploymentTarget:
    """Freeze the configured deployment plus CLI overrides into a target."""
    deployment = config.deployment
    values: Dict[str, Any] = {
        "deploy_to": deployment.deploy_to,
        "repo": deployment.repo,
        "runtime": deployment.runtime,
        "revision": deployment.revision,
        "user": deployment.user,
        "group": deployment.group,
        "migrate": deployment.migrate,
        "migration_command": deployment.migration_command,
        "precompile_assets": deployment.precompile_assets,
        "environment": dict(deployment.environment),
        "hooks": {name: tuple(commands) for name, commands in deployment.hooks.items()},
        "symlinks": dict(deployment.symlinks),
        "symlink_before_migrate": dict(deployment.symlink_before_migrate),
        "purge_before_symlink": tuple(deployment.purge_before_symlink),
        "create_dirs_before_symlink": tuple(deployment.create_dirs_before_symlink),
        "restart_command": deployment.restart_command,
        "keep_releases": deployment.keep_releases,
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    missing = [name for name in ("deploy_to", "repo", "runtime") if not values.get(name)]
    if missing:
        raise ValueError("Missing deployment values: " + ", ".join(missing))
    return DeploymentTarget(**values)


@dataclass
class ReleaseStatus:
    """Snapshot of a deploy target for reporting."""

    deploy_to: Path
    current: Optional[Path]
    current_runtime: Optional[str]
    releases: List[Path]
    problem: Optional[str] = None


class DeploymentWorkflow:
    """Coordinates one deploy invocation end to end.

    At most one invocation may run per deploy target at a time; callers that
    might overlap have to serialise externally.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        session: Optional[LocalSession] = None,
        source: Optional[GitRepositoryManager] = None,
        runtime: Optional[RvmManager] = None,
        notifier: Optional[AirbrakeNotifier] = None,
        executor: Optional[PipelineExecutor] = None,
    ) -> None:
        self.config = config
        self.session = session or LocalSession()
        self.source = source or GitRepositoryManager()
        self.runtime = runtime or RvmManager(
            self.session,
            rvm_root_path=config.runtime.rvm_root_path,
            bundle_without=config.runtime.bundle_without,
        )
        self.notifier = notifier or AirbrakeNotifier(config.notify)
        self.executor = executor or PipelineExecutor()
        self.matcher = RuntimeVersionMatcher(config.runtime.marker_file)
        self.last_result: Optional[DeploymentResult] = None

    def deploy(self, target: DeploymentTarget) -> DeploymentResult:
        """Bring ``target`` live.

        Raises the step failure (or RollbackError) after rolling back when
        provisioning fails; ``last_result`` keeps the per-step record.
        """
        logger.info("Preparing deployment of %s@%s to %s", target.repo, target.revision, target.deploy_to)
        repository = ReleaseRepository(target.deploy_to)
        release_id = self.source.resolve_revision(target.repo, target.revision)
        decision = DeploymentDecision(repository, self.matcher).decide(target, release_id)
        result = DeploymentResult(decision=decision)
        self.last_result = result

        if decision.action is DeployAction.NO_OP:
            logger.info("✅ %s is already live on %s", release_id[:12], target.runtime)
            return result

        hooks = HookRegistry(target.hooks)
        cutover = CutoverSwitch(repository, hooks, self.session)

        if decision.action is DeployAction.ROLLBACK_TO_EXISTING:
            logger.info("⏪ Switching back to existing release %s", release_id[:12])
            try:
                with RollbackManager(repository).guard_pointer():
                    cutover.cutover(decision.release_path, target)
            except BaseException as exc:
                result.success = False
                result.error = str(exc)
                raise
            return result

        ctx = StepContext(
            target=target,
            action=decision.action,
            release_id=release_id,
            release_path=decision.release_path,
            repository=repository,
            cutover=cutover,
            hooks=hooks,
            session=self.session,
            source=self.source,
            runtime=self.runtime,
            restarter=ProcessRestarter(self.session, target.restart_command),
            notifier=self.notifier,
            cleaner=ReleaseCleaner(repository),
            marker_file=self.matcher.marker_file,
        )
        rollback = RollbackManager(repository)
        try:
            with rollback.guard(decision.release_path, decision.action):
                self.executor.run(ctx, result.steps)
        except BaseException as exc:
            result.success = False
            result.error = str(exc)
            raise

        logger.info("🎉 %s deployed to %s", release_id[:12], target.deploy_to)
        return result

    def rollback(self, target: DeploymentTarget) -> Path:
        """Return to the release before the current one and drop the abandoned one."""
        repository = ReleaseRepository(target.deploy_to)
        current = repository.current_release()
        previous = repository.previous_release()
        if current is None or previous is None:
            raise InconsistentStateError(f"No previous release to roll back to in {repository.releases_path}")

        logger.info("⏪ Rolling back %s -> %s", current.name, previous.name)
        cutover = CutoverSwitch(repository, HookRegistry(target.hooks), self.session)
        with RollbackManager(repository).guard_pointer():
            cutover.cutover(previous, target)
            ProcessRestarter(self.session, target.restart_command).restart(
                previous, user=target.user, environment=target.environment
            )
        repository.remove_release(current)
        logger.info("🗑️  Removed abandoned release %s", current.name)
        return previous

    def status(self, deploy_to: str) -> ReleaseStatus:
        repository = ReleaseRepository(deploy_to)
        releases = repository.all_releases()
        try:
            current = repository.current_release()
        except InconsistentStateError as exc:
            return ReleaseStatus(repository.deploy_to, None, None, releases, problem=str(exc))

        runtime = None
        problem = None
        if current is not None:
            try:
                runtime = str(read_marker(current, self.matcher.marker_file))
            except RuntimeMarkerError as exc:
                problem = str(exc)
        return ReleaseStatus(repository.deploy_to, current, runtime, releases, problem=problem)


def describe_failure(exc: DeploymentError, result: Optional[DeploymentResult]) -> str:
    """One-line report naming the step that broke, for CLI output."""
    step: Optional[StepResult] = result.failed_step if result else None
    if step is not None:
        return f"step {step.ordinal} ({step.name}) failed: {exc}"
    return str(exc)
