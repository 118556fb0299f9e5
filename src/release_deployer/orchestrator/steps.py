"""The provisioning steps, in the order a deploy runs them.

Each step is a plain function of a :class:`StepContext`. Steps talk to the
outside world only through the collaborators the context carries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Set, Tuple

from ..gitops import GitRepositoryManager
from ..local import LocalSession
from ..notify import AirbrakeNotifier
from ..process import ProcessRestarter
from ..releases import ReleaseCleaner, ReleaseRepository
from ..runtime import DEFAULT_MARKER_FILE, RvmManager, has_vendored_cache, write_marker
from ..utils.logging import get_logger
from .cutover import CutoverSwitch
from .hooks import HookRegistry
from .models import DeployAction, DeploymentTarget

logger = get_logger(__name__)

ASSET_PRECOMPILE_COMMAND = "bundle exec rake assets:precompile"

SETUP_LOAD_PATHS = """\
# Activates the release's RVM environment for app servers that boot the
# application without going through a login shell.
if ENV['MY_RUBY_HOME'] && ENV['MY_RUBY_HOME'].include?('rvm')
  begin
    rvm_path = File.dirname(File.dirname(ENV['MY_RUBY_HOME']))
    rvm_lib_path = File.join(rvm_path, 'lib')
    $LOAD_PATH.unshift rvm_lib_path
    require 'rvm'
    RVM.use_from_path! File.dirname(File.dirname(__FILE__))
  rescue LoadError
    raise "RVM ruby lib is currently unavailable."
  end
end

ENV['BUNDLE_GEMFILE'] = File.expand_path('../Gemfile', File.dirname(__FILE__))
require 'bundler/setup'
"""

PIPELINE_ACTIONS: FrozenSet[DeployAction] = frozenset(
    {DeployAction.FULL_DEPLOY, DeployAction.FORCE_REDEPLOY}
)


class SkipStep(Exception):
    """Raised by a step that has nothing to do for this target."""


@dataclass(frozen=True)
class StepContext:
    """Everything a step may read; fixed for one pipeline run."""

    target: DeploymentTarget
    action: DeployAction
    release_id: str
    release_path: Path
    repository: ReleaseRepository
    cutover: CutoverSwitch
    hooks: HookRegistry
    session: LocalSession
    source: GitRepositoryManager
    runtime: RvmManager
    restarter: ProcessRestarter
    notifier: AirbrakeNotifier
    cleaner: ReleaseCleaner
    marker_file: str = DEFAULT_MARKER_FILE
    # filled by setup_load_paths, consumed at cutover
    scheduled_symlinks: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PipelineStep:
    name: str
    run: Callable[[StepContext], None]
    best_effort: bool = False
    actions: FrozenSet[DeployAction] = PIPELINE_ACTIONS


def _shared_directories(target: DeploymentTarget) -> Set[str]:
    dirs = {"config"}
    dirs.update(target.symlinks.keys())
    for shared_relative in target.symlink_before_migrate.keys():
        parent = str(Path(shared_relative).parent)
        if parent != ".":
            dirs.add(parent)
    return dirs


def enforce_ownership(ctx: StepContext) -> None:
    ctx.repository.enforce_ownership(ctx.target.user, ctx.target.group)


def verify_directories(ctx: StepContext) -> None:
    ctx.repository.verify_directories(sorted(_shared_directories(ctx.target)))


def update_cached_repo(ctx: StepContext) -> None:
    result = ctx.source.update_cached_repo(
        ctx.target.repo, ctx.release_id, ctx.repository.cached_copy_path
    )
    if result.commit_sha != ctx.release_id:
        raise RuntimeError(
            f"Cached checkout is at {result.commit_sha}, expected {ctx.release_id}"
        )


def materialize_release(ctx: StepContext) -> None:
    ctx.source.materialize(ctx.repository.cached_copy_path, ctx.release_path)


def setup_load_paths(ctx: StepContext) -> None:
    path = ctx.repository.shared_path / "config" / "setup_load_paths.rb"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SETUP_LOAD_PATHS, encoding="utf-8")
    ctx.scheduled_symlinks["config/setup_load_paths.rb"] = "config/setup_load_paths.rb"


def write_runtime_marker(ctx: StepContext) -> None:
    marker = write_marker(ctx.release_path, ctx.target.runtime_spec, ctx.marker_file)
    logger.info("   Recorded runtime %s in %s", ctx.target.runtime, marker.name)


def create_namespace(ctx: StepContext) -> None:
    spec = ctx.target.runtime_spec
    if not spec.has_namespace:
        raise SkipStep("runtime specifier has no gemset")
    ctx.runtime.create_namespace(spec.version, spec.namespace)
    # a throwaway command forces rvm to initialise the gemset environment
    environment = ctx.runtime.bind(spec, user=ctx.target.user)
    logger.debug("   Bound %s (%d variables)", spec, len(environment))
    if ctx.target.user:
        ctx.runtime.fix_namespace_ownership(spec, ctx.target.user)


def install_dependencies(ctx: StepContext) -> None:
    ctx.runtime.install_dependencies(
        ctx.release_path,
        ctx.target.runtime_spec,
        user=ctx.target.user,
        offline=has_vendored_cache(ctx.release_path),
    )


def before_migrate(ctx: StepContext) -> None:
    ctx.hooks.invoke("before_migrate", ctx.release_path, ctx.target, ctx.session)


def migrate(ctx: StepContext) -> None:
    ctx.cutover.link_shared(ctx.release_path, ctx.target.symlink_before_migrate)
    if not ctx.target.migrate:
        logger.info("   Migrations disabled")
        return
    enforce_ownership(ctx)
    ctx.runtime.run(
        ctx.target.runtime_spec,
        ctx.target.migration_command,
        cwd=ctx.release_path,
        user=ctx.target.user,
        environment=ctx.target.environment,
    )


def precompile_assets(ctx: StepContext) -> None:
    if not ctx.target.precompile_assets:
        raise SkipStep("asset precompilation disabled")
    ctx.runtime.run(
        ctx.target.runtime_spec,
        ASSET_PRECOMPILE_COMMAND,
        cwd=ctx.release_path,
        user=ctx.target.user,
        environment=ctx.target.environment,
    )


def before_symlink(ctx: StepContext) -> None:
    ctx.cutover.before(ctx.release_path, ctx.target)


def symlink(ctx: StepContext) -> None:
    ctx.cutover.commit(ctx.release_path, ctx.target, ctx.scheduled_symlinks)


def before_restart(ctx: StepContext) -> None:
    ctx.cutover.after(ctx.release_path, ctx.target)


def restart(ctx: StepContext) -> None:
    ctx.restarter.restart(
        ctx.release_path, user=ctx.target.user, environment=ctx.target.environment
    )


def notify(ctx: StepContext) -> None:
    ctx.notifier.notify(
        revision=ctx.release_path.name,
        repo=ctx.target.repo,
        environment=ctx.target.app_environment,
        user=ctx.target.user,
    )


def after_restart(ctx: StepContext) -> None:
    ctx.hooks.invoke("after_restart", ctx.release_path, ctx.target, ctx.session)


def cleanup(ctx: StepContext) -> None:
    ctx.cleaner.cleanup(ctx.target.keep_releases)


DEPLOY_STEPS: Tuple[PipelineStep, ...] = (
    PipelineStep("enforce_ownership", enforce_ownership),
    PipelineStep("verify_directories", verify_directories),
    PipelineStep("update_cached_repo", update_cached_repo),
    PipelineStep("materialize_release", materialize_release,
                 actions=frozenset({DeployAction.FULL_DEPLOY})),
    PipelineStep("setup_load_paths", setup_load_paths),
    PipelineStep("write_runtime_marker", write_runtime_marker),
    PipelineStep("create_namespace", create_namespace),
    PipelineStep("install_dependencies", install_dependencies),
    PipelineStep("reenforce_ownership", enforce_ownership),
    PipelineStep("before_migrate", before_migrate),
    PipelineStep("migrate", migrate),
    PipelineStep("precompile_assets", precompile_assets),
    PipelineStep("before_symlink", before_symlink),
    PipelineStep("symlink", symlink),
    PipelineStep("before_restart", before_restart),
    PipelineStep("restart", restart),
    PipelineStep("notify", notify, best_effort=True),
    PipelineStep("after_restart", after_restart),
    PipelineStep("cleanup", cleanup),
)
