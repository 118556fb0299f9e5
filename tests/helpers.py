"""Stub collaborators shared by the test modules."""

from pathlib import Path
from typing import Dict, List, Optional

from release_deployer.config import AppConfig
from release_deployer.gitops import GitCloneResult, GitRepositoryManager
from release_deployer.local import LocalCommandResult, LocalSession
from release_deployer.orchestrator import DeploymentTarget
from release_deployer.runtime import RvmManager
from release_deployer.workflow import DeploymentWorkflow

SHA_A = "a" * 40
SHA_B = "b" * 40


class StubSource(GitRepositoryManager):
    """Writes a fake checkout instead of talking to git."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: List[tuple] = []

    def resolve_revision(self, repo_url, revision):  # type: ignore[override]
        return revision

    def update_cached_repo(self, repo_url, revision, cached_dir):  # type: ignore[override]
        self.calls.append(("update_cached_repo", revision))
        cached_dir.mkdir(parents=True, exist_ok=True)
        (cached_dir / "app.rb").write_text(f"# {revision}\n", encoding="utf-8")
        return GitCloneResult(commit_sha=revision, path=cached_dir)

    def materialize(self, cached_dir, release_path):  # type: ignore[override]
        self.calls.append(("materialize", release_path.name))
        super().materialize(cached_dir, release_path)


class StubRuntime(RvmManager):
    """Records runtime calls; ``failures`` maps a method name or command to an exception."""

    def __init__(self, failures: Optional[Dict[str, Exception]] = None) -> None:
        super().__init__(LocalSession(), rvm_root_path="/opt/rvm")
        self.failures = failures or {}
        self.calls: List[tuple] = []

    def _record(self, key: str, *args) -> None:
        self.calls.append((key,) + args)
        if key in self.failures:
            raise self.failures[key]

    def create_namespace(self, version, namespace):  # type: ignore[override]
        self._record("create_namespace", version, namespace)

    def bind(self, spec, user=None):  # type: ignore[override]
        self._record("bind", str(spec))
        return {"GEM_HOME": f"/opt/rvm/gems/{spec}"}

    def fix_namespace_ownership(self, spec, user):  # type: ignore[override]
        self._record("fix_namespace_ownership", str(spec), user)

    def install_dependencies(self, release_path, spec, *, user=None, offline=False):  # type: ignore[override]
        self._record("install_dependencies", str(spec), offline)

    def run(self, spec, code, *, cwd=None, user=None, environment=None, stream_output=True):  # type: ignore[override]
        self._record(code, str(spec))
        return LocalCommandResult(command=code, stdout="", stderr="", exit_status=0)


class StubNotifier:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: List[dict] = []

    def notify(self, revision, repo, environment, user):
        self.calls.append(
            {"revision": revision, "repo": repo, "environment": environment, "user": user}
        )
        if self.error is not None:
            raise self.error


class RecordingSession(LocalSession):
    """Session that records commands instead of running them."""

    def __init__(self) -> None:
        super().__init__()
        self.commands: List[tuple] = []

    def run(self, command, **kwargs):  # type: ignore[override]
        self.commands.append((command, kwargs))
        return LocalCommandResult(command=command, stdout="", stderr="", exit_status=0)


def make_target(root: Path, **overrides) -> DeploymentTarget:
    values = {
        "deploy_to": str(root / "app"),
        "repo": "https://example.com/app.git",
        "runtime": "3.0.0@app",
        "revision": SHA_A,
        "environment": {"RAILS_ENV": "staging"},
    }
    values.update(overrides)
    return DeploymentTarget(**values)


def make_workflow(runtime=None, notifier=None, source=None) -> DeploymentWorkflow:
    return DeploymentWorkflow(
        AppConfig(),
        session=LocalSession(),
        source=source or StubSource(),
        runtime=runtime or StubRuntime(),
        notifier=notifier or StubNotifier(),
    )
