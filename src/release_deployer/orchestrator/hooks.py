"""Named callback hooks invoked at fixed pipeline positions."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from ..local import LocalSession
from ..utils.logging import get_logger
from .models import DeploymentTarget, HookHandler

logger = get_logger(__name__)

HOOK_NAMES = ("before_migrate", "before_symlink", "before_restart", "after_restart")


@dataclass(frozen=True)
class HookContext:
    """Argument passed to callable hook handlers."""

    name: str
    release_path: Path
    target: DeploymentTarget
    session: LocalSession


class HookRegistry:
    """Ordered handlers per hook name.

    Shell-command handlers run inside the release directory as the deploy
    user with the target's environment. When a hook has no handlers, an
    executable ``deploy/<hook>.sh`` shipped with the release is run instead.
    """

    def __init__(self, hooks: Optional[Mapping[str, Iterable[HookHandler]]] = None) -> None:
        self._handlers: Dict[str, List[HookHandler]] = {name: [] for name in HOOK_NAMES}
        for name, handlers in (hooks or {}).items():
            for handler in handlers:
                self.register(name, handler)

    def register(self, name: str, handler: HookHandler) -> None:
        if name not in self._handlers:
            raise ValueError(f"Unknown hook {name!r}; expected one of {', '.join(HOOK_NAMES)}")
        if not (isinstance(handler, str) or callable(handler)):
            raise TypeError(f"Hook handler for {name!r} must be callable or a shell command")
        self._handlers[name].append(handler)

    def handlers(self, name: str) -> List[HookHandler]:
        return list(self._handlers.get(name, []))

    def invoke(
        self,
        name: str,
        release_path: Path,
        target: DeploymentTarget,
        session: LocalSession,
    ) -> None:
        handlers = self._handlers[name]
        if not handlers:
            self._run_release_script(name, release_path, target, session)
            return

        logger.info("🪝 %s: %d handler(s)", name, len(handlers))
        context = HookContext(name=name, release_path=release_path, target=target, session=session)
        for handler in handlers:
            if isinstance(handler, str):
                session.run_checked(
                    handler,
                    cwd=str(release_path),
                    env=dict(target.environment),
                    user=target.user,
                )
            else:
                handler(context)

    def _run_release_script(
        self,
        name: str,
        release_path: Path,
        target: DeploymentTarget,
        session: LocalSession,
    ) -> None:
        script = release_path / "deploy" / f"{name}.sh"
        if not script.is_file():
            logger.debug("No handlers for hook %s", name)
            return
        logger.info("🪝 %s: running %s", name, script.relative_to(release_path))
        session.run_checked(
            f"bash {shlex.quote(str(script))}",
            cwd=str(release_path),
            env=dict(target.environment),
            user=target.user,
        )
