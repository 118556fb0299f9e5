"""Local command execution used by every shell-backed collaborator."""

from .session import CommandError, LocalCommandResult, LocalSession

__all__ = ["CommandError", "LocalCommandResult", "LocalSession"]
