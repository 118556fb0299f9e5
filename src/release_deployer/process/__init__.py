"""Process control collaborators."""

from .restarter import ProcessRestarter

__all__ = ["ProcessRestarter"]
