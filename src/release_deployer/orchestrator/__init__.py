"""Deployment decision, provisioning pipeline, cutover and rollback.

- DeploymentDecision: classifies the target revision against on-disk state
- PipelineExecutor: runs the ordered provisioning steps
- RollbackManager: restores the previous state when a step fails
- CutoverSwitch: atomically makes a release current
- HookRegistry: named extension points invoked during the pipeline
"""

from .cutover import CutoverSwitch
from .decision import DeploymentDecision
from .hooks import HOOK_NAMES, HookContext, HookRegistry
from .models import (
    Decision,
    DeployAction,
    DeploymentResult,
    DeploymentTarget,
    ReleaseState,
    StepResult,
    StepStatus,
)
from .pipeline import PipelineExecutor
from .rollback import RollbackManager
from .steps import DEPLOY_STEPS, PipelineStep, SkipStep, StepContext

__all__ = [
    "CutoverSwitch",
    "DEPLOY_STEPS",
    "Decision",
    "DeployAction",
    "DeploymentDecision",
    "DeploymentResult",
    "DeploymentTarget",
    "HOOK_NAMES",
    "HookContext",
    "HookRegistry",
    "PipelineExecutor",
    "PipelineStep",
    "ReleaseState",
    "RollbackManager",
    "SkipStep",
    "StepContext",
    "StepResult",
    "StepStatus",
]
