"""Sequential execution of the provisioning steps."""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from ..errors import StepFailure
from ..utils.logging import get_logger
from .models import StepResult, StepStatus
from .steps import DEPLOY_STEPS, PipelineStep, SkipStep, StepContext

logger = get_logger(__name__)


class PipelineExecutor:
    """Runs steps one after another against a single release.

    The first failing step aborts the run with :class:`StepFailure`;
    best-effort steps only log their failures. Steps that do not apply to the
    context's action are recorded as skipped.
    """

    def __init__(self, steps: Sequence[PipelineStep] = DEPLOY_STEPS) -> None:
        self.steps = tuple(steps)

    def run(self, ctx: StepContext, results: Optional[List[StepResult]] = None) -> List[StepResult]:
        """Run every step, appending a StepResult per step to ``results``.

        Passing ``results`` in lets a caller keep the partial record when a
        step raises.
        """
        results = results if results is not None else []
        total = len(self.steps)

        for ordinal, step in enumerate(self.steps, 1):
            if ctx.action not in step.actions:
                results.append(StepResult(
                    ordinal, step.name, StepStatus.SKIPPED,
                    error=f"not part of {ctx.action.value}",
                ))
                continue

            logger.info("📍 Step %d/%d: %s", ordinal, total, step.name)
            started = time.monotonic()
            try:
                step.run(ctx)
            except SkipStep as skip:
                logger.info("   ⏭️  skipped: %s", skip)
                results.append(StepResult(
                    ordinal, step.name, StepStatus.SKIPPED,
                    duration=time.monotonic() - started, error=str(skip),
                ))
            except Exception as exc:
                duration = time.monotonic() - started
                if step.best_effort:
                    logger.warning("   ⚠️ %s failed, continuing: %s", step.name, exc)
                    results.append(StepResult(
                        ordinal, step.name, StepStatus.IGNORED, duration=duration, error=str(exc),
                    ))
                    continue
                logger.error("   ❌ %s failed: %s", step.name, exc)
                results.append(StepResult(
                    ordinal, step.name, StepStatus.FAILED, duration=duration, error=str(exc),
                ))
                raise StepFailure(step.name, exc) from exc
            except BaseException:
                results.append(StepResult(
                    ordinal, step.name, StepStatus.FAILED,
                    duration=time.monotonic() - started, error="interrupted",
                ))
                raise
            else:
                results.append(StepResult(
                    ordinal, step.name, StepStatus.SUCCESS, duration=time.monotonic() - started,
                ))

        return results
