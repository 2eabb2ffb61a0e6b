"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from typing import Any

from kungfu import Error, Ok, Result

from storefront.log import ctx
from storefront.saga._types import Compensator, SagaError, SagaResult, SagaStep, Then

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Recorded Compensator
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator = tuple[str, Any, Compensator[Any]]

# ═══════════════════════════════════════════════════════════════════════════════
# run_step() / run_compensators()
# ═══════════════════════════════════════════════════════════════════════════════


async def run_step[T, E](
    step: SagaStep[T, E],
    compensators: list[RecordedCompensator],
) -> Result[T, E]:
    """Execute single step, recording compensator on success."""
    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                compensators.append((step.name, value, step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


async def run_compensators(compensators: list[RecordedCompensator]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            comp_failed += 1
            logger.exception("Compensation failed", extra=ctx(step=name))

    return comp_run, comp_failed


async def _rollback[E](
    error: E,
    step_failed: int,
    compensators: list[RecordedCompensator],
) -> SagaError[E]:
    comp_run, comp_failed = await run_compensators(compensators)
    return SagaError(
        error=error,
        step_failed=step_failed,
        compensators_run=comp_run,
        compensators_failed=comp_failed,
        rollback_complete=comp_failed == 0,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# run() / run_chain()
# ═══════════════════════════════════════════════════════════════════════════════


async def run[T, E](saga: SagaStep[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    """Execute a single step; on failure nothing was recorded, so nothing rolls back."""
    compensators: list[RecordedCompensator] = []

    match await run_step(saga, compensators):
        case Ok(value):
            return Ok(SagaResult(value=value, steps_executed=1, compensators_recorded=len(compensators)))
        case Error(error):
            return Error(await _rollback(error, 1, compensators))


async def run_chain[T, U, E, E2](
    chain: Then[T, U, E, E2],
) -> Result[SagaResult[U], SagaError[E | E2]]:
    """
    Execute two chained steps.

    Example:
        saga = S.step(claim, release).then(lambda order: S.from_async(...))
        match await S.run_chain(saga):
            case Ok(r):
                ...
            case Error(e):
                # e.error is the failing step's error, claim already released
                ...
    """
    compensators: list[RecordedCompensator] = []

    match await run_step(chain.inner, compensators):
        case Error(e):
            return Error(await _rollback(e, 1, compensators))
        case Ok(value):
            pass

    match await run_step(chain.f(value), compensators):
        case Ok(final_value):
            return Ok(SagaResult(
                value=final_value,
                steps_executed=2,
                compensators_recorded=len(compensators),
            ))
        case Error(e2):
            return Error(await _rollback(e2, 2, compensators))


__all__ = ("run_step", "run_compensators", "run", "run_chain")
