"""
Saga — multi-step operations with compensation.

    from storefront import saga as S

    saga = S.step(action, compensate).then(lambda v: S.from_async(call, on_error))
    result = await S.run_chain(saga)
"""

from __future__ import annotations

from storefront.saga._run import run, run_chain, run_compensators, run_step
from storefront.saga._step import from_async, step
from storefront.saga._types import Compensator, SagaError, SagaResult, SagaStep, Then

__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "Then",
    "step",
    "from_async",
    "run",
    "run_chain",
    "run_step",
    "run_compensators",
)
