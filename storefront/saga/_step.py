"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from combinators import lift as L
from kungfu import LazyCoroResult

from storefront.saga._types import Compensator, SagaStep


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create a compensated saga step from an action that already returns Result.

    Example:
        claim = S.step(
            LazyCoroResult(lambda: claim_refund(order_id)),
            compensate=lambda order: release_claim(order.id),
            name="claim",
        )
    """
    return SagaStep(action=action, compensate=compensate, name=name)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: Compensator[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create a step from a plain coroutine; exceptions become ``Error(on_error(e))``.

    Example:
        S.from_async(
            lambda: processor.create_refund(order.payment_reference, order.total),
            on_error=to_shop_error,
            name="processor_refund",
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


__all__ = ("step", "from_async")
