"""Caller-side retry loops driven by the resilient call policy.

``retry_call`` blocks between attempts; ``retry_call_async`` awaits. Both
take an operation returning a CallOutcome, so transport exceptions that are
not outcomes propagate untouched.

Usage:
    value = retry_call(
        lambda: outcome_from_response(*uptime.report(batch)),
        settings.rpc_backoff,
        name="uptime.report",
    )
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import structlog

from gateway_ingress.rpc.backoff import BackoffSpec, Clock, build_generator
from gateway_ingress.rpc.policy import CallSequence, GiveUp, Retry, RetryDecision
from gateway_ingress.rpc.status import CallOutcome

log = structlog.get_logger()


def _log_decision(name: str, sequence: CallSequence, decision: RetryDecision, outcome: Any) -> None:
    if isinstance(decision, Retry):
        log.warning(
            "rpc_retry_scheduled",
            operation=name,
            attempt=sequence.attempts,
            status_code=outcome.status_code.name,
            delay=decision.after.total_seconds(),
        )
    else:
        log.error(
            "rpc_gave_up",
            operation=name,
            attempt=sequence.attempts,
            error_type=type(decision.error).__name__,
            **decision.error.context,
        )


def retry_call(
    operation: Callable[[], CallOutcome],
    spec: BackoffSpec,
    *,
    name: Optional[str] = None,
    sleep: Callable[[float], Any] = time.sleep,
    clock: Optional[Clock] = None,
) -> Any:
    """Run ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument callable returning a CallOutcome.
        spec: Backoff parameters for this call sequence.
        name: Operation name used in log events.
        sleep: Blocking wait, in seconds.
        clock: Monotonic clock for the backoff's elapsed time.

    Returns:
        The value of the successful outcome.

    Raises:
        PermanentRemoteFailure: On a non-retryable status.
        RetryBudgetExhausted: When transient failures outlast the budget.
    """
    name = name or getattr(operation, "__name__", "operation")
    sequence = CallSequence(build_generator(spec, clock=clock))

    while True:
        sequence.start_attempt()
        outcome = operation()
        decision = sequence.record(outcome)
        if decision is None:
            if sequence.attempts > 1:
                log.info("rpc_succeeded_after_retry", operation=name, attempts=sequence.attempts)
            return outcome.value

        _log_decision(name, sequence, decision, outcome)
        if isinstance(decision, GiveUp):
            raise decision.error
        sleep(decision.after.total_seconds())


async def retry_call_async(
    operation: Callable[[], Awaitable[CallOutcome]],
    spec: BackoffSpec,
    *,
    name: Optional[str] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Optional[Clock] = None,
) -> Any:
    """Async counterpart of ``retry_call``.

    Cancellation while waiting simply abandons the sequence; the generator
    is discarded with it.
    """
    name = name or getattr(operation, "__name__", "operation")
    sequence = CallSequence(build_generator(spec, clock=clock))

    while True:
        sequence.start_attempt()
        outcome = await operation()
        decision = sequence.record(outcome)
        if decision is None:
            if sequence.attempts > 1:
                log.info("rpc_succeeded_after_retry", operation=name, attempts=sequence.attempts)
            return outcome.value

        _log_decision(name, sequence, decision, outcome)
        if isinstance(decision, GiveUp):
            raise decision.error
        await sleep(decision.after.total_seconds())
