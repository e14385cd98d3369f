"""Resilient call policy: outcome classification and retry decisions.

The functions here are pure decisions over a BackoffGenerator and a
CallOutcome and do no I/O. Waiting on a Retry and raising a GiveUp error
is the caller's job (see
``gateway_ingress.rpc.retry`` for ready-made loops).

Permanent statuses are UNKNOWN, INTERNAL and UNAVAILABLE. UNAVAILABLE
is permanent to match the deployed service.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import Any, Optional, Union

from gateway_ingress.core.exceptions import (
    InvalidStateTransition,
    PermanentRemoteFailure,
    RemoteCallError,
    RetryBudgetExhausted,
    TransientRemoteFailure,
)
from gateway_ingress.rpc.backoff import BackoffGenerator
from gateway_ingress.rpc.status import CallOutcome, Failure, StatusCode, Success


class Classification(StrEnum):
    """Whether a failure is worth retrying."""

    PERMANENT = "permanent"
    TRANSIENT = "transient"


PERMANENT_STATUS_CODES: frozenset[StatusCode] = frozenset({
    StatusCode.UNKNOWN,
    StatusCode.INTERNAL,
    StatusCode.UNAVAILABLE,
})


@dataclass(frozen=True)
class Retry:
    """Wait ``after`` and attempt the call again."""

    after: timedelta


@dataclass(frozen=True)
class GiveUp:
    """Stop retrying; ``error`` is the final error of the sequence."""

    error: RemoteCallError


RetryDecision = Union[Retry, GiveUp]


def classify(outcome: Union[Failure, StatusCode, int, str]) -> Classification:
    """Classify a failed outcome (or bare status code).

    Raises:
        TypeError: If given a Success, which has nothing to classify.
    """
    if isinstance(outcome, Success):
        raise TypeError("Successful outcomes are not classified")
    code = outcome.status_code if isinstance(outcome, Failure) else StatusCode.coerce(outcome)
    if code in PERMANENT_STATUS_CODES:
        return Classification.PERMANENT
    return Classification.TRANSIENT


def decide(
    generator: BackoffGenerator,
    outcome: Failure,
    attempts: Optional[int] = None,
) -> RetryDecision:
    """Decide what to do after a failed attempt.

    Permanent failures give up immediately regardless of remaining budget.
    Transient failures retry after the generator's next interval, or give up
    once the generator's time budget is spent.

    Args:
        generator: Backoff owned by the current call sequence.
        outcome: The failed outcome.
        attempts: Optional attempt count recorded on a budget give-up.
    """
    if classify(outcome) is Classification.PERMANENT:
        return GiveUp(PermanentRemoteFailure(outcome.status_code, outcome.message))

    interval = generator.next_interval()
    if interval is None:
        return GiveUp(
            RetryBudgetExhausted(
                outcome.status_code,
                outcome.message,
                attempts=attempts,
                elapsed=generator.elapsed().total_seconds(),
            )
        )
    return Retry(interval)


def unwrap(outcome: CallOutcome) -> Any:
    """Return a Success's value or raise the classified failure.

    Raises:
        PermanentRemoteFailure: For statuses that retrying will not fix.
        TransientRemoteFailure: For every other failure.
    """
    if isinstance(outcome, Success):
        return outcome.value
    if classify(outcome) is Classification.PERMANENT:
        raise PermanentRemoteFailure(outcome.status_code, outcome.message)
    raise TransientRemoteFailure(outcome.status_code, outcome.message)


# =============================================================================
# Call Sequence State Machine
# =============================================================================


class CallState(StrEnum):
    """Lifecycle of one call sequence."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    GAVE_UP = "gave_up"


_TRANSITIONS: dict[CallState, frozenset[CallState]] = {
    CallState.IDLE: frozenset({CallState.ATTEMPTING}),
    CallState.ATTEMPTING: frozenset({CallState.SUCCEEDED, CallState.RETRYING, CallState.GAVE_UP}),
    CallState.RETRYING: frozenset({CallState.ATTEMPTING}),
    CallState.SUCCEEDED: frozenset(),
    CallState.GAVE_UP: frozenset(),
}


class CallSequence:
    """Tracks one logical remote call across its attempts.

    Idle -> Attempting -> {Succeeded | Retrying -> Attempting | GaveUp}
    """

    def __init__(self, generator: BackoffGenerator) -> None:
        self.generator = generator
        self.state = CallState.IDLE
        self.attempts = 0
        self.last_decision: Optional[RetryDecision] = None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def _transition(self, target: CallState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidStateTransition(self.state.value, target.value)
        self.state = target

    def start_attempt(self) -> None:
        """Mark the start of an attempt."""
        self._transition(CallState.ATTEMPTING)
        self.attempts += 1

    def record(self, outcome: CallOutcome) -> Optional[RetryDecision]:
        """Record the outcome of the current attempt.

        Returns:
            None on success, otherwise the Retry or GiveUp decision.
        """
        if self.state is not CallState.ATTEMPTING:
            raise InvalidStateTransition(self.state.value, "recorded")

        if isinstance(outcome, Success):
            self._transition(CallState.SUCCEEDED)
            return None

        decision = decide(self.generator, outcome, attempts=self.attempts)
        if isinstance(decision, Retry):
            self._transition(CallState.RETRYING)
        else:
            self._transition(CallState.GAVE_UP)
        self.last_decision = decision
        return decision
