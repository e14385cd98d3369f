"""Resilient call policy for RPC calls to downstream services."""

from gateway_ingress.rpc.status import (
    StatusCode,
    Success,
    Failure,
    CallOutcome,
    outcome_from_response,
)
from gateway_ingress.rpc.backoff import (
    BackoffSpec,
    BackoffState,
    BackoffGenerator,
    advance,
    build_generator,
    next_interval,
)
from gateway_ingress.rpc.policy import (
    Classification,
    PERMANENT_STATUS_CODES,
    Retry,
    GiveUp,
    RetryDecision,
    CallState,
    CallSequence,
    classify,
    decide,
    unwrap,
)
from gateway_ingress.rpc.retry import retry_call, retry_call_async

__all__ = [
    "StatusCode",
    "Success",
    "Failure",
    "CallOutcome",
    "outcome_from_response",
    "BackoffSpec",
    "BackoffState",
    "BackoffGenerator",
    "advance",
    "build_generator",
    "next_interval",
    "Classification",
    "PERMANENT_STATUS_CODES",
    "Retry",
    "GiveUp",
    "RetryDecision",
    "CallState",
    "CallSequence",
    "classify",
    "decide",
    "unwrap",
    "retry_call",
    "retry_call_async",
]
