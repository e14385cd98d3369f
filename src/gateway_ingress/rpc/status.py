"""Remote call status codes and outcomes.

Status codes follow the gRPC numbering used by the downstream services.
A CallOutcome is either a Success carrying the response value or a Failure
carrying the status code and message reported by the transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Union


class StatusCode(IntEnum):
    """Canonical remote call status codes."""

    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16

    @classmethod
    def coerce(cls, value: Any) -> "StatusCode":
        """Convert an enum member, integer or name into a StatusCode.

        Raises:
            ValueError: If the value does not name a known status code.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            name = value.strip().upper().replace("-", "_").replace(" ", "_")
            if name in cls.__members__:
                return cls[name]
        raise ValueError(f"Unknown status code: {value!r}")


@dataclass(frozen=True)
class Success:
    """Remote call completed; ``value`` is the unwrapped response."""

    value: Any = None


@dataclass(frozen=True)
class Failure:
    """Remote call failed with a status code."""

    status_code: StatusCode
    message: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "status_code", StatusCode.coerce(self.status_code))


CallOutcome = Union[Success, Failure]


def outcome_from_response(
    ok: bool,
    status_code: Any = StatusCode.OK,
    message: str = "",
    value: Any = None,
) -> CallOutcome:
    """Adapt a transport result shaped as ``{ok, status_code, message}``.

    Raises:
        ValueError: If a failed response carries an unknown code or OK.
    """
    if ok:
        return Success(value)
    code = StatusCode.coerce(status_code)
    if code is StatusCode.OK:
        raise ValueError(f"failed response must not carry status OK: {message!r}")
    return Failure(code, message)
