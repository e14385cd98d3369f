"""Exponential backoff built from declarative configuration.

A BackoffSpec is the validated form of a ``*_backoff`` settings section.
Its schedule is computed by the pure ``advance`` function over an explicit
BackoffState; BackoffGenerator wraps that state together with a clock for
callers that want a stateful object.

Usage:
    generator = settings.rpc_backoff.build()
    while (interval := generator.next_interval()) is not None:
        ...
"""

from __future__ import annotations

import copy
import math
import random
import time
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Callable, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from gateway_ingress.durations import HumanDuration

Clock = Callable[[], float]


class BackoffSpec(BaseModel):
    """Parameters of an exponential backoff, loadable from a config file.

    ``max_elapsed`` is read from the ``duration`` key in settings files;
    ``max_elapsed`` is accepted as well.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    initial_interval: HumanDuration
    max_interval: HumanDuration
    max_elapsed: HumanDuration = Field(
        validation_alias=AliasChoices("duration", "max_elapsed"),
    )
    multiplier: float
    randomization_factor: float = 0.0

    @field_validator("initial_interval")
    @classmethod
    def validate_initial_interval(cls, v: timedelta) -> timedelta:
        """Initial interval must be strictly positive."""
        if v <= timedelta(0):
            raise ValueError("initial_interval must be greater than zero")
        return v

    @field_validator("multiplier")
    @classmethod
    def validate_multiplier(cls, v: float) -> float:
        """Multiplier must be finite and must not shrink the interval."""
        if not math.isfinite(v) or v < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {v}")
        return v

    @field_validator("randomization_factor")
    @classmethod
    def validate_randomization_factor(cls, v: float) -> float:
        """Randomization factor must be in [0, 1)."""
        if not 0.0 <= v < 1.0:
            raise ValueError(f"randomization_factor must be in [0, 1), got {v}")
        return v

    @model_validator(mode="after")
    def validate_interval_bounds(self) -> "BackoffSpec":
        """Max interval must be able to hold the initial interval."""
        if self.max_interval < self.initial_interval:
            raise ValueError(
                f"max_interval ({self.max_interval}) must be >= "
                f"initial_interval ({self.initial_interval})"
            )
        return self

    def build(self, clock: Optional[Clock] = None) -> "BackoffGenerator":
        """Create a fresh generator whose elapsed clock starts now."""
        return build_generator(self, clock=clock)


@dataclass(frozen=True)
class BackoffState:
    """Position within a backoff schedule.

    Attributes:
        current_interval: Interval handed out by the next advance.
        started_at: Clock reading when the schedule began.
    """

    current_interval: timedelta
    started_at: float


def initial_state(spec: BackoffSpec, now: float) -> BackoffState:
    """Return the state of a schedule that begins at ``now``."""
    return BackoffState(current_interval=spec.initial_interval, started_at=now)


def advance(
    spec: BackoffSpec,
    state: BackoffState,
    now: float,
    rng: Callable[[], float] = random.random,
) -> tuple[Optional[timedelta], BackoffState]:
    """Compute the next wait and the state that follows it.

    Args:
        spec: Backoff parameters.
        state: Current schedule position.
        now: Current clock reading, same timebase as ``state.started_at``.
        rng: Source of uniform [0, 1) values, used only when the spec has a
            non-zero randomization factor.

    Returns:
        ``(None, state)`` once more than ``spec.max_elapsed`` has passed since
        the schedule started; otherwise the interval to wait and the advanced
        state.
    """
    elapsed = timedelta(seconds=now - state.started_at)
    if elapsed > spec.max_elapsed:
        return None, state

    interval = state.current_interval
    if spec.randomization_factor:
        delta = spec.randomization_factor * interval
        interval = interval - delta + (2 * delta) * rng()

    # Compare before multiplying so large multipliers cannot overflow timedelta
    if state.current_interval.total_seconds() * spec.multiplier >= spec.max_interval.total_seconds():
        grown = spec.max_interval
    else:
        grown = state.current_interval * spec.multiplier
    return interval, replace(state, current_interval=grown)


class BackoffGenerator:
    """Stateful view over a backoff schedule.

    Owned by a single call sequence. Use ``clone`` to hand an identical
    schedule to another sequence.
    """

    def __init__(
        self,
        spec: BackoffSpec,
        clock: Optional[Clock] = None,
        state: Optional[BackoffState] = None,
    ) -> None:
        self.spec = spec
        self._clock = clock or time.monotonic
        self.state = state or initial_state(spec, self._clock())

    @property
    def current_interval(self) -> timedelta:
        return self.state.current_interval

    def elapsed(self) -> timedelta:
        """Wall-clock time since the schedule started."""
        return timedelta(seconds=self._clock() - self.state.started_at)

    def next_interval(self) -> Optional[timedelta]:
        """Return the next wait, or None when the time budget is spent."""
        interval, self.state = advance(self.spec, self.state, self._clock())
        return interval

    def reset(self) -> None:
        """Restart the schedule from the initial interval and the current time."""
        self.state = initial_state(self.spec, self._clock())

    def clone(self) -> "BackoffGenerator":
        """Return an independent generator at the same schedule position."""
        return copy.copy(self)

    def __repr__(self) -> str:
        return (
            f"BackoffGenerator(current_interval={self.state.current_interval!r}, "
            f"elapsed={self.elapsed()!r})"
        )


def build_generator(spec: BackoffSpec, clock: Optional[Clock] = None) -> BackoffGenerator:
    """Construct a generator for ``spec`` with its clock started at call time."""
    return BackoffGenerator(spec, clock=clock)


def next_interval(generator: BackoffGenerator) -> Optional[timedelta]:
    """Advance ``generator``; None signals that the caller should give up."""
    return generator.next_interval()
