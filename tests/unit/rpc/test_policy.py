"""Unit tests for outcome classification and retry decisions."""

from datetime import timedelta

import pytest

from gateway_ingress.core.exceptions import (
    InvalidStateTransition,
    PermanentRemoteFailure,
    RetryBudgetExhausted,
    TransientRemoteFailure,
)
from gateway_ingress.rpc.backoff import BackoffSpec
from gateway_ingress.rpc.policy import (
    PERMANENT_STATUS_CODES,
    CallSequence,
    CallState,
    Classification,
    GiveUp,
    Retry,
    classify,
    decide,
    unwrap,
)
from gateway_ingress.rpc.status import Failure, StatusCode, Success


@pytest.fixture
def spec() -> BackoffSpec:
    return BackoffSpec(
        initial_interval="100ms", max_interval="2s", duration="1s", multiplier=2.0
    )


class TestClassify:
    """Test the permanent / transient split."""

    @pytest.mark.parametrize(
        "code", [StatusCode.UNKNOWN, StatusCode.INTERNAL, StatusCode.UNAVAILABLE]
    )
    def test_permanent_codes(self, code) -> None:
        """Test the fixed permanent set."""
        assert classify(Failure(code, "broken")) is Classification.PERMANENT

    @pytest.mark.parametrize(
        "code",
        [c for c in StatusCode if c not in PERMANENT_STATUS_CODES],
    )
    def test_everything_else_is_transient(self, code) -> None:
        """Test every other status is retryable."""
        assert classify(Failure(code)) is Classification.TRANSIENT

    def test_permanent_set_is_exact(self) -> None:
        """Test the permanent set has not drifted."""
        assert PERMANENT_STATUS_CODES == {
            StatusCode.UNKNOWN,
            StatusCode.INTERNAL,
            StatusCode.UNAVAILABLE,
        }

    def test_classify_is_pure(self) -> None:
        """Test repeated classification of one code agrees."""
        results = {classify(Failure(StatusCode.ABORTED, str(i))) for i in range(10)}
        assert results == {Classification.TRANSIENT}

    def test_classify_bare_codes(self) -> None:
        """Test codes may be passed directly, by value or name."""
        assert classify(StatusCode.INTERNAL) is Classification.PERMANENT
        assert classify(14) is Classification.PERMANENT
        assert classify("deadline_exceeded") is Classification.TRANSIENT

    def test_success_is_not_classified(self) -> None:
        """Test successes never reach classification."""
        with pytest.raises(TypeError):
            classify(Success("ok"))


class TestDecide:
    """Test decisions that combine classification with the schedule."""

    def test_permanent_gives_up_on_first_attempt(self, spec, fake_clock) -> None:
        """Test a permanent failure short-circuits with budget untouched."""
        generator = spec.build(clock=fake_clock)

        decision = decide(generator, Failure(StatusCode.INTERNAL, "boom"))
        assert isinstance(decision, GiveUp)
        assert isinstance(decision.error, PermanentRemoteFailure)
        assert decision.error.status_code is StatusCode.INTERNAL
        assert decision.error.detail == "boom"
        # The schedule was not consumed
        assert generator.current_interval == timedelta(milliseconds=100)

    def test_transient_retries_with_schedule(self, spec, fake_clock) -> None:
        """Test transient failures follow the worked example timings."""
        generator = spec.build(clock=fake_clock)
        failure = Failure(StatusCode.DEADLINE_EXCEEDED, "slow")

        decisions = []
        for at_ms in (0, 150, 500, 1100):
            fake_clock.set_ms(at_ms)
            decisions.append(decide(generator, failure, attempts=len(decisions) + 1))

        assert decisions[:3] == [
            Retry(timedelta(milliseconds=100)),
            Retry(timedelta(milliseconds=200)),
            Retry(timedelta(milliseconds=400)),
        ]
        final = decisions[3]
        assert isinstance(final, GiveUp)
        assert isinstance(final.error, RetryBudgetExhausted)
        assert final.error.attempts == 4
        assert final.error.elapsed == pytest.approx(1.1)
        assert final.error.status_code is StatusCode.DEADLINE_EXCEEDED

    def test_permanent_after_transients(self, spec, fake_clock) -> None:
        """Test a permanent failure mid-sequence still gives up immediately."""
        generator = spec.build(clock=fake_clock)
        assert isinstance(decide(generator, Failure(StatusCode.ABORTED)), Retry)
        decision = decide(generator, Failure(StatusCode.UNAVAILABLE))
        assert isinstance(decision.error, PermanentRemoteFailure)


class TestUnwrap:
    """Test converting an outcome into a value or a raised error."""

    def test_success_returns_value(self) -> None:
        """Test the value of a success is returned."""
        assert unwrap(Success({"guilds": 3})) == {"guilds": 3}

    def test_permanent_raises(self) -> None:
        """Test permanent failures raise PermanentRemoteFailure."""
        with pytest.raises(PermanentRemoteFailure):
            unwrap(Failure(StatusCode.UNKNOWN, "?"))

    def test_transient_raises(self) -> None:
        """Test transient failures raise TransientRemoteFailure."""
        with pytest.raises(TransientRemoteFailure, match="RESOURCE_EXHAUSTED"):
            unwrap(Failure(StatusCode.RESOURCE_EXHAUSTED, "quota"))


class TestCallSequence:
    """Test the per-call state machine."""

    def test_starts_idle(self, spec, fake_clock) -> None:
        """Test a new sequence is idle with no attempts."""
        sequence = CallSequence(spec.build(clock=fake_clock))
        assert sequence.state is CallState.IDLE
        assert sequence.attempts == 0
        assert not sequence.is_terminal

    def test_success_path(self, spec, fake_clock) -> None:
        """Test Idle -> Attempting -> Succeeded."""
        sequence = CallSequence(spec.build(clock=fake_clock))
        sequence.start_attempt()
        assert sequence.state is CallState.ATTEMPTING

        assert sequence.record(Success(1)) is None
        assert sequence.state is CallState.SUCCEEDED
        assert sequence.is_terminal

    def test_retry_path(self, spec, fake_clock) -> None:
        """Test Attempting -> Retrying -> Attempting."""
        sequence = CallSequence(spec.build(clock=fake_clock))
        sequence.start_attempt()
        decision = sequence.record(Failure(StatusCode.ABORTED))

        assert decision == Retry(timedelta(milliseconds=100))
        assert sequence.state is CallState.RETRYING
        assert sequence.last_decision == decision

        sequence.start_attempt()
        assert sequence.state is CallState.ATTEMPTING
        assert sequence.attempts == 2

    def test_give_up_is_terminal(self, spec, fake_clock) -> None:
        """Test no state is re-entered after giving up."""
        sequence = CallSequence(spec.build(clock=fake_clock))
        sequence.start_attempt()
        decision = sequence.record(Failure(StatusCode.INTERNAL))

        assert isinstance(decision, GiveUp)
        assert sequence.state is CallState.GAVE_UP
        with pytest.raises(InvalidStateTransition):
            sequence.start_attempt()

    def test_success_is_terminal(self, spec, fake_clock) -> None:
        """Test a succeeded sequence cannot attempt again."""
        sequence = CallSequence(spec.build(clock=fake_clock))
        sequence.start_attempt()
        sequence.record(Success())
        with pytest.raises(InvalidStateTransition):
            sequence.start_attempt()

    def test_record_requires_attempt(self, spec, fake_clock) -> None:
        """Test outcomes can only be recorded while attempting."""
        sequence = CallSequence(spec.build(clock=fake_clock))
        with pytest.raises(InvalidStateTransition):
            sequence.record(Success())
