import threading

import pytest

from callguard.domain.events.api_events import CircuitClosed, CircuitHalfOpened, CircuitOpened, CircuitReset
from callguard.domain.models.resilience import BreakerConfig, CircuitState, CircuitStatus
from callguard.infrastructure.resilience.circuit_breaker import CircuitBreakerRegistry

ENDPOINT = "test-endpoint"


def trip(registry, endpoint=ENDPOINT, times=5):
    for _ in range(times):
        registry.record_failure(endpoint)


def test_unseen_endpoint_reports_closed_without_creating_entry(registry):
    status = registry.get_status("nonexistent")
    assert status == CircuitStatus(state=CircuitState.CLOSED, failure_count=0, last_failure_time=None)
    assert registry.get_all_statuses() == {}


def test_closed_allows_calls(registry):
    decision = registry.can_attempt(ENDPOINT)
    assert decision.allowed is True
    assert decision.state is CircuitState.CLOSED
    assert decision.is_probe is False


def test_failures_below_threshold_keep_circuit_closed(registry, clock):
    trip(registry, times=4)
    status = registry.get_status(ENDPOINT)
    assert status.state is CircuitState.CLOSED
    assert status.failure_count == 4
    assert status.last_failure_time == clock.now


def test_threshold_opens_circuit(registry, events):
    trip(registry)
    status = registry.get_status(ENDPOINT)
    assert status.state is CircuitState.OPEN
    assert status.failure_count == 5
    assert registry.can_attempt(ENDPOINT).allowed is False
    assert any(isinstance(e, CircuitOpened) and e.failure_count == 5 for e in events)


def test_success_resets_failure_count(registry):
    trip(registry, times=3)
    registry.record_success(ENDPOINT)
    assert registry.get_status(ENDPOINT).state is CircuitState.CLOSED
    assert registry.get_status(ENDPOINT).failure_count == 0


def test_open_stays_open_during_cooldown(registry, clock):
    trip(registry)
    clock.advance(59999)
    decision = registry.can_attempt(ENDPOINT)
    assert decision.allowed is False
    assert decision.state is CircuitState.OPEN


def test_cooldown_elapsed_admits_single_probe(registry, clock, events):
    trip(registry)
    clock.advance(60000)

    probe = registry.can_attempt(ENDPOINT)
    assert probe.allowed is True
    assert probe.is_probe is True
    assert probe.state is CircuitState.HALF_OPEN
    assert registry.get_status(ENDPOINT).state is CircuitState.HALF_OPEN
    assert any(isinstance(e, CircuitHalfOpened) for e in events)

    second = registry.can_attempt(ENDPOINT)
    assert second.allowed is False
    assert second.state is CircuitState.HALF_OPEN


def test_probe_success_closes_circuit(registry, clock, events):
    trip(registry)
    clock.advance(60000)
    registry.can_attempt(ENDPOINT)

    registry.record_success(ENDPOINT)

    status = registry.get_status(ENDPOINT)
    assert status.state is CircuitState.CLOSED
    assert status.failure_count == 0
    assert registry.can_attempt(ENDPOINT).allowed is True
    assert any(isinstance(e, CircuitClosed) and e.previous_state == "HALF_OPEN" for e in events)


def test_probe_failure_reopens_circuit(registry, clock):
    trip(registry)
    clock.advance(60000)
    registry.can_attempt(ENDPOINT)

    registry.record_failure(ENDPOINT)

    status = registry.get_status(ENDPOINT)
    assert status.state is CircuitState.OPEN
    assert status.failure_count >= 5
    assert status.last_failure_time == clock.now
    assert registry.can_attempt(ENDPOINT).allowed is False


def test_released_probe_lets_next_caller_probe(registry, clock):
    trip(registry)
    clock.advance(60000)
    registry.can_attempt(ENDPOINT)

    registry.release_probe(ENDPOINT)

    assert registry.get_status(ENDPOINT).state is CircuitState.OPEN
    retry_probe = registry.can_attempt(ENDPOINT)
    assert retry_probe.allowed is True
    assert retry_probe.is_probe is True


def test_success_on_open_circuit_closes_it(registry):
    trip(registry)
    registry.record_success(ENDPOINT)
    status = registry.get_status(ENDPOINT)
    assert status.state is CircuitState.CLOSED
    assert status.failure_count == 0


def test_reset_from_any_state(registry, clock, events):
    trip(registry)
    registry.reset(ENDPOINT)
    assert registry.get_status(ENDPOINT) == CircuitStatus(CircuitState.CLOSED, 0, None)

    trip(registry)
    clock.advance(60000)
    registry.can_attempt(ENDPOINT)
    registry.reset(ENDPOINT)
    assert registry.get_status(ENDPOINT) == CircuitStatus(CircuitState.CLOSED, 0, None)
    assert registry.can_attempt(ENDPOINT).allowed is True
    assert [e.previous_state for e in events if isinstance(e, CircuitReset)] == ["OPEN", "HALF_OPEN"]


def test_reset_unknown_endpoint(registry):
    registry.reset("never-seen")
    assert registry.get_status("never-seen") == CircuitStatus()


def test_reset_all_and_snapshot(registry):
    trip(registry, "a")
    registry.record_failure("b")

    snapshot = registry.get_all_statuses()
    assert set(snapshot) == {"a", "b"}
    assert snapshot["a"].state is CircuitState.OPEN
    assert snapshot["b"].failure_count == 1

    assert sorted(registry.reset_all()) == ["a", "b"]
    assert all(s == CircuitStatus() for s in registry.get_all_statuses().values())


def test_endpoints_are_independent(registry):
    trip(registry, "a")
    assert registry.can_attempt("a").allowed is False
    assert registry.can_attempt("b").allowed is True


def test_custom_threshold(clock):
    registry = CircuitBreakerRegistry(config=BreakerConfig(failure_threshold=2, cooldown_ms=10), clock=clock)
    registry.record_failure(ENDPOINT)
    registry.record_failure(ENDPOINT)
    assert registry.get_status(ENDPOINT).state is CircuitState.OPEN


def test_concurrent_threads_admit_one_probe(registry, clock):
    trip(registry)
    clock.advance(60000)

    barrier = threading.Barrier(8)
    decisions = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        decision = registry.can_attempt(ENDPOINT)
        with lock:
            decisions.append(decision)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(1 for d in decisions if d.allowed) == 1


def test_concurrent_failures_are_all_counted(clock):
    registry = CircuitBreakerRegistry(config=BreakerConfig(failure_threshold=1000), clock=clock)

    def worker():
        for _ in range(100):
            registry.record_failure(ENDPOINT)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert registry.get_status(ENDPOINT).failure_count == 400


@pytest.mark.parametrize("kwargs", [{"failure_threshold": 0}, {"cooldown_ms": -1}])
def test_invalid_breaker_config(kwargs):
    with pytest.raises(ValueError):
        BreakerConfig(**kwargs)
