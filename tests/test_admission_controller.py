"""Tests for AdmissionController decisions."""

import threading
from datetime import timedelta
from unittest.mock import Mock

import pytest

from notifier.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from notifier.core.errors import RateLimitStoreFullError
from notifier.core.policy import PolicyEntry, PolicyTable
from notifier.services.admission_controller import (
    AdmissionController,
    build_counter_key,
    hash_recipient,
)


def _controller(clock: Mock, policies: dict[str, PolicyEntry], **store_kwargs) -> AdmissionController:
    store = InMemoryRateLimitStore(clock=clock, **store_kwargs)
    return AdmissionController(policies=PolicyTable(policies), store=store, clock=clock)


@pytest.fixture
def status_policy() -> dict[str, PolicyEntry]:
    return {"status": PolicyEntry(limit=2, period=timedelta(minutes=1))}


def test_counter_key_combines_type_and_recipient() -> None:
    assert build_counter_key("status", "alice") == "status:alice"
    assert build_counter_key("status", "alice") == build_counter_key("status", "alice")


def test_hash_recipient_is_stable_and_opaque() -> None:
    hashed = hash_recipient("alice@example.com")

    assert hashed == hash_recipient("alice@example.com")
    assert "alice" not in hashed
    assert len(hashed) == 16


def test_unrestricted_type_is_always_allowed(clock: Mock, status_policy) -> None:
    controller = _controller(clock, status_policy)

    assert all(controller.is_allowed("unknown", "alice") for _ in range(100))


def test_unrestricted_type_does_not_create_counters(clock: Mock) -> None:
    store = InMemoryRateLimitStore(clock=clock)
    controller = AdmissionController(policies=PolicyTable(), store=store, clock=clock)

    decision = controller.evaluate("anything", "alice")

    assert decision.allowed is True
    assert decision.limit is None
    assert len(store) == 0


def test_status_example_window(clock: Mock, status_policy) -> None:
    controller = _controller(clock, status_policy)

    results = [controller.is_allowed("status", "alice") for _ in range(3)]
    assert results == [True, True, False]

    clock.return_value = 1061.0
    assert controller.is_allowed("status", "alice") is True


def test_cycle_repeats_after_each_window(clock: Mock) -> None:
    limit = 3
    controller = _controller(clock, {"marketing": PolicyEntry(limit=limit, period=timedelta(hours=1))})

    for window in range(3):
        clock.return_value = 1000.0 + window * 3600
        results = [controller.is_allowed("marketing", "dave") for _ in range(limit + 1)]
        assert results == [True] * limit + [False]


def test_recipients_have_independent_counters(clock: Mock) -> None:
    controller = _controller(clock, {"news": PolicyEntry(limit=1, period=timedelta(days=1))})

    assert controller.is_allowed("news", "bob") is True
    assert controller.is_allowed("news", "carol") is True
    assert controller.is_allowed("news", "bob") is False
    assert controller.is_allowed("news", "carol") is False


def test_types_have_independent_counters(clock: Mock) -> None:
    controller = _controller(
        clock,
        {
            "news": PolicyEntry(limit=1, period=timedelta(days=1)),
            "status": PolicyEntry(limit=1, period=timedelta(minutes=1)),
        },
    )

    assert controller.is_allowed("news", "bob") is True
    assert controller.is_allowed("status", "bob") is True
    assert controller.is_allowed("news", "bob") is False


def test_zero_limit_always_denies(clock: Mock) -> None:
    controller = _controller(clock, {"blocked": PolicyEntry(limit=0, period=timedelta(minutes=1))})

    assert controller.is_allowed("blocked", "alice") is False
    clock.return_value = 2000.0
    assert controller.is_allowed("blocked", "alice") is False


def test_denied_request_does_not_consume_budget(clock: Mock) -> None:
    store = InMemoryRateLimitStore(clock=clock)
    controller = AdmissionController(
        policies=PolicyTable({"status": PolicyEntry(limit=1, period=timedelta(minutes=1))}),
        store=store,
        clock=clock,
    )

    controller.is_allowed("status", "alice")
    controller.is_allowed("status", "alice")
    controller.is_allowed("status", "alice")

    assert store.get_or_init("status:alice", 60) == 1


def test_evaluate_reports_budget(clock: Mock, status_policy) -> None:
    controller = _controller(clock, status_policy)

    first = controller.evaluate("status", "alice")
    assert first.allowed is True
    assert first.limit == 2
    assert first.remaining == 1
    assert first.retry_after_seconds is None

    controller.evaluate("status", "alice")

    clock.return_value = 1020.5
    denied = controller.evaluate("status", "alice")
    assert denied.allowed is False
    assert denied.remaining == 0
    assert denied.retry_after_seconds == 40


def test_store_failure_is_not_an_admission(clock: Mock, status_policy) -> None:
    controller = _controller(clock, status_policy, max_entries=1)
    assert controller.is_allowed("status", "alice") is True

    with pytest.raises(RateLimitStoreFullError):
        controller.is_allowed("status", "bob")


def test_concurrent_requests_admit_exactly_limit() -> None:
    limit = 5
    workers = 50
    controller = AdmissionController(
        policies=PolicyTable({"status": PolicyEntry(limit=limit, period=timedelta(minutes=5))}),
        store=InMemoryRateLimitStore(),
    )
    barrier = threading.Barrier(workers)
    results: list[bool] = []
    results_lock = threading.Lock()

    def _request() -> None:
        barrier.wait()
        allowed = controller.is_allowed("status", "alice")
        with results_lock:
            results.append(allowed)

    threads = [threading.Thread(target=_request) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == limit
    assert results.count(False) == workers - limit


def test_concurrent_requests_for_many_keys() -> None:
    limit = 2
    recipients = [f"user-{i}" for i in range(10)]
    per_recipient = 8
    controller = AdmissionController(
        policies=PolicyTable({"news": PolicyEntry(limit=limit, period=timedelta(days=1))}),
        store=InMemoryRateLimitStore(),
    )
    barrier = threading.Barrier(len(recipients) * per_recipient)
    allowed_by_recipient: dict[str, int] = {r: 0 for r in recipients}
    counts_lock = threading.Lock()

    def _request(recipient: str) -> None:
        barrier.wait()
        if controller.is_allowed("news", recipient):
            with counts_lock:
                allowed_by_recipient[recipient] += 1

    threads = [
        threading.Thread(target=_request, args=(r,))
        for r in recipients
        for _ in range(per_recipient)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert allowed_by_recipient == {r: limit for r in recipients}
