"""
Tests for the live check quota and the quota-bounded router
"""
import threading
from datetime import datetime, timedelta

import pytest

from testpilot.components.contracts import QueryContext
from testpilot.components.decision_routing import DecisionRouter
from testpilot.models.quota_counter import QuotaCounter
from testpilot.services.quota_management_service import (
    QUOTA_LIMITED_REASON,
    DatabaseQuotaStore,
    InMemoryQuotaStore,
    QuotaBoundedRouter,
    QuotaManagementService,
    QuotaState,
    check_and_reset,
    try_consume,
)

DAY_ONE = datetime(2026, 3, 14, 9, 0, 0)
DAY_TWO = datetime(2026, 3, 15, 0, 5, 0)


def test_limit_two_allows_two_calls_per_day():
    state = QuotaState(limit=2, window_start=DAY_ONE)
    results = [try_consume(state, DAY_ONE + timedelta(hours=i)) for i in range(3)]
    assert results == [True, True, False]
    assert state.expensive_calls_today == 2


def test_next_calendar_day_resets_the_count():
    state = QuotaState(limit=2, window_start=DAY_ONE)
    for _ in range(3):
        try_consume(state, DAY_ONE)
    assert try_consume(state, DAY_TWO) is True
    assert state.expensive_calls_today == 1
    assert state.window_start == DAY_TWO


def test_reset_is_by_calendar_date_not_elapsed_time():
    state = QuotaState(limit=1, window_start=datetime(2026, 3, 14, 23, 59))
    assert try_consume(state, datetime(2026, 3, 14, 23, 59, 30)) is True
    assert try_consume(state, datetime(2026, 3, 15, 0, 0, 1)) is True


def test_check_and_reset_same_day_is_noop():
    state = QuotaState(limit=3, expensive_calls_today=2, window_start=DAY_ONE)
    check_and_reset(state, DAY_ONE + timedelta(hours=10))
    assert state.expensive_calls_today == 2
    assert state.window_start == DAY_ONE


def test_rejected_call_does_not_increment():
    state = QuotaState(limit=1, window_start=DAY_ONE)
    try_consume(state, DAY_ONE)
    for _ in range(5):
        assert try_consume(state, DAY_ONE) is False
    assert state.expensive_calls_today == 1


@pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": -1}, {"limit": 2, "expensive_calls_today": -1}])
def test_invalid_state_is_rejected(kwargs):
    with pytest.raises(ValueError):
        QuotaState(**kwargs)


def test_in_memory_store_is_safe_under_concurrency():
    store = InMemoryQuotaStore(limit=5, window_start=DAY_ONE)
    results = []
    barrier = threading.Barrier(20)

    def worker():
        barrier.wait()
        results.append(store.consume(DAY_ONE))

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 5
    assert store.snapshot(DAY_ONE).expensive_calls_today == 5


def test_service_status_and_remaining():
    service = QuotaManagementService(InMemoryQuotaStore(limit=5, window_start=DAY_ONE))
    assert service.status(DAY_ONE)["status"] == "within_limit"
    for _ in range(4):
        service.try_consume(DAY_ONE)
    status = service.status(DAY_ONE)
    assert status["status"] == "approaching_limit"
    assert status["used"] == 4
    assert service.remaining(DAY_ONE) == 1
    service.try_consume(DAY_ONE)
    assert service.status(DAY_ONE)["status"] == "exceeded"
    assert service.remaining(DAY_TWO) == 5


def test_database_store_persists_across_instances(db_session_factory):
    first = QuotaManagementService(DatabaseQuotaStore(db_session_factory, limit=2))
    assert first.try_consume(DAY_ONE) is True

    # A new service (e.g. after a restart) sees the same count
    second = QuotaManagementService(DatabaseQuotaStore(db_session_factory, limit=2))
    assert second.try_consume(DAY_ONE) is True
    assert second.try_consume(DAY_ONE) is False
    assert second.try_consume(DAY_TWO) is True

    db = db_session_factory()
    try:
        counter = db.query(QuotaCounter).filter(QuotaCounter.name == "live_checks").one()
        assert counter.calls == 1
        assert counter.window_start == DAY_TWO
    finally:
        db.close()


def test_database_store_snapshot_does_not_consume(db_session_factory):
    service = QuotaManagementService.from_database(db_session_factory, limit=3)
    service.try_consume(DAY_ONE)
    assert service.status(DAY_ONE)["used"] == 1
    assert service.status(DAY_ONE)["used"] == 1
    assert service.remaining(DAY_TWO) == 3


def _bounded(limit):
    quota = QuotaManagementService(InMemoryQuotaStore(limit=limit, window_start=DAY_ONE))
    return QuotaBoundedRouter(DecisionRouter(clock=lambda: DAY_ONE), quota), quota


def test_bounded_router_downgrades_when_exhausted():
    router, _ = _bounded(limit=1)
    first = router.route("is the checkout broken", now=DAY_ONE)
    second = router.route("is the checkout broken", now=DAY_ONE)

    assert first.use_expensive_path is True
    assert first.quota_limited is False
    assert second.use_expensive_path is False
    assert second.quota_limited is True
    assert second.reason == QUOTA_LIMITED_REASON
    assert "Daily limit reached" in second.reason
    assert second.metadata["original_rule"] == "verification"


def test_bounded_router_cheap_decisions_do_not_consume():
    router, quota = _bounded(limit=1)
    for _ in range(3):
        decision = router.route("what is the price", now=DAY_ONE)
        assert decision.use_expensive_path is False
        assert decision.quota_limited is False
    assert quota.remaining(DAY_ONE) == 1


def test_bounded_router_never_upgrades():
    router, _ = _bounded(limit=5)
    fresh = QueryContext(last_check_timestamp=DAY_ONE - timedelta(minutes=1), cached_result_available=True)
    decision = router.route("is it working", fresh, now=DAY_ONE)
    assert decision.use_expensive_path is False
    assert decision.rule == "freshness"


def test_bounded_router_recovers_next_day():
    router, _ = _bounded(limit=1)
    router.route("", now=DAY_ONE)
    assert router.route("", now=DAY_ONE).quota_limited is True
    assert router.route("", now=DAY_TWO).use_expensive_path is True


@pytest.fixture
def file_db_session_factory(tmp_path):
    """Session factory over a SQLite file, so each thread gets its own connection"""
    from testpilot.core.database import Base, get_engine, get_session_local, init_engine
    import testpilot.models  # noqa: F401

    engine = init_engine(f"sqlite:///{tmp_path / 'quota.db'}")
    Base.metadata.create_all(bind=engine)
    yield get_session_local()
    get_engine().dispose()


def _consume_concurrently(session_factory, threads, limit, now):
    results = []
    barrier = threading.Barrier(threads)

    def worker():
        store = DatabaseQuotaStore(session_factory, limit=limit)
        barrier.wait()
        results.append(store.consume(now))

    pool = [threading.Thread(target=worker) for _ in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join()
    return results


def _stored_calls(session_factory):
    db = session_factory()
    try:
        return db.query(QuotaCounter).filter(QuotaCounter.name == "live_checks").one().calls
    finally:
        db.close()


def test_database_store_never_exceeds_limit_under_concurrency(file_db_session_factory):
    DatabaseQuotaStore(file_db_session_factory, limit=5).snapshot(DAY_ONE)

    results = _consume_concurrently(file_db_session_factory, threads=20, limit=5, now=DAY_ONE)

    assert len(results) == 20
    assert results.count(True) == 5
    assert _stored_calls(file_db_session_factory) == 5


def test_database_store_first_row_is_created_once(file_db_session_factory):
    results = _consume_concurrently(file_db_session_factory, threads=10, limit=5, now=DAY_ONE)

    assert len(results) == 10
    assert results.count(True) == 5
    assert _stored_calls(file_db_session_factory) == 5


def test_database_store_day_reset_under_concurrency(file_db_session_factory):
    store = DatabaseQuotaStore(file_db_session_factory, limit=3)
    for _ in range(3):
        store.consume(DAY_ONE)

    results = _consume_concurrently(file_db_session_factory, threads=10, limit=3, now=DAY_TWO)

    assert len(results) == 10
    assert results.count(True) == 3
    assert store.snapshot(DAY_TWO).expensive_calls_today == 3
