"""
Quota Management Service for the expensive (live check) path
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from testpilot.components.contracts import QueryContext, RoutingDecision
from testpilot.components.decision_routing import DecisionRouter
from testpilot.core.logging_config import LoggingConfig
from testpilot.models.quota_counter import QuotaCounter

logger = LoggingConfig.get_logger(__name__)

QUOTA_LIMITED_REASON = "Daily limit reached for live checks; answering from known data"


class QuotaStatus(str, Enum):
    """Status of quota check"""
    WITHIN_LIMIT = "within_limit"
    APPROACHING_LIMIT = "approaching_limit"  # 80% or more used
    EXCEEDED = "exceeded"  # No slots left today


@dataclass
class QuotaState:
    """Daily counter of expensive-path calls"""
    limit: int
    expensive_calls_today: int = 0
    window_start: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.limit <= 0:
            raise ValueError("Quota limit must be positive")
        if self.expensive_calls_today < 0:
            raise ValueError("Call count cannot be negative")


def check_and_reset(state: QuotaState, now: Optional[datetime] = None) -> None:
    """Start a new window when the calendar day (local time) has changed"""
    now = now or datetime.now()
    if now.date() != state.window_start.date():
        logger.info(
            "Quota window reset",
            extra={"previous_window": state.window_start.date().isoformat(), "calls": state.expensive_calls_today},
        )
        state.expensive_calls_today = 0
        state.window_start = now


def try_consume(state: QuotaState, now: Optional[datetime] = None) -> bool:
    """Take one slot if any is left today; never increments past the limit"""
    check_and_reset(state, now)
    if state.expensive_calls_today < state.limit:
        state.expensive_calls_today += 1
        return True
    return False


class QuotaStore(ABC):
    """Storage for a QuotaState; consume must be atomic per store"""

    @abstractmethod
    def consume(self, now: Optional[datetime] = None) -> bool:
        ...

    @abstractmethod
    def snapshot(self, now: Optional[datetime] = None) -> QuotaState:
        ...


class InMemoryQuotaStore(QuotaStore):
    """Process-local counter; the count is lost on restart"""

    def __init__(self, limit: int, window_start: Optional[datetime] = None):
        self.state = QuotaState(limit=limit, window_start=window_start or datetime.now())
        self._lock = threading.Lock()

    def consume(self, now: Optional[datetime] = None) -> bool:
        with self._lock:
            return try_consume(self.state, now)

    def snapshot(self, now: Optional[datetime] = None) -> QuotaState:
        with self._lock:
            check_and_reset(self.state, now)
            return QuotaState(
                limit=self.state.limit,
                expensive_calls_today=self.state.expensive_calls_today,
                window_start=self.state.window_start,
            )


class DatabaseQuotaStore(QuotaStore):
    """
    Counter persisted in the quota_counters table, shared across processes.

    The day reset and the limit check are conditional UPDATEs, so checking and
    incrementing happen in one statement and concurrent consumers cannot push
    `calls` past the limit.
    """

    def __init__(self, session_factory: Callable[[], Session], limit: int, name: str = "live_checks"):
        if limit <= 0:
            raise ValueError("Quota limit must be positive")
        self.session_factory = session_factory
        self.limit = limit
        self.name = name

    def _ensure_row(self, db: Session, now: datetime) -> None:
        """Create the counter row unless another consumer already has"""
        values = {"name": self.name, "calls": 0, "daily_limit": self.limit, "window_start": now}
        dialect = db.get_bind().dialect.name
        if dialect == "sqlite":
            db.execute(sqlite_insert(QuotaCounter).values(**values).on_conflict_do_nothing(index_elements=["name"]))
        elif dialect == "postgresql":
            db.execute(pg_insert(QuotaCounter).values(**values).on_conflict_do_nothing(index_elements=["name"]))
        elif db.get(QuotaCounter, self.name) is None:
            try:
                with db.begin_nested():
                    db.add(QuotaCounter(**values))
            except IntegrityError:
                logger.debug("Quota counter created concurrently", extra={"quota": self.name})

    def _reset_if_new_day(self, db: Session, now: datetime) -> None:
        day_start = datetime.combine(now.date(), time.min)
        result = db.execute(
            update(QuotaCounter)
            .where(
                QuotaCounter.name == self.name,
                or_(QuotaCounter.window_start < day_start, QuotaCounter.window_start >= day_start + timedelta(days=1)),
            )
            .values(calls=0, window_start=now, daily_limit=self.limit)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.info("Quota window reset", extra={"quota": self.name, "window_start": now.isoformat()})

    def _transaction(self, now: Optional[datetime], work: Callable[[Session, datetime], Any]) -> Any:
        now = now or datetime.now()
        db = self.session_factory()
        try:
            self._ensure_row(db, now)
            self._reset_if_new_day(db, now)
            result = work(db, now)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _consume(self, db: Session, now: datetime) -> bool:
        result = db.execute(
            update(QuotaCounter)
            .where(QuotaCounter.name == self.name, QuotaCounter.calls < self.limit)
            .values(calls=QuotaCounter.calls + 1, daily_limit=self.limit)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _snapshot(self, db: Session, now: datetime) -> QuotaState:
        calls, window_start = db.execute(
            select(QuotaCounter.calls, QuotaCounter.window_start).where(QuotaCounter.name == self.name)
        ).one()
        return QuotaState(limit=self.limit, expensive_calls_today=calls, window_start=window_start)

    def consume(self, now: Optional[datetime] = None) -> bool:
        return self._transaction(now, self._consume)

    def snapshot(self, now: Optional[datetime] = None) -> QuotaState:
        return self._transaction(now, self._snapshot)


class QuotaManagementService:
    """
    Daily ceiling on live checks.

    Handles:
    - Consuming one slot per live check
    - Usage reporting
    - Limit warnings
    """

    warning_threshold = 0.8

    def __init__(self, store: QuotaStore):
        self.store = store

    @classmethod
    def in_memory(cls, limit: int) -> "QuotaManagementService":
        return cls(InMemoryQuotaStore(limit))

    @classmethod
    def from_database(cls, session_factory: sessionmaker, limit: int) -> "QuotaManagementService":
        return cls(DatabaseQuotaStore(session_factory, limit))

    def try_consume(self, now: Optional[datetime] = None) -> bool:
        allowed = self.store.consume(now)
        if not allowed:
            logger.warning("Live check quota exhausted for today")
        return allowed

    def remaining(self, now: Optional[datetime] = None) -> int:
        state = self.store.snapshot(now)
        return max(0, state.limit - state.expensive_calls_today)

    def status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Current usage of the live check quota.

        Returns:
            Dictionary with limit, usage, remaining slots and status
        """
        state = self.store.snapshot(now)
        used = state.expensive_calls_today
        if used >= state.limit:
            status = QuotaStatus.EXCEEDED
        elif used / state.limit >= self.warning_threshold:
            status = QuotaStatus.APPROACHING_LIMIT
        else:
            status = QuotaStatus.WITHIN_LIMIT
        return {
            "status": status.value,
            "limit": state.limit,
            "used": used,
            "remaining": max(0, state.limit - used),
            "window_start": state.window_start.isoformat(),
        }


class QuotaBoundedRouter:
    """
    Wraps a DecisionRouter with the daily quota.

    Only ever downgrades an expensive decision to the cheap path; cheap decisions
    pass through without touching the quota.
    """

    def __init__(self, router: DecisionRouter, quota: QuotaManagementService):
        self.router = router
        self.quota = quota

    def route(
        self,
        query: Optional[str],
        context: Optional[QueryContext] = None,
        now: Optional[datetime] = None,
    ) -> RoutingDecision:
        decision = self.router.route(query, context, now=now)
        if not decision.use_expensive_path:
            return decision
        if self.quota.try_consume(now):
            return decision
        return decision.model_copy(update={
            "use_expensive_path": False,
            "reason": QUOTA_LIMITED_REASON,
            "quota_limited": True,
            "metadata": {**decision.metadata, "original_rule": decision.rule, "original_reason": decision.reason},
        })
