"""
Decision Routing component.

Role: decide whether a question about the subscription site needs a live check
(expensive path) or can be answered from known data (cheap path).

Rules are an ordered table; the first matching rule wins. Lexical intent outranks
context hints (urgency, cache age).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence, Tuple

from testpilot.components.contracts import QueryContext, RoutingDecision, Urgency
from testpilot.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

DEFAULT_FRESHNESS_WINDOW_SECONDS = 300

# Price / feature phrasing: answerable from the catalog
INFORMATIONAL_PATTERNS: Tuple[str, ...] = (
    r"\bprices?\b",
    r"\bpriced\b",
    r"\bcosts?\b",
    r"\bhow much\b",
    r"\bfeatures?\b",
    r"\bincludes?\b",
    r"\bincluded\b",
    r"\btrial\b",
    r"\bbadge\b",
    r"\bdifference\b",
    # Only a bare "what is <tier>" question; "what is broken..." must stay operational
    r"^\s*what (is|does) (the )?(dailymail\+?( basic)?|premium|basic)( plan| tier)?\s*\??\s*$",
    r"\bfaqs?\b",
)

# Operational / functional phrasing: needs a live check
VERIFICATION_PATTERNS: Tuple[str, ...] = (
    r"\bworks\b",
    r"\bbroken\b",
    r"\bvalidat(e|es|ion)\b",
    r"\bverify\b",
    r"\bcheck (the )?(flow|page|checkout|sign[- ]?in|journey)\b",
    r"\bfail(s|ed|ing|ure)?\b",
    r"\bdown\b",
    r"\berrors?\b",
    r"\bnot loading\b",
)


@dataclass(frozen=True)
class RouteRequest:
    query: str
    context: QueryContext
    now: datetime


@dataclass(frozen=True)
class RoutingRule:
    """One row of the priority table"""
    name: str
    predicate: Callable[[RouteRequest], bool]
    use_expensive_path: bool
    reason: Callable[[RouteRequest], str]


def compile_patterns(patterns: Sequence[str]) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def matches_any(patterns: Sequence[re.Pattern], text: str) -> bool:
    return any(p.search(text) for p in patterns)


def check_age_seconds(context: QueryContext, now: datetime) -> Optional[float]:
    """Seconds since the last live check, or None when unknown"""
    ts = context.last_check_timestamp
    if ts is None:
        return None
    # Naive timestamps are local time
    if ts.tzinfo is None and now.tzinfo is not None:
        ts = ts.astimezone()
    elif ts.tzinfo is not None and now.tzinfo is None:
        now = now.astimezone()
    return (now - ts).total_seconds()


def build_default_rules(
    informational: Sequence[str] = INFORMATIONAL_PATTERNS,
    verification: Sequence[str] = VERIFICATION_PATTERNS,
    freshness_window_seconds: int = DEFAULT_FRESHNESS_WINDOW_SECONDS,
) -> Tuple[RoutingRule, ...]:
    info_re = compile_patterns(informational)
    verify_re = compile_patterns(verification)

    def is_fresh(req: RouteRequest) -> bool:
        if not req.context.cached_result_available:
            return False
        age = check_age_seconds(req.context, req.now)
        # A timestamp from the future is not trusted as fresh
        return age is not None and 0 <= age < freshness_window_seconds

    def fresh_reason(req: RouteRequest) -> str:
        minutes = int(check_age_seconds(req.context, req.now) // 60)
        return f"Recent check {minutes} minute(s) ago; using cached result"

    return (
        RoutingRule(
            name="informational",
            predicate=lambda req: matches_any(info_re, req.query),
            use_expensive_path=False,
            reason=lambda req: "Query is answerable from known data",
        ),
        RoutingRule(
            name="verification",
            predicate=lambda req: matches_any(verify_re, req.query),
            use_expensive_path=True,
            reason=lambda req: "Query requires live validation",
        ),
        RoutingRule(
            name="urgency",
            predicate=lambda req: req.context.urgency == Urgency.HIGH,
            use_expensive_path=True,
            reason=lambda req: "High urgency requires fresh check",
        ),
        RoutingRule(
            name="freshness",
            predicate=is_fresh,
            use_expensive_path=False,
            reason=fresh_reason,
        ),
    )


DEFAULT_RULE = RoutingRule(
    name="default",
    predicate=lambda req: True,
    use_expensive_path=True,
    reason=lambda req: "Default to authoritative check",
)


class DecisionRouter:
    component_name = "routing"

    def __init__(
        self,
        rules: Optional[Sequence[RoutingRule]] = None,
        freshness_window_seconds: int = DEFAULT_FRESHNESS_WINDOW_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.rules: Tuple[RoutingRule, ...] = tuple(
            rules if rules is not None else build_default_rules(freshness_window_seconds=freshness_window_seconds)
        )
        self.clock = clock

    def route(
        self,
        query: Optional[str],
        context: Optional[QueryContext] = None,
        now: Optional[datetime] = None,
    ) -> RoutingDecision:
        request = RouteRequest(
            query=query or "",
            context=context or QueryContext(),
            now=now or self.clock(),
        )
        rule = next((r for r in self.rules if r.predicate(request)), DEFAULT_RULE)
        decision = RoutingDecision(
            use_expensive_path=rule.use_expensive_path,
            reason=rule.reason(request),
            rule=rule.name,
            decided_at=request.now,
        )
        logger.debug(
            "Routing decision: %s",
            "expensive" if decision.use_expensive_path else "cheap",
            extra={"rule": rule.name, "routing_reason": decision.reason},
        )
        return decision
