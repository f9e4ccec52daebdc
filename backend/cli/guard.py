"""CLI for environment policy checks and live-check routing decisions."""
import argparse
import asyncio
import json
import sys
from datetime import datetime, timedelta

from testpilot.components.contracts import QueryContext, Urgency
from testpilot.core.environments import Action
from testpilot.core.exceptions import ConfigurationError, PolicyViolation
from testpilot.core.service_registry import get_service_registry

EXIT_NOT_ALLOWED = 1
EXIT_POLICY_VIOLATION = 3
EXIT_CONFIGURATION_ERROR = 4


def _print_json(payload):
    print(json.dumps(payload, indent=2, default=str, ensure_ascii=False))


def _context_from_args(args):
    if args.urgency is None and args.last_check_minutes is None and not args.cached:
        return None
    last_check = None
    if args.last_check_minutes is not None:
        last_check = datetime.now() - timedelta(minutes=args.last_check_minutes)
    return QueryContext(
        last_check_timestamp=last_check,
        cached_result_available=args.cached,
        urgency=Urgency(args.urgency) if args.urgency else None,
    )


def cmd_env(args):
    """Show the resolved environment and its permission table."""
    _print_json(get_service_registry().policy_guard().describe())
    return 0


def cmd_check(args):
    """Report whether an action is allowed; exit 1 when it is not."""
    guard = get_service_registry().policy_guard()
    allowed = guard.is_allowed(args.action)
    print(f"{args.action}: {'allowed' if allowed else 'blocked'} in {guard.environment.value}")
    return 0 if allowed else EXIT_NOT_ALLOWED


def cmd_assert(args):
    """Fail hard when an action is not allowed (for use in CI scripts)."""
    get_service_registry().policy_guard().assert_allowed(args.action)
    print(f"{args.action}: allowed")
    return 0


def cmd_route(args):
    """Print the routing decision for a question."""
    registry = get_service_registry()
    router = registry.bounded_router() if args.apply_quota else registry.decision_router()
    decision = router.route(args.query, _context_from_args(args))
    _print_json(decision.model_dump(mode="json"))
    return 0


def cmd_ask(args):
    """Answer a question, running a live check when needed."""
    agent = get_service_registry().subscription_agent()
    answer = asyncio.run(agent.ask(args.query, _context_from_args(args), tier=args.tier))
    print(answer.answer)
    print(f"-- {answer.decision.reason}")
    return 0


def cmd_quota(args):
    """Show today's live check quota usage."""
    _print_json(get_service_registry().quota_service().status())
    return 0


def _add_context_args(parser):
    parser.add_argument("--urgency", choices=[u.value for u in Urgency], default=None)
    parser.add_argument("--last-check-minutes", type=float, default=None, help="Age of the last live check")
    parser.add_argument("--cached", action="store_true", help="A cached live check result is available")


def build_parser():
    p = argparse.ArgumentParser(prog="guard")
    sub = p.add_subparsers(dest="cmd")
    s = sub.add_parser("env", help="Show environment policy")
    s.set_defaults(func=cmd_env)
    actions = [a.value for a in Action]
    s = sub.add_parser("check", help="Check whether an action is allowed")
    s.add_argument("action", choices=actions)
    s.set_defaults(func=cmd_check)
    s = sub.add_parser("assert", help="Fail when an action is not allowed")
    s.add_argument("action", choices=actions)
    s.set_defaults(func=cmd_assert)
    s = sub.add_parser("route", help="Show the routing decision for a question")
    s.add_argument("query")
    s.add_argument("--apply-quota", action="store_true", help="Count the decision against the daily quota")
    _add_context_args(s)
    s.set_defaults(func=cmd_route)
    s = sub.add_parser("ask", help="Answer a question about the subscription site")
    s.add_argument("query")
    s.add_argument("--tier", default="premium")
    _add_context_args(s)
    s.set_defaults(func=cmd_ask)
    s = sub.add_parser("quota", help="Show live check quota usage")
    s.set_defaults(func=cmd_quota)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2
    try:
        return args.func(args)
    except PolicyViolation as e:
        print(str(e), file=sys.stderr)
        return EXIT_POLICY_VIOLATION
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR


if __name__ == "__main__":
    sys.exit(main())
