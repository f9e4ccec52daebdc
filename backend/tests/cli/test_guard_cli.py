import json

import pytest

from cli import guard


def test_build_parser():
    parser = guard.build_parser()
    parser.format_help()
    assert guard.main([]) == 2


def test_env_prints_policy_table(capsys, use_environment):
    use_environment("production")
    assert guard.main(["env"]) == 0
    table = json.loads(capsys.readouterr().out)
    assert table["environment"] == "production"
    assert table["actions"]["submit"] is False


def test_check_blocked_action_exits_one(capsys, use_environment):
    use_environment("production")
    assert guard.main(["check", "write"]) == guard.EXIT_NOT_ALLOWED
    assert "write: blocked in production" in capsys.readouterr().out


def test_check_allowed_action(capsys, use_environment):
    use_environment("staging")
    assert guard.main(["check", "submit"]) == 0


def test_assert_blocked_action_exits_three(capsys, use_environment):
    use_environment("production")
    assert guard.main(["assert", "submit"]) == guard.EXIT_POLICY_VIOLATION
    assert "SAFETY BLOCK" in capsys.readouterr().err


def test_unknown_action_is_rejected_by_parser():
    with pytest.raises(SystemExit):
        guard.main(["check", "delete"])


def test_route_with_context(capsys):
    assert guard.main(["route", "is it working", "--last-check-minutes", "3", "--cached"]) == 0
    decision = json.loads(capsys.readouterr().out)
    assert decision["use_expensive_path"] is False
    assert decision["rule"] == "freshness"


def test_route_high_urgency(capsys):
    assert guard.main(["route", "is it working", "--urgency", "high"]) == 0
    assert json.loads(capsys.readouterr().out)["rule"] == "urgency"


def test_ask_informational(capsys):
    assert guard.main(["ask", "how much is basic", "--tier", "basic"]) == 0
    out = capsys.readouterr().out
    assert "£6.99/month" in out
    assert "-- Query is answerable from known data" in out


def test_quota(capsys):
    assert guard.main(["quota"]) == 0
    status = json.loads(capsys.readouterr().out)
    assert status["used"] == 0
    assert status["limit"] == 50
