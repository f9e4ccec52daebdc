"""
Tests for the subscription knowledge base
"""
import pytest

from testpilot.services.knowledge_base import (
    FAQ_ITEMS,
    SUBSCRIPTION_TIERS,
    FAQItem,
    KnowledgeBase,
    SubscriptionTier,
)


@pytest.fixture
def kb():
    return KnowledgeBase()


def test_catalog_has_premium_and_basic(kb):
    assert kb.tier_names() == ["premium", "basic"]
    assert kb.get_tier("premium").monthly_price == "£9.99/month"
    assert kb.get_tier("basic").monthly_price == "£6.99/month"
    assert kb.get_tier("premium").badge == "BEST VALUE"
    assert kb.get_tier("basic").badge is None


def test_unknown_tier_raises_lookup_error(kb):
    with pytest.raises(LookupError, match='Tier "gold" not found'):
        kb.get_tier("gold")


def test_premium_exclusive_features(kb):
    assert kb.premium_exclusive_features() == ["80% fewer ads on web", "25+ daily premium puzzles"]


def test_price_question_for_one_tier(kb):
    answer = kb.answer("How much does basic cost?")
    assert answer == "DailyMail+ Basic: £6.99/month (First month free, then £1.99/month for 11 months)"


def test_price_question_for_all_tiers(kb):
    answer = kb.answer("what are the prices")
    lines = answer.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("DailyMail+: £9.99/month")
    assert lines[0].endswith("[BEST VALUE]")
    assert "includes" not in answer


def test_feature_question(kb):
    answer = kb.answer("what features does premium include")
    assert answer.startswith("DailyMail+ includes: Unlimited access to the Daily Mail")
    assert "25+ daily premium puzzles" in answer
    assert "£" not in answer


def test_generic_question_gets_prices_and_features(kb):
    answer = kb.answer("tell me about basic")
    assert "£6.99/month" in answer
    assert "DailyMail+ Basic includes:" in answer


def test_faq_match_takes_precedence(kb):
    answer = kb.answer("What is DailyMail+? and the price")
    assert answer.startswith("What is DailyMail+?")
    assert "subscription service" in answer


@pytest.mark.parametrize("query", ["", None])
def test_empty_query_still_answers(kb, query):
    assert kb.answer(query)


def test_custom_catalog():
    tier = SubscriptionTier(
        name="trial",
        display_name="Trial",
        monthly_price="£0.00/month",
        trial_price="Free",
        after_trial_price="£1.00/month",
        cta_url_pattern=r"example\.com/buy",
    )
    kb = KnowledgeBase(tiers=[tier], faq=[FAQItem(question="Can I cancel?", answer_contains="any time")])
    assert kb.tier_names() == ["trial"]
    assert "any time" in kb.answer("can i cancel")
    assert kb.answer("price").startswith("Trial: £0.00/month")


def test_module_catalog_is_not_mutated_by_instances():
    kb = KnowledgeBase()
    kb.tiers.clear()
    kb.faq.clear()
    assert len(SUBSCRIPTION_TIERS) == 2
    assert len(FAQ_ITEMS) == 3
