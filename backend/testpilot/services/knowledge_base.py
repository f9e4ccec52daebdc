"""
Knowledge base for the subscription site (cheap path)

Answers informational questions from the known catalog: tiers, prices, features, FAQ.
Keep in sync with the live site; the live check (health_check_service) is what
notices when it drifts.
"""
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from testpilot.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


class SubscriptionTier(BaseModel):
    """Subscription tier as displayed on the site"""
    name: str = Field(..., description="Internal identifier")
    display_name: str
    monthly_price: str
    trial_price: str
    after_trial_price: str
    features: List[str] = Field(default_factory=list)
    badge: Optional[str] = None
    cta_url_pattern: str = Field(..., description="Regex the tier's CTA link must match")


class FAQItem(BaseModel):
    question: str
    answer_contains: str


SUBSCRIPTION_TIERS: List[SubscriptionTier] = [
    SubscriptionTier(
        name="premium",
        display_name="DailyMail+",
        monthly_price="£9.99/month",
        trial_price="First month free",
        after_trial_price="£1.99/month for 11 months",
        badge="BEST VALUE",
        cta_url_pattern=r"themailsubscriptions\.co\.uk/national/buy",
        features=[
            "Unlimited access to the Daily Mail",
            "Over 850 exclusive articles per month",
            "Best of DailyMail+ weekly newsletter",
            "80% fewer ads on web",
            "25+ daily premium puzzles",
        ],
    ),
    SubscriptionTier(
        name="basic",
        display_name="DailyMail+ Basic",
        monthly_price="£6.99/month",
        trial_price="First month free",
        after_trial_price="£1.99/month for 11 months",
        cta_url_pattern=r"themailsubscriptions\.co\.uk/national/buy",
        features=[
            "Unlimited access to the Daily Mail",
            "Over 850 exclusive articles per month",
            "Best of DailyMail+ weekly newsletter",
        ],
    ),
]

FAQ_ITEMS: List[FAQItem] = [
    FAQItem(question="What is DailyMail+?", answer_contains="subscription service"),
    FAQItem(question="How can I install the Daily Mail app?", answer_contains="Google Play"),
    FAQItem(question="What does 80% fewer ads mean?", answer_contains="fewer advertisement placements"),
]

URLS: Dict[str, str] = {
    "subscription_page": "/info/425365/choose-your-subscription",
    "help_page": "/help",
    "terms_page": "/info/368160/subscriptions-general-terms-and-conditions",
}

SUBSCRIPTION_PAGE_HEADING = "Choose your subscription"

_PRICE_RE = re.compile(r"\b(price[sd]?|costs?|how much|trial|pay)\b", re.IGNORECASE)
_FEATURE_RE = re.compile(r"\b(features?|includes?|included|get|difference|exclusive)\b", re.IGNORECASE)


class KnowledgeBase:
    """Synchronous lookup over the subscription catalog"""

    def __init__(
        self,
        tiers: Optional[List[SubscriptionTier]] = None,
        faq: Optional[List[FAQItem]] = None,
    ):
        self.tiers = list(tiers if tiers is not None else SUBSCRIPTION_TIERS)
        self.faq = list(faq if faq is not None else FAQ_ITEMS)

    def get_tier(self, name: str) -> SubscriptionTier:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        raise LookupError(f'Tier "{name}" not found')

    def tier_names(self) -> List[str]:
        return [tier.name for tier in self.tiers]

    def premium_exclusive_features(self) -> List[str]:
        """Features of the premium tier that basic does not have"""
        basic = set(self.get_tier("basic").features)
        return [f for f in self.get_tier("premium").features if f not in basic]

    def _mentioned_tiers(self, query: str) -> List[SubscriptionTier]:
        lowered = query.lower()
        mentioned = [tier for tier in self.tiers if re.search(rf"\b{re.escape(tier.name)}\b", lowered)]
        return mentioned or self.tiers

    def _price_line(self, tier: SubscriptionTier) -> str:
        line = (
            f"{tier.display_name}: {tier.monthly_price} "
            f"({tier.trial_price}, then {tier.after_trial_price})"
        )
        if tier.badge:
            line += f" [{tier.badge}]"
        return line

    def _feature_line(self, tier: SubscriptionTier) -> str:
        return f"{tier.display_name} includes: " + "; ".join(tier.features)

    def _faq_match(self, query: str) -> Optional[FAQItem]:
        lowered = query.lower().strip(" ?")
        for item in self.faq:
            if item.question.lower().strip(" ?") in lowered:
                return item
        return None

    def answer(self, query: str) -> str:
        """Answer from known data; always returns some text"""
        query = query or ""
        faq = self._faq_match(query)
        if faq is not None:
            return f"{faq.question} See the FAQ section: the answer covers {faq.answer_contains}."

        tiers = self._mentioned_tiers(query)
        wants_price = bool(_PRICE_RE.search(query))
        wants_features = bool(_FEATURE_RE.search(query))
        if not wants_price and not wants_features:
            wants_price = wants_features = True

        lines = []
        if wants_price:
            lines.extend(self._price_line(tier) for tier in tiers)
        if wants_features:
            lines.extend(self._feature_line(tier) for tier in tiers)
        logger.debug("Answered from knowledge base", extra={"tiers": [t.name for t in tiers]})
        return "\n".join(lines)
