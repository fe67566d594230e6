"""
Notification Classifier Module

Three-tier keyword priority engine deciding whether a notification is an
expense, an income, an informational message, or unrecognized.

Priority order (first hit wins):
    1. Expense keywords - always an expense, whatever else the text says.
       "Korišćenje kartice ... Raspoloživo stanje" is an expense, not info.
    2. Income keywords - an income when auto-tracking income is enabled,
       otherwise demoted to info.
    3. Info keywords - balance, reminder and verification messages.
"""

import logging

from .models import OutcomeKind
from .rules import KeywordTiers

logger = logging.getLogger(__name__)


def normalize_text(title: str, body: str) -> str:
    """Join title and body the way the classifier expects them."""
    return f"{title} {body}".lower()


def find_keyword(text: str, keywords: tuple[str, ...]) -> str | None:
    """Return the first keyword contained in ``text``, if any."""
    for keyword in keywords:
        if keyword in text:
            return keyword
    return None


class NotificationClassifier:
    """Classifies normalized notification text using keyword tiers."""

    def __init__(self, keywords: KeywordTiers):
        """Initialize the classifier.

        Args:
            keywords: Expense, income and info keyword tiers
        """
        self.keywords = keywords

    def classify(self, normalized_text: str, auto_track_income: bool) -> OutcomeKind:
        """Classify lower-cased notification text.

        Args:
            normalized_text: Lower-cased "title body" text
            auto_track_income: Whether income notifications should be tracked

        Returns:
            OutcomeKind for the text
        """
        keyword = find_keyword(normalized_text, self.keywords.expense)
        if keyword:
            logger.debug(f"Expense keyword {keyword!r} detected")
            return OutcomeKind.EXPENSE

        keyword = find_keyword(normalized_text, self.keywords.income)
        if keyword:
            if auto_track_income:
                logger.debug(f"Income keyword {keyword!r} detected")
                return OutcomeKind.INCOME
            logger.debug(f"Income keyword {keyword!r} detected, income tracking disabled")
            return OutcomeKind.INFO

        keyword = find_keyword(normalized_text, self.keywords.info)
        if keyword:
            logger.debug(f"Info keyword {keyword!r} detected")
            return OutcomeKind.INFO

        logger.debug("No recognized keywords")
        return OutcomeKind.UNKNOWN

    def describe_income(self, normalized_text: str) -> str:
        """Pick a short description for an income notification."""
        for description, keywords in self.keywords.income_descriptions:
            if find_keyword(normalized_text, keywords):
                return description
        return self.keywords.default_income_description
