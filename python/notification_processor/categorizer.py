"""
Category Inference Module

Maps notification text and merchant to a spending category using an ordered
keyword table.
"""

import logging

from .models import TransactionCategory
from .rules import CategoryTable

logger = logging.getLogger(__name__)


class CategoryInferencer:
    """Infers a category from the first matching keyword group."""

    def __init__(self, table: CategoryTable):
        self.table = table

    def infer(self, normalized_text: str, merchant: str | None = None) -> TransactionCategory:
        """Infer the category for an expense.

        Args:
            normalized_text: Lower-cased notification text
            merchant: Extracted merchant, if any

        Returns:
            Category of the first group with a keyword present, or the
            table's default category
        """
        search_text = f"{normalized_text} {merchant or ''}".lower()

        for group in self.table.groups:
            for keyword in group.keywords:
                if keyword in search_text:
                    logger.debug(f"Category group {group.name} matched on {keyword!r}")
                    return group.category

        return self.table.default_category

    @property
    def income_category(self) -> TransactionCategory:
        return self.table.income_category
