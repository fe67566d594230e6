"""
Capture Feedback Formatter Module

Formats the short message shown to the user after a transaction was captured
automatically.
"""

import logging
from decimal import Decimal

from .currency import CurrencyTable
from .models import TransactionCandidate, TransactionType

logger = logging.getLogger(__name__)


class FeedbackFormatter:
    """Formats capture confirmations for the local-notification collaborator."""

    TYPE_LABEL = {
        TransactionType.EXPENSE: "Expense captured",
        TransactionType.INCOME: "Income captured",
    }

    def __init__(self, currencies: CurrencyTable, max_message_length: int = 240):
        """Initialize formatter.

        Args:
            currencies: Table used for amount formatting
            max_message_length: Maximum message length
        """
        self.currencies = currencies
        self.max_length = max_message_length

    def format_capture(
        self,
        candidate: TransactionCandidate,
        remaining_allowance: Decimal | None = None
    ) -> str:
        """Format the confirmation for a stored candidate.

        Example:
            🛒 MAXI: 1.234,56 дин.
            Left today: 765,44 дин.

        Args:
            candidate: Stored candidate
            remaining_allowance: What is left of today's budget, if known

        Returns:
            Message text
        """
        label = candidate.merchant or candidate.category.display_name
        original_currency = (
            self.currencies.get(candidate.original_currency)
            if candidate.original_currency else None
        )
        amount = self.currencies.format_amount(
            candidate.amount,
            original_amount=candidate.original_amount,
            original_currency=original_currency,
        )

        lines = [f"{candidate.category.emoji} {label}: {amount}"]
        if remaining_allowance is not None:
            lines.append(f"Left today: {self.currencies.format_amount(remaining_allowance)}")

        return self.truncate_message("\n".join(lines))

    def format_title(self, candidate: TransactionCandidate) -> str:
        return self.TYPE_LABEL[candidate.type]

    def truncate_message(self, message: str) -> str:
        if len(message) <= self.max_length:
            return message
        return message[:self.max_length - 3].rstrip() + "..."
