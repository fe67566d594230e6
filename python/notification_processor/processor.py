"""
Notification Processor Module

Single entry point turning one bank notification into a classification
outcome:

    classify -> extract amount -> resolve currency -> extract merchant
             -> infer category -> build candidate

The processor keeps no state between calls and may be shared across threads.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP

from .categorizer import CategoryInferencer
from .classifier import NotificationClassifier
from .currency import CENT
from .extractors import AmountExtractor, ExtractedAmount, MerchantExtractor
from .models import (
    ClassificationOutcome,
    Expense,
    Income,
    Info,
    OutcomeKind,
    RawNotification,
    TransactionCandidate,
    TransactionSource,
    TransactionType,
    Unknown,
)
from .rules import PipelineRules

logger = logging.getLogger(__name__)

DEFAULT_EXPENSE_DESCRIPTION = "Bank notification"


class NotificationProcessor:
    """Classifies bank notifications and extracts transaction candidates."""

    def __init__(self, rules: PipelineRules | None = None):
        """Initialize the processor.

        Args:
            rules: Loaded rule tables. Loads the packaged configuration
                when omitted.
        """
        self.rules = rules or PipelineRules.load()
        self.currencies = self.rules.currencies
        self.classifier = NotificationClassifier(self.rules.keywords)
        self.amount_extractor = AmountExtractor(self.currencies)
        self.merchant_extractor = MerchantExtractor(self.currencies, self.rules.settings.merchant)
        self.categorizer = CategoryInferencer(self.rules.categories)

    def classify(
        self,
        raw_text: str,
        source: str,
        timestamp: datetime,
        auto_track_income: bool,
        source_type: TransactionSource = TransactionSource.NOTIFICATION
    ) -> ClassificationOutcome:
        """Classify one notification.

        Never raises. Unexpected failures are logged and reported as Unknown.

        Args:
            raw_text: "title body" text as delivered
            source: Identifier of the application that posted it
            timestamp: Arrival time
            auto_track_income: Whether income notifications become Income
            source_type: Channel the text came through

        Returns:
            Expense or Income carrying a candidate, Info, or Unknown
        """
        try:
            return self._classify(raw_text, source, timestamp, auto_track_income, source_type)
        except Exception:
            logger.exception(f"Failed to process notification from {source}")
            return Unknown()

    def classify_notification(
        self,
        notification: RawNotification,
        auto_track_income: bool,
        source_type: TransactionSource = TransactionSource.NOTIFICATION
    ) -> ClassificationOutcome:
        return self.classify(
            notification.full_text,
            notification.source,
            notification.timestamp,
            auto_track_income,
            source_type,
        )

    def parse_expense_only(
        self,
        raw_text: str,
        source: str,
        timestamp: datetime,
        source_type: TransactionSource = TransactionSource.NOTIFICATION
    ) -> TransactionCandidate | None:
        """Return the expense candidate for a notification, ignoring income."""
        outcome = self.classify(raw_text, source, timestamp, False, source_type)
        if outcome.kind is OutcomeKind.EXPENSE:
            return outcome.candidate
        return None

    def _classify(
        self,
        raw_text: str,
        source: str,
        timestamp: datetime,
        auto_track_income: bool,
        source_type: TransactionSource
    ) -> ClassificationOutcome:
        normalized = raw_text.lower()
        kind = self.classifier.classify(normalized, auto_track_income)

        if kind is OutcomeKind.INFO:
            return Info()
        if kind is OutcomeKind.UNKNOWN:
            return Unknown()

        extracted = self.amount_extractor.extract(raw_text)
        if extracted is None:
            logger.debug(f"No amount found in {kind.value} notification from {source}")
            return Unknown()

        if kind is OutcomeKind.EXPENSE:
            return Expense(self._build_expense(
                raw_text, normalized, extracted, source, timestamp, source_type
            ))
        return Income(self._build_income(
            normalized, extracted, source, timestamp, source_type
        ))

    def _conversion_fields(self, extracted: ExtractedAmount) -> dict:
        """Base amount plus original amount/currency when converted."""
        base = self.currencies.base
        amount = self.currencies.to_base(extracted.value, extracted.currency)
        fields = {
            "amount": amount.quantize(CENT, rounding=ROUND_HALF_UP),
            "currency": base.code,
        }
        if extracted.currency.code != base.code:
            fields["original_amount"] = extracted.value
            fields["original_currency"] = extracted.currency.code
        return fields

    def _build_expense(
        self,
        raw_text: str,
        normalized: str,
        extracted: ExtractedAmount,
        source: str,
        timestamp: datetime,
        source_type: TransactionSource
    ) -> TransactionCandidate:
        merchant = self.merchant_extractor.extract(raw_text)
        category = self.categorizer.infer(normalized, merchant)

        if merchant:
            description = merchant
        elif extracted.currency.code != self.currencies.base.code:
            description = f"{extracted.value:.2f} {extracted.currency.code}"
        else:
            description = DEFAULT_EXPENSE_DESCRIPTION

        candidate = TransactionCandidate(
            category=category,
            description=description,
            type=TransactionType.EXPENSE,
            timestamp=timestamp,
            source=source_type,
            source_app=source,
            merchant=merchant,
            credits_earned=self.rules.settings.expense_credits,
            **self._conversion_fields(extracted),
        )
        logger.debug(
            f"Expense {candidate.amount} {candidate.currency} "
            f"({category.code}) from {source}"
        )
        return candidate

    def _build_income(
        self,
        normalized: str,
        extracted: ExtractedAmount,
        source: str,
        timestamp: datetime,
        source_type: TransactionSource
    ) -> TransactionCandidate:
        candidate = TransactionCandidate(
            category=self.categorizer.income_category,
            description=self.classifier.describe_income(normalized),
            type=TransactionType.INCOME,
            timestamp=timestamp,
            source=source_type,
            source_app=source,
            credits_earned=self.rules.settings.income_credits,
            **self._conversion_fields(extracted),
        )
        logger.debug(f"Income {candidate.amount} {candidate.currency} from {source}")
        return candidate
