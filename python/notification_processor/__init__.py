"""
Bank Notification Processor

Turns free-text banking app notifications into structured transaction
candidates: classification, amount and currency extraction, merchant and
category inference, and duplicate suppression.
"""

from .models import (
    ClassificationOutcome,
    Expense,
    Income,
    Info,
    OutcomeKind,
    RawNotification,
    TransactionCandidate,
    TransactionCategory,
    TransactionSource,
    TransactionType,
    Unknown,
)
from .currency import Currency, CurrencyTable, format_number
from .rules import (
    DedupSettings,
    DedupStrategy,
    MerchantSettings,
    PipelineRules,
    PipelineSettings,
    SourceWhitelist,
)
from .classifier import NotificationClassifier
from .extractors import AmountExtractor, ExtractedAmount, MerchantExtractor, parse_amount_string
from .categorizer import CategoryInferencer
from .deduplicator import DuplicateCheck, TransactionDeduplicator
from .processor import NotificationProcessor
from .store import InMemoryTransactionStore, TransactionStore
from .feedback import FeedbackFormatter
from .capture import CaptureResult, CaptureStatus, NotificationCaptureService

__all__ = [
    # Models
    "ClassificationOutcome",
    "Expense",
    "Income",
    "Info",
    "OutcomeKind",
    "RawNotification",
    "TransactionCandidate",
    "TransactionCategory",
    "TransactionSource",
    "TransactionType",
    "Unknown",
    # Currency
    "Currency",
    "CurrencyTable",
    "format_number",
    # Rules
    "DedupSettings",
    "DedupStrategy",
    "MerchantSettings",
    "PipelineRules",
    "PipelineSettings",
    "SourceWhitelist",
    # Pipeline
    "NotificationClassifier",
    "AmountExtractor",
    "ExtractedAmount",
    "MerchantExtractor",
    "parse_amount_string",
    "CategoryInferencer",
    "TransactionDeduplicator",
    "DuplicateCheck",
    "NotificationProcessor",
    # Capture
    "TransactionStore",
    "InMemoryTransactionStore",
    "FeedbackFormatter",
    "NotificationCaptureService",
    "CaptureResult",
    "CaptureStatus",
]
