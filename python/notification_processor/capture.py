"""
Notification Capture Service Module

Receives notification events, runs them through the processor and stores the
resulting candidates. The "check recent captures, then insert" sequence is
serialized per source so two alerts for the same swipe cannot both be stored,
while different sources proceed in parallel. When push and SMS captures are
compared with each other, all sources share one lock.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable

from .deduplicator import TransactionDeduplicator
from .feedback import FeedbackFormatter
from .models import ClassificationOutcome, RawNotification, TransactionCandidate, TransactionSource
from .processor import NotificationProcessor
from .store import TransactionStore

logger = logging.getLogger(__name__)

CROSS_CHANNEL_LOCK_KEY = "*"


def other_channel(source: TransactionSource) -> TransactionSource:
    if source is TransactionSource.SMS:
        return TransactionSource.NOTIFICATION
    return TransactionSource.SMS


class CaptureStatus(Enum):
    """What happened to a delivered notification."""
    IGNORED_SOURCE = "ignored_source"
    NOT_BANK_SMS = "not_bank_sms"
    SILENT = "silent"
    DUPLICATE = "duplicate"
    SAVED = "saved"
    FAILED = "failed"


@dataclass
class CaptureResult:
    """Result of handling one notification."""

    status: CaptureStatus
    outcome: ClassificationOutcome | None = None
    candidate: TransactionCandidate | None = None
    duplicate_of: TransactionCandidate | None = None
    feedback: str | None = None
    error: str | None = None

    @property
    def saved(self) -> bool:
        return self.status is CaptureStatus.SAVED


class NotificationCaptureService:
    """Glue between the notification listener, the processor and the store."""

    def __init__(
        self,
        processor: NotificationProcessor,
        store: TransactionStore,
        deduplicator: TransactionDeduplicator | None = None,
        notifier: Callable[[str, str], None] | None = None,
        auto_track_income: Callable[[], bool] | None = None,
        allowance_provider: Callable[[], Decimal | None] | None = None,
        clock: Callable[[], datetime] | None = None
    ):
        """Initialize the service.

        Args:
            processor: Notification processor
            store: Persistence collaborator
            deduplicator: Duplicate policy, built from the processor's
                settings when omitted
            notifier: Called with (title, message) after a capture is stored
            auto_track_income: Returns the user's income-tracking preference
                at delivery time
            allowance_provider: Returns the remaining daily allowance for
                the feedback message
            clock: Returns the current time for the duplicate window.
                Defaults to the wall clock in the candidate's own timezone.
        """
        self.processor = processor
        self.store = store
        self.sources = processor.rules.sources
        self.deduplicator = deduplicator or TransactionDeduplicator(
            processor.rules.settings.dedup
        )
        self.notifier = notifier
        self.auto_track_income = auto_track_income or (lambda: False)
        self.allowance_provider = allowance_provider
        self.formatter = FeedbackFormatter(processor.currencies)
        self.clock = clock

        self._registry_lock = threading.Lock()
        self._source_locks: dict[str, threading.Lock] = {}

    def handle(self, notification: RawNotification) -> CaptureResult:
        """Process and store one notification event.

        Args:
            notification: Event delivered by the listener

        Returns:
            CaptureResult describing what happened
        """
        source = notification.source

        if not self.sources.is_supported(source):
            return CaptureResult(status=CaptureStatus.IGNORED_SOURCE)

        source_type = TransactionSource.NOTIFICATION
        if self.sources.is_sms_app(source):
            if not self.sources.is_bank_sms(notification.title):
                logger.debug(f"SMS not from a bank, ignoring: {notification.title}")
                return CaptureResult(status=CaptureStatus.NOT_BANK_SMS)
            source_type = TransactionSource.SMS

        outcome = self.processor.classify_notification(
            notification, self.auto_track_income(), source_type
        )
        if not outcome.is_transaction:
            logger.debug(f"Notification from {source} is {outcome.kind.value}, nothing to store")
            return CaptureResult(status=CaptureStatus.SILENT, outcome=outcome)

        return self._store(outcome)

    def _store(self, outcome: ClassificationOutcome) -> CaptureResult:
        candidate = outcome.candidate

        try:
            with self._lock_for(self._lock_key(candidate)):
                now = self._now(candidate)
                recent = self._recent_captures(candidate, now)
                check = self.deduplicator.check(candidate, recent, now)
                if check.is_duplicate:
                    logger.info(
                        f"Duplicate capture from {candidate.source_app} skipped "
                        f"(matches {check.matched_with.id})"
                    )
                    return CaptureResult(
                        status=CaptureStatus.DUPLICATE,
                        outcome=outcome,
                        candidate=candidate,
                        duplicate_of=check.matched_with,
                    )

                self.store.insert(candidate)
        except Exception as e:
            logger.exception(f"Failed to save transaction from {candidate.source_app}")
            return CaptureResult(
                status=CaptureStatus.FAILED,
                outcome=outcome,
                candidate=candidate,
                error=str(e),
            )

        logger.info(
            f"Auto-captured {candidate.type.value}: {candidate.description} "
            f"- {candidate.amount} {candidate.currency}"
        )
        feedback = self._notify(candidate)
        return CaptureResult(
            status=CaptureStatus.SAVED,
            outcome=outcome,
            candidate=candidate,
            feedback=feedback,
        )

    def _now(self, candidate: TransactionCandidate) -> datetime:
        if self.clock:
            return self.clock()
        return datetime.now(candidate.timestamp.tzinfo)

    def _recent_captures(
        self,
        candidate: TransactionCandidate,
        now: datetime
    ) -> list[TransactionCandidate]:
        """Same-source captures, plus the other channel when comparing amounts."""
        since = self.deduplicator.window_start(now)
        limit = self.deduplicator.settings.max_recent

        recent = list(self.store.recent_by_source(candidate.source_app, since, limit))
        if self.deduplicator.cross_channel:
            recent += self.store.recent_by_channel(other_channel(candidate.source), since, limit)
        return recent

    def _lock_key(self, candidate: TransactionCandidate) -> str:
        # Push and SMS captures from different apps can match each other.
        if self.deduplicator.cross_channel:
            return CROSS_CHANNEL_LOCK_KEY
        return candidate.source_app or ""

    def _notify(self, candidate: TransactionCandidate) -> str:
        remaining = None
        if self.allowance_provider:
            try:
                remaining = self.allowance_provider()
            except Exception:
                logger.exception("Failed to read remaining daily allowance")

        message = self.formatter.format_capture(candidate, remaining)

        if self.notifier:
            try:
                self.notifier(self.formatter.format_title(candidate), message)
            except Exception:
                logger.exception(f"Failed to deliver capture feedback for {candidate.id}")

        return message

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._source_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._source_locks[key] = lock
            return lock
