"""
Notification Capture Service Tests

Tests for source filtering, duplicate suppression, per-source serialization
and capture feedback.
"""

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock

import pytest

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from notification_processor.capture import (
    CROSS_CHANNEL_LOCK_KEY,
    CaptureStatus,
    NotificationCaptureService,
)
from notification_processor.deduplicator import TransactionDeduplicator
from notification_processor.feedback import FeedbackFormatter
from notification_processor.models import OutcomeKind, RawNotification, TransactionSource
from notification_processor.rules import DedupSettings, DedupStrategy
from notification_processor.store import InMemoryTransactionStore

BANK_PACKAGE = "rs.raiffeisenbank.mobilebanking"
OTHER_BANK_PACKAGE = "rs.intesasanpaolo.mbanking"
SMS_PACKAGE = "com.google.android.apps.messaging"


def bank_notification(
    timestamp: datetime,
    body: str = "Purchase at MAXI 1.234,56 RSD",
    title: str = "Card payment",
    source: str = BANK_PACKAGE
) -> RawNotification:
    return RawNotification(title=title, body=body, source=source, timestamp=timestamp)


@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return InMemoryTransactionStore()


@pytest.fixture
def clock(base_time):
    """Return a clock standing one second after the base time."""
    return Mock(return_value=base_time + timedelta(seconds=1))


@pytest.fixture
def notifier():
    """Return a mock local-notification collaborator."""
    return Mock()


@pytest.fixture
def service(processor, store, notifier, clock):
    """Create capture service with income tracking off."""
    return NotificationCaptureService(
        processor,
        store,
        notifier=notifier,
        auto_track_income=lambda: False,
        clock=clock,
    )


class TestSourceFiltering:
    """Tests for the whitelist and SMS sender filter."""

    def test_unsupported_source_ignored(self, service, store, base_time):
        result = service.handle(bank_notification(base_time, source="com.whatsapp"))

        assert result.status is CaptureStatus.IGNORED_SOURCE
        assert len(store) == 0

    def test_sms_from_unknown_sender(self, service, store, base_time):
        """Test SMS not from a bank sender is ignored."""
        result = service.handle(bank_notification(
            base_time, title="Mom", body="Kupovina 1.200,00 RSD", source=SMS_PACKAGE
        ))

        assert result.status is CaptureStatus.NOT_BANK_SMS
        assert len(store) == 0

    def test_sms_from_bank(self, service, store, base_time):
        """Test bank SMS is captured with the SMS channel."""
        result = service.handle(bank_notification(
            base_time, title="RAIFFEISEN", body="Kupovina 1.200,00 RSD kod MAXI", source=SMS_PACKAGE
        ))

        assert result.status is CaptureStatus.SAVED
        assert result.candidate.source is TransactionSource.SMS
        assert result.candidate.merchant == "MAXI"
        assert store.all() == [result.candidate]


class TestCapture:
    """Tests for classification and storage."""

    def test_expense_saved(self, service, store, notifier, base_time):
        result = service.handle(bank_notification(base_time))

        assert result.saved
        assert result.outcome.kind is OutcomeKind.EXPENSE
        assert store.all() == [result.candidate]
        notifier.assert_called_once_with("Expense captured", result.feedback)

    def test_info_is_silent(self, service, store, notifier, base_time):
        """Test info notifications store nothing and notify nobody."""
        result = service.handle(bank_notification(
            base_time, title="Account balance", body="Available balance: 12.345,00 RSD"
        ))

        assert result.status is CaptureStatus.SILENT
        assert result.outcome.kind is OutcomeKind.INFO
        assert len(store) == 0
        notifier.assert_not_called()

    def test_income_gated_by_preference(self, processor, store, clock, base_time):
        """Test the income preference is read at delivery time."""
        tracking = {"enabled": False}
        service = NotificationCaptureService(
            processor, store, auto_track_income=lambda: tracking["enabled"], clock=clock
        )
        salary = bank_notification(base_time, title="Incoming transfer", body="Salary 50.000,00 RSD")

        assert service.handle(salary).status is CaptureStatus.SILENT

        tracking["enabled"] = True
        result = service.handle(salary)
        assert result.status is CaptureStatus.SAVED
        assert result.outcome.kind is OutcomeKind.INCOME

    def test_store_failure_reported(self, processor, base_time, clock):
        """Test store errors are reported, not raised."""
        store = Mock()
        store.recent_by_source.return_value = []
        store.insert.side_effect = RuntimeError("disk full")
        service = NotificationCaptureService(processor, store, clock=clock)

        result = service.handle(bank_notification(base_time))

        assert result.status is CaptureStatus.FAILED
        assert result.error == "disk full"

    def test_notifier_failure_does_not_fail_capture(self, processor, store, clock, base_time):
        notifier = Mock(side_effect=RuntimeError("no display"))
        service = NotificationCaptureService(processor, store, notifier=notifier, clock=clock)

        result = service.handle(bank_notification(base_time))

        assert result.status is CaptureStatus.SAVED
        assert len(store) == 1


class TestDuplicateSuppression:
    """Tests for the duplicate window."""

    def test_second_alert_suppressed(self, service, store, clock, base_time):
        """Test a second alert from the same bank inside the window is dropped."""
        first = service.handle(bank_notification(base_time))

        clock.return_value = base_time + timedelta(seconds=31)
        second = service.handle(bank_notification(
            base_time + timedelta(seconds=30), body="Kupovina 99,00 RSD kod Wolt"
        ))

        assert first.status is CaptureStatus.SAVED
        assert second.status is CaptureStatus.DUPLICATE
        assert second.duplicate_of == first.candidate
        assert len(store) == 1

    def test_other_source_not_suppressed(self, service, store, base_time):
        service.handle(bank_notification(base_time))
        result = service.handle(bank_notification(base_time, source=OTHER_BANK_PACKAGE))

        assert result.status is CaptureStatus.SAVED
        assert len(store) == 2

    def test_after_window(self, service, store, clock, base_time):
        """Test alerts more than five minutes apart are both stored."""
        service.handle(bank_notification(base_time))

        clock.return_value = base_time + timedelta(minutes=6)
        result = service.handle(bank_notification(base_time + timedelta(minutes=6)))

        assert result.status is CaptureStatus.SAVED
        assert len(store) == 2

    def test_concurrent_alerts_same_source(self, processor, store, base_time):
        """Test racing alerts from one source store exactly one capture."""
        service = NotificationCaptureService(
            processor, store, clock=lambda: base_time + timedelta(seconds=1)
        )
        barrier = threading.Barrier(8)
        results = []
        results_lock = threading.Lock()

        def deliver():
            barrier.wait()
            result = service.handle(bank_notification(base_time))
            with results_lock:
                results.append(result.status)

        threads = [threading.Thread(target=deliver) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(CaptureStatus.SAVED) == 1
        assert results.count(CaptureStatus.DUPLICATE) == 7
        assert len(store) == 1

    def test_sources_use_separate_locks(self, service):
        assert service._lock_for(BANK_PACKAGE) is service._lock_for(BANK_PACKAGE)
        assert service._lock_for(BANK_PACKAGE) is not service._lock_for(OTHER_BANK_PACKAGE)

    def test_timezone_aware_timestamps(self, processor, store):
        """Test the default clock follows the alert's timezone."""
        service = NotificationCaptureService(processor, store)
        arrived = datetime.now(timezone.utc)

        first = service.handle(bank_notification(arrived))
        second = service.handle(bank_notification(arrived + timedelta(milliseconds=200)))

        assert first.status is CaptureStatus.SAVED
        assert second.status is CaptureStatus.DUPLICATE
        assert len(store) == 1

    def test_push_and_sms_both_kept_by_default(self, service, store, clock, base_time):
        service.handle(bank_notification(base_time))

        clock.return_value = base_time + timedelta(seconds=3)
        result = service.handle(bank_notification(
            base_time + timedelta(seconds=2),
            title="RAIFFEISEN",
            body="Kupovina 1.234,56 RSD, MAXI",
            source=SMS_PACKAGE,
        ))

        assert result.status is CaptureStatus.SAVED
        assert len(store) == 2


class TestCrossChannelSuppression:
    """Tests for the amount-aware policy across push and SMS."""

    @pytest.fixture
    def amount_aware_service(self, processor, store, clock):
        return NotificationCaptureService(
            processor,
            store,
            deduplicator=TransactionDeduplicator(
                DedupSettings(strategy=DedupStrategy.AMOUNT_AND_MERCHANT)
            ),
            clock=clock,
        )

    def test_sms_after_push_suppressed(self, amount_aware_service, store, clock, base_time):
        """Test the bank SMS for a swipe already pushed by the app is dropped."""
        push = amount_aware_service.handle(bank_notification(base_time))

        clock.return_value = base_time + timedelta(seconds=3)
        sms = amount_aware_service.handle(bank_notification(
            base_time + timedelta(seconds=2),
            title="RAIFFEISEN",
            body="Kupovina 1.234,56 RSD, MAXI",
            source=SMS_PACKAGE,
        ))

        assert push.status is CaptureStatus.SAVED
        assert sms.status is CaptureStatus.DUPLICATE
        assert sms.duplicate_of == push.candidate
        assert store.all() == [push.candidate]

    def test_push_after_sms_suppressed(self, amount_aware_service, store, clock, base_time):
        sms = amount_aware_service.handle(bank_notification(
            base_time,
            title="RAIFFEISEN",
            body="Kupovina 1.234,56 RSD, MAXI",
            source=SMS_PACKAGE,
        ))

        clock.return_value = base_time + timedelta(seconds=3)
        push = amount_aware_service.handle(bank_notification(base_time + timedelta(seconds=2)))

        assert sms.status is CaptureStatus.SAVED
        assert push.status is CaptureStatus.DUPLICATE
        assert len(store) == 1

    def test_different_swipes_kept(self, amount_aware_service, store, clock, base_time):
        amount_aware_service.handle(bank_notification(base_time))

        clock.return_value = base_time + timedelta(seconds=3)
        result = amount_aware_service.handle(bank_notification(
            base_time + timedelta(seconds=2),
            title="RAIFFEISEN",
            body="Kupovina 450,00 RSD, IDEA",
            source=SMS_PACKAGE,
        ))

        assert result.status is CaptureStatus.SAVED
        assert len(store) == 2

    def test_channels_share_one_lock(self, amount_aware_service, base_time):
        push = amount_aware_service.processor.classify(
            "Purchase at MAXI 1.234,56 RSD", BANK_PACKAGE, base_time, False
        ).candidate

        assert amount_aware_service._lock_key(push) == CROSS_CHANNEL_LOCK_KEY


class TestFeedback:
    """Tests for capture feedback text."""

    def test_feedback_with_allowance(self, processor, store, clock, base_time):
        service = NotificationCaptureService(
            processor, store, allowance_provider=lambda: Decimal("765.44"), clock=clock
        )
        result = service.handle(bank_notification(base_time))

        assert result.feedback == "🛒 MAXI: 1.234,56 дин.\nLeft today: 765,44 дин."

    def test_feedback_allowance_failure(self, processor, store, clock, base_time):
        """Test a failing allowance provider only drops that line."""
        service = NotificationCaptureService(
            processor, store, allowance_provider=Mock(side_effect=RuntimeError("db")), clock=clock
        )
        result = service.handle(bank_notification(base_time))

        assert result.feedback == "🛒 MAXI: 1.234,56 дин."

    def test_converted_without_merchant(self, processor, base_time):
        """Test the category name and original amount are shown."""
        candidate = processor.classify("POS 100,00 EUR", BANK_PACKAGE, base_time, False).candidate
        formatter = FeedbackFormatter(processor.currencies)

        assert formatter.format_capture(candidate) == "📝 Other: 100,00 € (11.750,00 дин.)"

    def test_truncation(self, processor):
        formatter = FeedbackFormatter(processor.currencies, max_message_length=10)
        assert formatter.truncate_message("A" * 20) == "AAAAAAA..."
