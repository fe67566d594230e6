"""
Duplicate Capture Detector Module

Banks often send several notifications for one card swipe. Before a
candidate is stored, the persistence side asks this module whether a capture
from the same source, or the same event relayed through the other channel,
already exists inside the trailing window.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from rapidfuzz.distance import Levenshtein

from .models import TransactionCandidate
from .rules import DedupSettings, DedupStrategy

logger = logging.getLogger(__name__)


@dataclass
class DuplicateCheck:
    """Result of checking one candidate against recent captures."""

    candidate: TransactionCandidate
    is_duplicate: bool = False
    matched_with: TransactionCandidate | None = None
    match_reasons: list[str] = field(default_factory=list)
    compared: int = 0


class TransactionDeduplicator:
    """Time-windowed duplicate suppression per source.

    The window is the half-open interval ``[now - window, now)``. With the
    default ``source_window`` strategy any capture from the same source
    inside it makes the new candidate a duplicate; amounts and merchants are
    not compared. ``amount_and_merchant`` additionally requires a matching
    amount and, when both sides have one, a similar merchant. It also
    compares against captures from the other channel, since a bank SMS and
    the bank app's push notification can describe the same swipe.
    """

    def __init__(self, settings: DedupSettings | None = None):
        """Initialize the deduplicator.

        Args:
            settings: Window length, strategy and comparison thresholds
        """
        self.settings = settings or DedupSettings()

    @property
    def window(self):
        return self.settings.window

    def window_start(self, now: datetime) -> datetime:
        """Lower bound to pass to the store's recent-by-source query."""
        return now - self.settings.window

    def in_window(self, timestamp: datetime, now: datetime) -> bool:
        return self.window_start(now) <= timestamp < now

    def check(
        self,
        candidate: TransactionCandidate,
        recent: Iterable[TransactionCandidate],
        now: datetime | None = None
    ) -> DuplicateCheck:
        """Check a candidate against recent captures.

        Args:
            candidate: New candidate about to be stored
            recent: Captures returned by the store for the candidate's source
                and, for the amount-aware strategy, the other channel
            now: Reference time, defaults to the candidate's timestamp

        Returns:
            DuplicateCheck
        """
        now = now or candidate.timestamp
        result = DuplicateCheck(candidate=candidate)

        for existing in recent:
            if not self.comparable(candidate, existing):
                continue
            if not self.in_window(existing.timestamp, now):
                continue

            result.compared += 1
            reasons = self._compare(candidate, existing)
            if reasons is not None:
                result.is_duplicate = True
                result.matched_with = existing
                result.match_reasons = reasons
                logger.debug(
                    f"Duplicate of {existing.id} from {candidate.source_app}: {'; '.join(reasons)}"
                )
                break

        return result

    def is_duplicate(
        self,
        candidate: TransactionCandidate,
        recent: Iterable[TransactionCandidate],
        now: datetime | None = None
    ) -> bool:
        return self.check(candidate, recent, now).is_duplicate

    @property
    def cross_channel(self) -> bool:
        """Whether push and SMS captures are compared with each other."""
        return self.settings.strategy is DedupStrategy.AMOUNT_AND_MERCHANT

    def comparable(self, new: TransactionCandidate, existing: TransactionCandidate) -> bool:
        """Same source always; the other channel only for the amount-aware strategy."""
        if existing.source_app == new.source_app:
            return True
        return self.cross_channel and existing.source is not new.source

    def _compare(
        self,
        new: TransactionCandidate,
        existing: TransactionCandidate
    ) -> list[str] | None:
        """Return match reasons when ``existing`` counts as the same event."""
        age = abs((new.timestamp - existing.timestamp).total_seconds())
        if existing.source_app == new.source_app:
            reasons = [f"Same source within {age:.0f}s"]
        else:
            reasons = [f"{existing.source.value} capture within {age:.0f}s"]

        if self.settings.strategy is DedupStrategy.SOURCE_WINDOW:
            return reasons

        if abs(new.amount - existing.amount) > self.settings.amount_tolerance:
            return None
        reasons.append("Amount match")

        if new.merchant and existing.merchant:
            similarity = merchant_similarity(new.merchant, existing.merchant)
            if similarity < self.settings.merchant_similarity:
                return None
            reasons.append(f"Merchant {similarity * 100:.0f}% similar")

        return reasons


def merchant_similarity(first: str, second: str) -> float:
    """Normalized Levenshtein similarity between two merchant names."""
    return Levenshtein.normalized_similarity(first.lower(), second.lower())
