"""
Transaction Store Module

The persistence interface the capture service writes to, plus a thread-safe
in-memory implementation used by tests and local runs.
"""

import logging
import threading
from datetime import datetime
from typing import Protocol

from .models import TransactionCandidate, TransactionSource

logger = logging.getLogger(__name__)


class TransactionStore(Protocol):
    """Persistence collaborator consumed by the capture service."""

    def insert(self, candidate: TransactionCandidate) -> None:
        ...

    def recent_by_source(
        self,
        source_app: str | None,
        since: datetime,
        limit: int
    ) -> list[TransactionCandidate]:
        """Captures from ``source_app`` with ``timestamp >= since``, newest first."""
        ...

    def recent_by_channel(
        self,
        channel: TransactionSource,
        since: datetime,
        limit: int
    ) -> list[TransactionCandidate]:
        """Captures delivered through ``channel`` with ``timestamp >= since``, newest first."""
        ...


class InMemoryTransactionStore:
    """List-backed store guarded by a lock. Nothing is persisted."""

    def __init__(self):
        self._lock = threading.Lock()
        self._transactions: list[TransactionCandidate] = []

    def insert(self, candidate: TransactionCandidate) -> None:
        with self._lock:
            self._transactions.append(candidate)
        logger.debug(f"Stored {candidate.id} from {candidate.source_app}")

    def recent_by_source(
        self,
        source_app: str | None,
        since: datetime,
        limit: int
    ) -> list[TransactionCandidate]:
        with self._lock:
            matches = [
                t for t in self._transactions
                if t.source_app == source_app and t.timestamp >= since
            ]
        matches.sort(key=lambda t: t.timestamp, reverse=True)
        return matches[:limit]

    def recent_by_channel(
        self,
        channel: TransactionSource,
        since: datetime,
        limit: int
    ) -> list[TransactionCandidate]:
        with self._lock:
            matches = [
                t for t in self._transactions
                if t.source is channel and t.timestamp >= since
            ]
        matches.sort(key=lambda t: t.timestamp, reverse=True)
        return matches[:limit]

    def all(self) -> list[TransactionCandidate]:
        with self._lock:
            return list(self._transactions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)
