"""
Alert history storage.

History is keyed by campaign. The dispatcher holds the campaign lock for the
whole check -> send -> record sequence so that overlapping runs for the same
campaign cannot both pass the rate limit.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import ContextManager, Dict, Iterator, List, Tuple

from .schema import AlertRecord


class AlertHistoryStore(ABC):
    """Keyed store of delivered alerts."""

    @abstractmethod
    def campaign_lock(self, campaign_id: str) -> ContextManager:
        """Lock serializing alert decisions for one campaign."""

    @abstractmethod
    def prune(self, campaign_id: str, cutoff: datetime) -> List[AlertRecord]:
        """Drop records at or before cutoff and return the remaining ones."""

    @abstractmethod
    def add(self, record: AlertRecord) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryAlertHistory(AlertHistoryStore):
    """
    Process-local alert history.

    Rate-limit and dedup guarantees do not survive a restart and are not
    shared across processes; plug in another AlertHistoryStore for that.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, List[AlertRecord]] = defaultdict(list)
        # campaign_id -> (lock, number of threads holding or waiting for it)
        self._campaign_locks: Dict[str, Tuple[threading.RLock, int]] = {}

    @contextmanager
    def campaign_lock(self, campaign_id: str) -> Iterator[None]:
        """
        Hold the campaign lock for the duration of the block.

        The lock entry is dropped once no thread holds or waits for it.
        """
        with self._lock:
            lock, users = self._campaign_locks.get(campaign_id, (None, 0))
            if lock is None:
                lock = threading.RLock()
            self._campaign_locks[campaign_id] = (lock, users + 1)

        try:
            with lock:
                yield
        finally:
            with self._lock:
                _, users = self._campaign_locks[campaign_id]
                if users == 1:
                    del self._campaign_locks[campaign_id]
                else:
                    self._campaign_locks[campaign_id] = (lock, users - 1)

    def prune(self, campaign_id: str, cutoff: datetime) -> List[AlertRecord]:
        with self._lock:
            kept = [r for r in self._records.get(campaign_id, []) if r.timestamp > cutoff]
            if kept:
                self._records[campaign_id] = kept
            else:
                self._records.pop(campaign_id, None)
            return list(kept)

    def add(self, record: AlertRecord) -> None:
        with self._lock:
            self._records[record.campaign_id].append(record)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def records(self, campaign_id: str) -> List[AlertRecord]:
        with self._lock:
            return list(self._records.get(campaign_id, []))
