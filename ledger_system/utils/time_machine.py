# ledger_system/utils/time_machine.py
"""
Clock for ledger transactions. Every timestamp a service writes
(transaction date, registeredAt, lastVotedAt) is taken from here once
per attempt, so tests and back-dated imports can pin it.
"""
from contextlib import contextmanager
from datetime import datetime, timezone, timedelta
from typing import Iterator, Optional
import logging

logger = logging.getLogger(__name__)


class TimeMachine:
    """Singleton switching between wall-clock UTC and a pinned virtual time."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._virtualTime = None
            cls._instance = instance
        return cls._instance

    @property
    def now(self) -> datetime:
        if self._virtualTime is not None:
            return self._virtualTime
        return datetime.now(timezone.utc)

    @property
    def isTestMode(self) -> bool:
        return self._virtualTime is not None

    def setTime(self, newTime: datetime, adminId: Optional[str] = None):
        """Pin the clock. Stays pinned until resetToRealTime()."""
        self._virtualTime = newTime
        logger.info(f"Ledger clock pinned to {newTime} (admin: {adminId})")

    def advanceTime(self, days: int = 0, hours: int = 0, minutes: int = 0):
        if not self.isTestMode:
            raise ValueError("Cannot advance time when not in test mode")
        self._virtualTime += timedelta(days=days, hours=hours, minutes=minutes)
        logger.info(f"Ledger clock advanced to {self._virtualTime}")

    def resetToRealTime(self):
        if self.isTestMode:
            logger.info("Ledger clock back on real time")
        self._virtualTime = None

    @contextmanager
    def frozen(self, at: datetime) -> Iterator[datetime]:
        """Pin the clock for the duration of a block, then restore the previous state."""
        previous = self._virtualTime
        self._virtualTime = at
        try:
            yield at
        finally:
            self._virtualTime = previous


timeMachine = TimeMachine()
