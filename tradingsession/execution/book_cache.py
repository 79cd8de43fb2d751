"""
Order book snapshot cache keyed by instrument id.

Snapshots are replaced whole, never mutated, so readers always see a
consistent top of book.
"""

import threading
from typing import Optional

from ..types.market_data import OrderBookSnapshot


class OrderBookCache:
    """
    Latest snapshot per instrument.

    Uses threading.Lock so it is safe from both the event loop and the
    thread pool that runs exchange calls.
    """

    def __init__(self):
        self._snapshots: dict[str, OrderBookSnapshot] = {}
        self._seq: dict[str, int] = {}
        self._lock = threading.Lock()

    def publish(self, snapshot: OrderBookSnapshot) -> int:
        """
        Atomically publish a snapshot for its instrument.

        Returns:
            New sequence number for that instrument
        """
        with self._lock:
            seq = self._seq.get(snapshot.instrument_id, 0) + 1
            self._seq[snapshot.instrument_id] = seq
            self._snapshots[snapshot.instrument_id] = snapshot
            return seq

    def get(self, instrument_id: str) -> Optional[OrderBookSnapshot]:
        with self._lock:
            return self._snapshots.get(instrument_id)

    def get_seq(self, instrument_id: str) -> int:
        return self._seq.get(instrument_id, 0)

    def age_ms(self, instrument_id: str, now_monotonic_ms: int) -> Optional[int]:
        """Age of the cached snapshot, or None if nothing is cached."""
        snapshot = self.get(instrument_id)
        if snapshot is None:
            return None
        return snapshot.age_ms(now_monotonic_ms)

    def discard(self, instrument_id: str) -> None:
        with self._lock:
            self._snapshots.pop(instrument_id, None)

    def clear(self) -> None:
        with self._lock:
            self._snapshots.clear()

    def __contains__(self, instrument_id: str) -> bool:
        return self.get(instrument_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)
