"""
Stock locks — serialize work on the same (product, warehouse) pairs.

Two layers, always taken in the same sorted order so they cannot deadlock:

1. PairLocks: one threading.Lock per pair inside this process, acquired
   with a bounded timeout before the transaction starts.
2. select_for_update() on the StockEntry rows inside the transaction,
   which serializes workers in other processes on databases with row locks.
   On PostgreSQL the transaction's lock_timeout is set to the same bound.

Pairs that are not shared never wait for each other.

SQLite has no row locks and a single writer. Deployments on SQLite must set
OPTIONS 'transaction_mode': 'IMMEDIATE' (and a busy 'timeout'): with the
default deferred BEGIN, two transactions that read and then write fail with
"database is locked" instead of waiting, even on disjoint pairs.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterable, Iterator

from django.db import connection

from stockflow.conf import stockflow_settings
from stockflow.exceptions import BusyError

logger = logging.getLogger('stockflow')

Pair = tuple[int, int]


class PairLocks:
    """Process-wide registry of per-(product, warehouse) locks."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Pair, threading.Lock] = {}

    def _lock_for(self, pair: Pair) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(pair)
            if lock is None:
                lock = self._locks[pair] = threading.Lock()
            return lock

    def is_locked(self, pair: Pair) -> bool:
        return self._lock_for(pair).locked()

    @contextmanager
    def hold(self, pairs: Iterable[Pair], timeout: float | None = None) -> Iterator[list[Pair]]:
        """
        Hold the locks of every pair for the duration of the block.

        Args:
            pairs: (product_id, warehouse_id) keys, duplicates allowed
            timeout: Seconds for the whole acquisition (None = settings)

        Yields:
            The sorted, de-duplicated pairs

        Raises:
            BusyError: If any lock is still taken when the time runs out.
                Locks acquired so far are released first.
        """
        ordered = sorted(set(pairs))
        if timeout is None:
            timeout = float(stockflow_settings.LOCK_TIMEOUT_SECONDS)
        deadline = time.monotonic() + timeout
        acquired: list[threading.Lock] = []

        try:
            for pair in ordered:
                lock = self._lock_for(pair)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    logger.warning(
                        "locks.busy",
                        extra={
                            "product_id": pair[0],
                            "warehouse_id": pair[1],
                            "timeout": timeout,
                        },
                    )
                    raise BusyError(
                        f"Stock of product {pair[0]} in warehouse {pair[1]} is busy",
                        product=pair[0],
                        warehouse=pair[1],
                        timeout=timeout,
                    )
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()


# Shared by every engine of the process
pair_locks = PairLocks()


def set_database_lock_timeout(timeout: float | None = None) -> None:
    """
    Bound row-lock waits for the current transaction.

    Only PostgreSQL supports a per-transaction lock timeout; other backends
    either have no row locks (SQLite) or rely on their own settings.
    """
    if connection.vendor != 'postgresql':
        return
    if timeout is None:
        timeout = float(stockflow_settings.LOCK_TIMEOUT_SECONDS)
    with connection.cursor() as cursor:
        cursor.execute(
            "SELECT set_config('lock_timeout', %s, true)",
            [f"{int(timeout * 1000)}ms"],
        )
