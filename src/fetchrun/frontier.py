"""Request queue with SQLite-backed state and per-request retry budgets."""

import asyncio
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path

from .core import RequestSpec

PENDING = "pending"
PROCESSING = "processing"
DONE = "done"
FAILED = "failed"

TERMINAL_STATES = (DONE, FAILED)


@dataclass
class Attempt:
    """One try at executing a RequestSpec."""
    spec: RequestSpec
    attempt_number: int
    started_at: float = field(default_factory=time.time)


class RequestQueue:
    """FIFO worklist of requests for one run.

    All state changes go through take_next, requeue and mark_terminal, which
    are serialised by a single asyncio.Condition. Retried requests go to the
    back of the queue.
    """

    def __init__(
        self,
        max_retries: int = 1,
        max_requests: int = 0,
        db_path: str | Path = ":memory:",
    ):
        self.max_retries = max_retries
        self.max_requests = max_requests
        self.db_path = str(db_path)
        self.conn = sqlite3.connect(self.db_path)
        self.cancelled = False
        self.skipped = 0
        self._specs: dict[str, RequestSpec] = {}
        self._seq = 0
        self._cond = asyncio.Condition()
        self._cancel_event = asyncio.Event()
        self._wakeup: asyncio.Task | None = None
        self._init_db()

    def _init_db(self):
        """Initialize SQLite tables."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS queue (
                url TEXT PRIMARY KEY,
                method TEXT NOT NULL,
                seq INTEGER NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                retries_left INTEGER NOT NULL,
                status TEXT DEFAULT 'pending',
                error TEXT
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_status_seq ON queue(status, seq)")
        self.conn.commit()

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def add(self, spec: RequestSpec) -> bool:
        """Admit a request. Returns False for duplicates or once the cap is hit."""
        if spec.url in self._specs:
            self.skipped += 1
            return False
        if self.max_requests and len(self._specs) >= self.max_requests:
            self.skipped += 1
            return False

        self._specs[spec.url] = spec
        self.conn.execute(
            "INSERT INTO queue (url, method, seq, retries_left) VALUES (?, ?, ?, ?)",
            (spec.url, spec.method, self._next_seq(), self.max_retries),
        )
        self.conn.commit()
        return True

    def add_many(self, specs) -> int:
        """Admit multiple requests. Returns count of newly admitted ones."""
        added = 0
        for spec in specs:
            if self.add(spec):
                added += 1
        return added

    async def take_next(self) -> Attempt | None:
        """Claim the next pending request.

        Waits while other requests are in flight (they may be requeued).
        Returns None when the run is cancelled or no work can appear.
        """
        async with self._cond:
            while True:
                if self.cancelled:
                    return None

                row = self.conn.execute(
                    "SELECT url, attempts FROM queue WHERE status = ? ORDER BY seq LIMIT 1",
                    (PENDING,),
                ).fetchone()
                if row:
                    url, attempts = row
                    self.conn.execute(
                        "UPDATE queue SET status = ?, attempts = attempts + 1 WHERE url = ?",
                        (PROCESSING, url),
                    )
                    self.conn.commit()
                    return Attempt(spec=self._specs[url], attempt_number=attempts)

                if self.in_flight_count() == 0:
                    return None
                await self._cond.wait()

    async def requeue(self, url: str, error: str | None = None) -> bool:
        """Spend one retry and move the request to the back of the queue.

        Returns False, leaving the request claimed, when the budget is spent.
        """
        async with self._cond:
            row = self.conn.execute(
                "SELECT retries_left, status FROM queue WHERE url = ?", (url,)
            ).fetchone()
            if row is None or row[1] != PROCESSING or row[0] <= 0:
                return False

            self.conn.execute(
                """UPDATE queue SET status = ?, retries_left = retries_left - 1, seq = ?, error = ?
                   WHERE url = ?""",
                (PENDING, self._next_seq(), error, url),
            )
            self.conn.commit()
            self._cond.notify_all()
            return True

    async def mark_terminal(self, url: str, status: str, error: str | None = None) -> bool:
        """Record a request's final outcome. Returns False if it already had one."""
        if status not in TERMINAL_STATES:
            raise ValueError(f"not a terminal status: {status}")

        async with self._cond:
            cursor = self.conn.execute(
                "UPDATE queue SET status = ?, error = ? WHERE url = ? AND status = ?",
                (status, error, url, PROCESSING),
            )
            self.conn.commit()
            self._cond.notify_all()
            return cursor.rowcount == 1

    def cancel(self):
        """Stop handing out work. In-flight requests may still resolve.

        Callable from sync code such as a signal handler; waiting workers
        are woken on the running loop.
        """
        self.cancelled = True
        self._cancel_event.set()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._wakeup = loop.create_task(self._wake_waiters())

    async def _wake_waiters(self):
        async with self._cond:
            self._cond.notify_all()

    async def wait_cancelled(self, timeout: float) -> bool:
        """Sleep up to timeout seconds, returning early (True) on cancel."""
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def stats(self) -> dict:
        """Get queue statistics."""
        cursor = self.conn.execute(
            "SELECT status, COUNT(*) FROM queue GROUP BY status"
        )
        stats = dict(cursor.fetchall())
        stats['total'] = sum(stats.values())
        stats['skipped'] = self.skipped
        return stats

    def total_attempts(self) -> int:
        return self.conn.execute("SELECT COALESCE(SUM(attempts), 0) FROM queue").fetchone()[0]

    def pending_count(self) -> int:
        cursor = self.conn.execute("SELECT COUNT(*) FROM queue WHERE status = ?", (PENDING,))
        return cursor.fetchone()[0]

    def in_flight_count(self) -> int:
        cursor = self.conn.execute("SELECT COUNT(*) FROM queue WHERE status = ?", (PROCESSING,))
        return cursor.fetchone()[0]

    def __len__(self) -> int:
        return len(self._specs)

    def close(self):
        """Close database connection."""
        self.conn.close()
