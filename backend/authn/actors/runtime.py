"""Per-id serialization and one-shot alarms for actors.

Every Session and User id is a unit of serialization: operations addressed
to the same id run one at a time, in arrival order. Alarms are delayed
callbacks keyed by id; re-arming replaces the pending alarm, and the
callback acquires the same per-id lock as regular operations.

Note: Serialization is per process. Running several worker processes
against one database requires routing each id to a single process.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import structlog

logger = structlog.get_logger()

AlarmCallback = Callable[[], Awaitable[None]]


class KeyedLock:
    """A map of asyncio.Lock objects keyed by id.

    Locks are created on first use and dropped once no task holds or waits
    for them, so the map only grows with concurrently active ids.
    asyncio.Lock wakes waiters in FIFO order, which gives receipt-order
    execution per key.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block.

        Args:
            key: Actor id (or any other serialization key).
        """
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        """Whether some task currently holds the lock for ``key``."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


class AlarmScheduler:
    """One pending alarm per key.

    ``set`` replaces any alarm already pending for the key. The callback runs
    in its own task; callers that need serialization with other operations
    acquire their per-id lock inside the callback.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._due: dict[str, float] = {}

    def set(self, key: str, delay_seconds: float, callback: AlarmCallback) -> None:
        """Arm (or re-arm) the alarm for ``key``.

        Args:
            key: Actor id.
            delay_seconds: Seconds until the alarm fires; <= 0 fires on the
                next loop iteration.
            callback: Coroutine function run when the alarm fires.
        """
        self.cancel(key)
        loop = asyncio.get_running_loop()
        delay = max(delay_seconds, 0.0)
        task = loop.create_task(
            self._fire(key, delay, callback),
            name=f"alarm:{key}",
        )
        self._tasks[key] = task
        self._due[key] = loop.time() + delay

    def cancel(self, key: str) -> None:
        """Cancel the pending alarm for ``key``, if any.

        Args:
            key: Actor id.
        """
        task = self._tasks.pop(key, None)
        self._due.pop(key, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def pending(self, key: str) -> bool:
        """Whether an alarm is currently armed for ``key``."""
        task = self._tasks.get(key)
        return task is not None and not task.done()

    async def _fire(self, key: str, delay: float, callback: AlarmCallback) -> None:
        await asyncio.sleep(delay)
        try:
            await callback()
        except Exception:
            logger.exception("Alarm callback failed", actor_id=key)
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]
                self._due.pop(key, None)

    async def drain(self) -> None:
        """Wait until every alarm that is already due has finished.

        Alarms scheduled in the future are left pending.
        """
        loop = asyncio.get_running_loop()
        while True:
            now = loop.time()
            due = [
                task
                for key, task in self._tasks.items()
                if self._due.get(key, now) <= now and not task.done()
            ]
            if not due:
                return
            await asyncio.gather(*due, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all pending alarms and wait for their tasks to exit."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        self._due.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
