import asyncio
import contextlib
import logging
from typing import List, Optional

import orjson

from abstractions.registry import Subscriber, SubscriberRegistry
from config.config import Config
from contracts.snapshot import Snapshot
from core.profiler import Profiler

logger = logging.getLogger(__name__)

PING_MESSAGE = orjson.dumps({"event": "ping"}).decode()


def serialize_update(snapshot: Snapshot) -> str:
    return orjson.dumps(
        {"event": "update", "data": snapshot.model_dump(mode="json")}
    ).decode()


class LiveFanout(SubscriberRegistry):
    """
    Registry of live subscribers that pushes each new snapshot to all of them.

    Each snapshot is serialized once and the same text is delivered to every
    subscriber. Subscribers whose send fails are dropped.
    """

    def __init__(self, ping_interval: float = None, send_timeout: float = 5.0):
        self._subscribers = set()
        self._latest_message: Optional[str] = None
        # Publish counter and the newest version each subscriber was handed
        self._version = 0
        self._delivered = {}
        self._lock = asyncio.Lock()
        self.ping_interval = ping_interval or Config.PING_INTERVAL_SECONDS
        self.send_timeout = send_timeout
        self._task = None
        self._running = False

    @property
    def latest_message(self) -> Optional[str]:
        return self._latest_message

    async def connect(self, subscriber: Subscriber) -> Optional[str]:
        # The initial send happens outside the lock so a slow subscriber cannot
        # hold up a publish; versions keep it from overtaking a newer update.
        async with self._lock:
            self._subscribers.add(subscriber)
            message, version = self._latest_message, self._version
            logger.info(f"Subscriber connected ({len(self._subscribers)} total)")
        if message is not None and not await self._send(subscriber, message, version):
            async with self._lock:
                self._forget(subscriber)
            return None
        return message

    async def disconnect(self, subscriber: Subscriber) -> bool:
        async with self._lock:
            if subscriber not in self._subscribers:
                return False
            self._forget(subscriber)
            logger.info(f"Subscriber disconnected ({len(self._subscribers)} total)")
            return True

    async def subscriber_count(self) -> int:
        async with self._lock:
            return len(self._subscribers)

    @Profiler.profile
    async def publish(self, snapshot: Snapshot) -> int:
        """
        Broadcast a snapshot to every subscriber.

        Returns:
            int: Number of subscribers the update was delivered to.
        """
        message = serialize_update(snapshot)
        async with self._lock:
            self._version += 1
            self._latest_message, version = message, self._version
            targets = list(self._subscribers)
        delivered = await self._broadcast(targets, message, version)
        logger.info(f"Published cycle {snapshot.cycle} to {delivered}/{len(targets)} subscribers")
        return delivered

    async def ping(self) -> int:
        """Send a liveness message to every subscriber; returns how many were dropped."""
        async with self._lock:
            targets = list(self._subscribers)
        delivered = await self._broadcast(targets, PING_MESSAGE)
        return len(targets) - delivered

    async def _broadcast(
        self, targets: List[Subscriber], message: str, version: Optional[int] = None
    ) -> int:
        if not targets:
            return 0
        results = await asyncio.gather(*(self._send(s, message, version) for s in targets))
        dead = [s for s, ok in zip(targets, results) if not ok]
        if dead:
            async with self._lock:
                for subscriber in dead:
                    self._forget(subscriber)
            logger.warning(f"Dropped {len(dead)} unresponsive subscribers")
        return len(targets) - len(dead)

    def _forget(self, subscriber: Subscriber):
        self._subscribers.discard(subscriber)
        self._delivered.pop(subscriber, None)

    async def _send(
        self, subscriber: Subscriber, message: str, version: Optional[int] = None
    ) -> bool:
        if version is not None:
            if self._delivered.get(subscriber, -1) >= version:
                # Already handed a newer update
                return True
            if subscriber in self._subscribers:
                self._delivered[subscriber] = version
        try:
            await asyncio.wait_for(subscriber.send(message), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.debug(f"Send to subscriber failed: {e!r}")
            return False

    async def start(self):
        """
        Start the liveness loop as an asynchronous task.
        """
        self._running = True
        self._task = asyncio.create_task(self._ping_loop())
        logger.info(f"Liveness loop started (every {self.ping_interval}s).")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Liveness loop stopped.")

    async def _ping_loop(self):
        while self._running:
            await asyncio.sleep(self.ping_interval)
            dropped = await self.ping()
            if dropped:
                logger.info(f"Liveness ping dropped {dropped} dead connections")
