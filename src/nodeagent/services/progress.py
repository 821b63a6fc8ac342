"""
Progress event channel for agent runs.

Strategies publish one event per iteration. Consumers subscribe with a queue
(async iteration) or a plain callback. Publishing never blocks the run: a full
subscriber queue drops the event and a failing callback is logged.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification for one iteration of one run."""

    run_id: str
    step: int
    total: int
    label: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def fraction(self) -> float:
        """Share of the iteration budget consumed, between 0 and 1."""
        if self.total <= 0:
            return 1.0
        return min(self.step / self.total, 1.0)

    @property
    def percent(self) -> float:
        """Progress as a percentage."""
        return self.fraction * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "step": self.step,
            "total": self.total,
            "percent": self.percent,
            "label": self.label,
            "timestamp": self.timestamp.isoformat(),
        }


ProgressHandler = Callable[[ProgressEvent], None]


class ProgressSubscription:
    """Queue-backed subscription that can be consumed with ``async for``."""

    def __init__(self, channel: ProgressChannel, run_id: str | None, maxsize: int) -> None:
        self.subscription_id = str(uuid4())
        self.run_id = run_id
        self.queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)
        self._channel = channel

    def close(self) -> None:
        """Stop receiving events."""
        self._channel.unsubscribe(self.subscription_id)

    def get_nowait(self) -> ProgressEvent:
        """Return the next buffered event without waiting."""
        return self.queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        while True:
            yield await self.queue.get()


class ProgressChannel:
    """Publish/subscribe channel for progress events.

    Subscriptions may be scoped to a single run id. Unscoped subscriptions
    receive every event.
    """

    def __init__(self, queue_size: int = 1000) -> None:
        """Initialize progress channel."""
        self._queue_size = queue_size
        self._subscriptions: dict[str, ProgressSubscription] = {}
        self._handlers: dict[str, tuple[ProgressHandler, str | None]] = {}
        self._stats = {"events_published": 0, "events_dropped": 0}

    def subscribe(self, run_id: str | None = None) -> ProgressSubscription:
        """Open a queue subscription, optionally scoped to one run."""
        subscription = ProgressSubscription(self, run_id, self._queue_size)
        self._subscriptions[subscription.subscription_id] = subscription
        logger.debug("progress_subscription_created", subscription_id=subscription.subscription_id)
        return subscription

    def add_handler(self, handler: ProgressHandler, run_id: str | None = None) -> str:
        """Register a callback invoked synchronously on publish."""
        handler_id = str(uuid4())
        self._handlers[handler_id] = (handler, run_id)
        return handler_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription or handler."""
        removed = self._subscriptions.pop(subscription_id, None) or self._handlers.pop(
            subscription_id, None
        )
        return removed is not None

    def publish(self, event: ProgressEvent) -> None:
        """Deliver an event to every matching subscriber without blocking."""
        self._stats["events_published"] += 1

        for subscription in list(self._subscriptions.values()):
            if subscription.run_id not in (None, event.run_id):
                continue
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                self._stats["events_dropped"] += 1
                logger.warning(
                    "progress_event_dropped",
                    subscription_id=subscription.subscription_id,
                    run_id=event.run_id,
                )

        for handler_id, (handler, run_id) in list(self._handlers.items()):
            if run_id not in (None, event.run_id):
                continue
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "progress_handler_failed",
                    handler_id=handler_id,
                    run_id=event.run_id,
                    error=str(e),
                )

    def get_stats(self) -> dict[str, Any]:
        """Get channel statistics."""
        return {
            **self._stats,
            "subscribers_count": len(self._subscriptions) + len(self._handlers),
        }
