"""In-process fan-out of committed row changes to live subscriptions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from siteledger.domain.entities import ChangeEvent, ChangeKind
from siteledger.domain.errors import SubscriptionError

logger = logging.getLogger(__name__)

DEFAULT_CHANGE_KINDS: tuple[ChangeKind, ...] = (ChangeKind.INSERT, ChangeKind.UPDATE)

_CLOSED = object()


class ChangeSubscription:
    """Cancellable stream of change events for one table and filter.

    Iterate it with ``async for``. Iteration ends once :meth:`close` is called
    and raises :class:`SubscriptionError` when the feed drops the stream.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        table: str,
        filters: Mapping[str, Any] | None,
        kinds: Iterable[ChangeKind | str],
    ) -> None:
        self._feed = feed
        self.table = table
        self.filters = dict(filters or {})
        self.kinds = frozenset(ChangeKind(kind) for kind in kinds)
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        """Return ``True`` when ``event`` belongs to this stream."""

        if self._closed or event.table != self.table or event.kind not in self.kinds:
            return False
        return all(event.row.get(column) == value for column, value in self.filters.items())

    def deliver(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def drop(self, reason: str) -> None:
        """Terminate the stream with a :class:`SubscriptionError`."""

        if self._closed:
            return
        self._closed = True
        self._feed.discard(self)
        self._queue.put_nowait(SubscriptionError(reason))

    def close(self) -> None:
        """Stop receiving events; pending iteration finishes cleanly."""

        if self._closed:
            return
        self._closed = True
        self._feed.discard(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> ChangeSubscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, SubscriptionError):
            raise item
        return item  # type: ignore[return-value]

    async def __aenter__(self) -> ChangeSubscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class ChangeFeed:
    """Route change events to every open subscription that matches them."""

    def __init__(self) -> None:
        self._subscriptions: list[ChangeSubscription] = []

    @property
    def subscriptions(self) -> tuple[ChangeSubscription, ...]:
        """Currently open subscriptions, oldest first."""

        return tuple(self._subscriptions)

    def subscribe(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        kinds: Iterable[ChangeKind | str] = DEFAULT_CHANGE_KINDS,
    ) -> ChangeSubscription:
        """Open a subscription for ``table`` rows matching ``filters``."""

        subscription = ChangeSubscription(self, table, filters, kinds)
        self._subscriptions.append(subscription)
        logger.debug("Opened change subscription on %s %s", table, subscription.filters)
        return subscription

    def discard(self, subscription: ChangeSubscription) -> None:
        """Forget ``subscription``; called when it is closed or dropped."""

        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return
        logger.debug(
            "Closed change subscription on %s %s",
            subscription.table,
            subscription.filters,
        )

    def publish(self, event: ChangeEvent) -> int:
        """Deliver ``event`` to matching subscriptions and return how many."""

        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    def drop_all(self, reason: str = "change feed reset") -> None:
        """Drop every open subscription, e.g. when the upstream channel is lost."""

        for subscription in list(self._subscriptions):
            subscription.drop(reason)


__all__ = ["ChangeFeed", "ChangeSubscription", "DEFAULT_CHANGE_KINDS"]
