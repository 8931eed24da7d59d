"""In-process push channel.

Subscriptions are keyed by (owner_session_id, document_id). Each subscription
owns an asyncio.Queue of wire dicts; a closed subscription wakes its reader with
ChannelClosedError so the reader can reconnect or stop.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Set, Tuple

from src.exceptions import ChannelClosedError
from src.utils.logging_config import get_logger

logger = get_logger(__name__)

ChannelKey = Tuple[str, str]

_CLOSED = object()


class Subscription:
    def __init__(self, key: ChannelKey) -> None:
        self.key = key
        self.queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False

    async def get(self) -> Dict[str, Any]:
        item = await self.queue.get()
        if item is _CLOSED:
            raise ChannelClosedError(f"Channel {self.key} closed")
        return item

    def put(self, payload: Dict[str, Any]) -> None:
        if not self.closed:
            self.queue.put_nowait(payload)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(_CLOSED)


class ChannelHub:
    def __init__(self) -> None:
        self._subscriptions: Dict[ChannelKey, Set[Subscription]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, owner_session_id: str, document_id: str) -> Subscription:
        if self._closed:
            raise ChannelClosedError("Channel hub is closed")
        key = (owner_session_id, document_id)
        subscription = Subscription(key)
        self._subscriptions.setdefault(key, set()).add(subscription)
        logger.debug(f"Subscribed to {key} ({len(self._subscriptions[key])} listeners)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.key)
        if listeners is not None:
            listeners.discard(subscription)
            if not listeners:
                del self._subscriptions[subscription.key]
        subscription.close()

    def publish(
        self,
        owner_session_id: str,
        document_id: str,
        payload: Dict[str, Any],
        *,
        sender: Optional[Subscription] = None,
    ) -> int:
        """Deliver payload to every subscriber of the channel except sender. Returns the count."""
        delivered = 0
        for subscription in list(self._subscriptions.get((owner_session_id, document_id), ())):
            if subscription is sender:
                continue
            subscription.put(payload)
            delivered += 1
        return delivered

    def subscriber_count(self, owner_session_id: str, document_id: str) -> int:
        return len(self._subscriptions.get((owner_session_id, document_id), ()))

    def disconnect(self, owner_session_id: Optional[str] = None, document_id: Optional[str] = None) -> int:
        """Drop matching subscriptions as a transport failure would. Returns how many were dropped."""
        dropped = 0
        for key in list(self._subscriptions):
            if owner_session_id is not None and key[0] != owner_session_id:
                continue
            if document_id is not None and key[1] != document_id:
                continue
            for subscription in self._subscriptions.pop(key):
                subscription.close()
                dropped += 1
        if dropped:
            logger.info(f"Disconnected {dropped} subscription(s)")
        return dropped

    def close(self) -> None:
        self._closed = True
        self.disconnect()
