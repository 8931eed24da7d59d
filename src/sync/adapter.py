"""
Sync Channel Adapter

Bridges one DocumentSession to the push channel:
- inbound messages are validated, filtered to the session's document and to
  known section ids, and handed to the session as remote candidates;
- the session's own echoes (same originClientId) and unknown kinds are dropped;
- when the channel drops, the adapter re-subscribes with exponential backoff.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError

from src.engine.events import ConnectivityChanged, EventBus
from src.exceptions import ChannelClosedError
from src.models.document import Document
from src.models.enums import UpdateSource
from src.models.sync import DOCUMENT_UPDATE, SyncMessage
from src.sync.hub import ChannelHub, Subscription
from src.utils import structured_log
from src.utils.logging_config import get_logger
from src.utils.retry_strategies import RetryConfig, create_async_retrying

logger = get_logger(__name__)


class SyncChannelAdapter:
    def __init__(
        self,
        hub: ChannelHub,
        owner_session_id: str,
        document_id: str,
        on_update: Callable[[SyncMessage], Any],
        *,
        client_id: str,
        section_ids: Iterable[str],
        retry_config: Optional[RetryConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.hub = hub
        self.owner_session_id = owner_session_id
        self.document_id = document_id
        self.client_id = client_id
        self.retry_config = retry_config or RetryConfig(
            retryable_exceptions=(ChannelClosedError,)
        )
        self.events = events or EventBus()
        self._on_update = on_update
        self._section_ids = frozenset(section_ids)
        self._subscription: Optional[Subscription] = None
        self._reader: Optional[asyncio.Task] = None
        self._connected = False
        self._stopped = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def subscribe(self) -> None:
        self._stopped = False
        self._subscription = self.hub.subscribe(self.owner_session_id, self.document_id)
        self._set_connected(True)
        self._reader = asyncio.get_running_loop().create_task(self._read_loop())

    def unsubscribe(self) -> None:
        self._stopped = True
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
        self._reader = None
        if self._subscription is not None:
            self.hub.unsubscribe(self._subscription)
            self._subscription = None
        self._set_connected(False)

    async def _read_loop(self) -> None:
        while not self._stopped:
            subscription = self._subscription
            if subscription is None:
                return
            try:
                raw = await subscription.get()
            except ChannelClosedError:
                if self._stopped:
                    return
                self._set_connected(False)
                logger.warning(f"Push channel for {self.document_id} dropped; reconnecting")
                try:
                    await self._reconnect()
                except ChannelClosedError as e:
                    logger.error(f"Giving up on push channel for {self.document_id}: {e}")
                    return
                continue
            self.handle_message(raw)

    async def _reconnect(self) -> None:
        async for attempt in create_async_retrying(self.retry_config):
            with attempt:
                self._subscription = self.hub.subscribe(self.owner_session_id, self.document_id)
        self._set_connected(True)
        logger.info(f"Push channel for {self.document_id} reconnected")

    def handle_message(self, raw: Mapping[str, Any]) -> bool:
        """Validate and route one inbound payload. Returns True when it reached the session."""
        try:
            message = SyncMessage.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Dropping malformed sync message: {e.error_count()} error(s)")
            return False
        if message.kind != DOCUMENT_UPDATE:
            logger.debug(f"Ignoring sync message of kind {message.kind!r}")
            return False
        if message.document_id != self.document_id:
            structured_log.log_sync_message(
                "ignored", message.document_id, len(message.sections), reason="foreign_document"
            )
            return False
        if message.origin_client_id is not None and message.origin_client_id == self.client_id:
            return False
        sections = message.known_sections(self._section_ids)
        if not sections:
            return False
        structured_log.log_sync_message("inbound", message.document_id, len(sections))
        self._on_update(message.model_copy(update={"sections": sections}))
        return True

    def publish(
        self,
        document: Document,
        *,
        source: UpdateSource,
        section_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """Broadcast a snapshot to the other subscribers of this document."""
        message = SyncMessage.from_document(
            document, source=source, origin_client_id=self.client_id, section_ids=section_ids
        )
        delivered = self.hub.publish(
            self.owner_session_id,
            self.document_id,
            message.to_wire(),
            sender=self._subscription,
        )
        structured_log.log_sync_message(
            "outbound", self.document_id, len(message.sections), source=source.value, delivered=delivered
        )
        return delivered

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        self.events.emit(ConnectivityChanged(connected))
