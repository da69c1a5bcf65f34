"""
Business logic for internal messages.

A user's message list holds everything they sent or received, newest
first.  Each message is cached in the overall list and in the lists of
both its sender and its recipient, so writes keep all three in step.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from ..core import codec
from ..core.cache import CacheKeys, CacheTTL
from ..core.errors import DataAccessError
from ..schemas.message import Message
from ..storage.base import Tables
from .data_service import DataService, utc_now

logger = logging.getLogger(__name__)


def newest_first(messages: List[Message]) -> List[Message]:
    return sorted(messages, key=lambda message: message.timestamp, reverse=True)


class MessageService(DataService):
    """Cache-aside access to the ``messages`` table, listed per user."""

    table = Tables.MESSAGES
    model = Message
    list_ttl = CacheTTL.MESSAGE_LIST
    item_ttl = CacheTTL.MESSAGE_DETAIL
    prepend_new = True

    def item_key(self, item_id: str) -> str:
        return CacheKeys.message(item_id)

    def list_key(self, parent_id: Optional[str] = None) -> str:
        if parent_id is None:
            return CacheKeys.MESSAGES
        return CacheKeys.user_messages(parent_id)

    def _list_keys_for(self, item: Any) -> List[str]:
        keys = [CacheKeys.MESSAGES, CacheKeys.user_messages(item.sender_id)]
        if item.recipient_id != item.sender_id:
            keys.append(CacheKeys.user_messages(item.recipient_id))
        return keys

    async def _fetch(self, parent_id: Optional[str]) -> List[Message]:
        if parent_id is None:
            records = await self.backend.list(self.table)
        else:
            sent = await self.backend.list(self.table, {"sender_id": parent_id})
            received = await self.backend.list(self.table, {"recipient_id": parent_id})
            records = list({record["id"]: record for record in sent + received}.values())
        return newest_first([codec.decode(self.table, record) for record in records])

    async def create(self, data: Union[BaseModel, Dict[str, Any]]) -> Message:
        values = self._values(data)
        if not values.get("timestamp"):
            values["timestamp"] = utc_now()
        values.setdefault("read", False)
        return await super().create(values)

    async def create_many(self, messages: List[Message]) -> List[Message]:
        """Store fully built messages with one backend call.

        Either every message is stored or, on failure, none is and the
        cache is left alone.
        """
        if not messages:
            return []
        try:
            records = await self.backend.insert_many(
                self.table, [codec.encode(self.table, message) for message in messages]
            )
        except DataAccessError as exc:
            logger.error("Failed to store a batch of %d messages: %s", len(messages), exc)
            raise
        stored = [codec.decode(self.table, record) for record in records]
        for message in stored:
            self.remember(message)
        logger.info("Stored %d messages", len(stored))
        return stored

    async def mark_read(self, message_id: str) -> Message:
        return await self.update(message_id, {"read": True})

    async def received(self, user_id: str, fresh: bool = False) -> List[Message]:
        """Messages addressed to ``user_id``, newest first."""
        messages = await self.list(user_id, fresh=fresh)
        return [message for message in messages if message.recipient_id == user_id]

    async def unread_for(self, user_id: str) -> List[Message]:
        """Unread messages addressed to ``user_id``, read from the backend."""
        return [message for message in await self.received(user_id, fresh=True) if not message.read]
