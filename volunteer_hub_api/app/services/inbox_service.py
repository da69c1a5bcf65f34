"""Opening an inbox marks its unread messages read and clears the counter."""

import logging
from typing import List

from ..schemas.message import Message
from .message_service import MessageService
from .user_service import UserService

logger = logging.getLogger(__name__)


class InboxService:
    def __init__(self, users: UserService, messages: MessageService) -> None:
        self.users = users
        self.messages = messages

    async def visit(self, user_id: str) -> List[Message]:
        """Mark every unread message of ``user_id`` read, then reset their counter.

        Messages are marked one at a time; the counter is reset with a
        single write afterwards.  Returns the user's received messages,
        newest first.
        """
        await self.users.get(user_id)
        unread = await self.messages.unread_for(user_id)
        for message in unread:
            await self.messages.mark_read(message.id)
        await self.users.reset_unread(user_id)
        logger.info("User %s opened their inbox, %d messages marked read", user_id, len(unread))
        return await self.messages.received(user_id)
