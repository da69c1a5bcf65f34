"""
Message fan-out.

One send addressed to a group becomes one stored message per
recipient.  The group is resolved to user ids first: an individual, the
users whose e-mail matches a volunteer of an event or of one role of
it, or every user.  The sender never receives their own message and
nobody receives it twice.

All messages are stored with a single batch write.  If that fails the
send is aborted before any unread counter is touched.  The counters are
then incremented one recipient at a time; a failed increment is logged
and reported in the result, and earlier increments are kept.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from ..core.errors import DataAccessError, NotFoundError
from ..schemas.message import Message, RecipientSelector, RecipientType
from .data_service import new_id, utc_now
from .event_service import EventService
from .message_service import MessageService
from .user_service import UserService

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@dataclass
class FanoutResult:
    messages: List[Message] = field(default_factory=list)
    recipient_ids: List[str] = field(default_factory=list)
    failed_increments: List[str] = field(default_factory=list)


class FanoutService:
    """Resolve recipient groups and write one message per recipient."""

    def __init__(self, users: UserService, events: EventService, messages: MessageService) -> None:
        self.users = users
        self.events = events
        self.messages = messages

    async def _users_by_email(self, emails: Iterable[str]) -> List[str]:
        by_email: Dict[str, List[str]] = {}
        for user in await self.users.list():
            by_email.setdefault(normalize_email(user.email), []).append(user.id)
        user_ids: List[str] = []
        for email in emails:
            user_ids.extend(by_email.get(normalize_email(email), []))
        return user_ids

    async def resolve(self, sender_id: str, selector: RecipientSelector) -> List[str]:
        """Return the recipients of ``selector`` in order, deduplicated, without the sender."""
        if selector.type is RecipientType.INDIVIDUAL:
            candidates = [selector.user_id]
        elif selector.type is RecipientType.ALL:
            candidates = [user.id for user in await self.users.list()]
        else:
            event = await self.events.get_tree(selector.event_id)
            roles = event.roles
            if selector.type is RecipientType.ROLE:
                roles = [role for role in roles if role.id == selector.role_id]
                if not roles:
                    raise NotFoundError(f"Role {selector.role_id} not found in event {selector.event_id}")
            emails = [volunteer.email for role in roles for volunteer in role.volunteers]
            candidates = await self._users_by_email(emails)
        return [user_id for user_id in dict.fromkeys(candidates) if user_id and user_id != sender_id]

    async def send(
        self,
        sender_id: str,
        selector: RecipientSelector,
        subject: str,
        content: str,
    ) -> FanoutResult:
        """Write one message per recipient and bump their unread counters.

        Raises
        ------
        DataAccessError
            If resolving the recipients or storing the batch fails.  No
            counter has been changed then.
        """
        recipient_ids = await self.resolve(sender_id, selector)
        result = FanoutResult(recipient_ids=recipient_ids)
        if not recipient_ids:
            logger.info("Message from %s resolved to no recipients", sender_id)
            return result

        timestamp = utc_now()
        event_id = selector.event_id if selector.type in (RecipientType.EVENT, RecipientType.ROLE) else None
        batch = [
            Message(
                id=new_id(),
                sender_id=sender_id,
                recipient_id=recipient_id,
                event_id=event_id,
                subject=subject,
                content=content,
                timestamp=timestamp,
                read=False,
            )
            for recipient_id in recipient_ids
        ]
        result.messages = await self.messages.create_many(batch)

        for recipient_id in recipient_ids:
            try:
                await self.users.increment_unread(recipient_id)
            except DataAccessError as exc:
                logger.warning("Could not increment unread count of %s: %s", recipient_id, exc)
                result.failed_increments.append(recipient_id)
        logger.info(
            "Message from %s sent to %d recipients (%d counter failures)",
            sender_id,
            len(recipient_ids),
            len(result.failed_increments),
        )
        return result
