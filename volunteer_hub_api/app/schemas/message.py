"""
Pydantic models for internal messages.

A ``Message`` always has exactly one recipient.  Sending to a group is
done by ``FanoutService``, which resolves a ``RecipientSelector`` to a
list of user ids and writes one message per recipient.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from . import CamelModel


class RecipientType(str, Enum):
    INDIVIDUAL = "individual"
    EVENT = "event"
    ROLE = "role"
    ALL = "all"


class RecipientSelector(CamelModel):
    """Who a message send is addressed to.

    ``INDIVIDUAL`` needs ``user_id``, ``EVENT`` needs ``event_id`` and
    ``ROLE`` needs both ``event_id`` and ``role_id``.  ``ALL`` takes no
    ids.
    """

    type: RecipientType
    user_id: Optional[str] = None
    event_id: Optional[str] = None
    role_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_ids(self) -> "RecipientSelector":
        if self.type is RecipientType.INDIVIDUAL and not self.user_id:
            raise ValueError("an individual message needs userId")
        if self.type is RecipientType.EVENT and not self.event_id:
            raise ValueError("an event message needs eventId")
        if self.type is RecipientType.ROLE and not (self.event_id and self.role_id):
            raise ValueError("a role message needs eventId and roleId")
        return self


class Message(CamelModel):
    id: str
    sender_id: str
    recipient_id: str
    event_id: Optional[str] = None
    subject: str = ""
    content: str = ""
    timestamp: str
    read: bool = False


class MessageCreate(CamelModel):
    sender_id: str
    recipient_id: str
    event_id: Optional[str] = None
    subject: str = ""
    content: str = ""
    timestamp: Optional[str] = None
    read: bool = False


class MessageUpdate(CamelModel):
    subject: Optional[str] = None
    content: Optional[str] = None
    read: Optional[bool] = None


class SendMessage(CamelModel):
    """Body of a group send; the sender is the calling user."""

    recipients: RecipientSelector
    subject: str = Field(..., examples=["Shift reminder"])
    content: str = Field(..., examples=["Doors open at 8:30, see you there."])
