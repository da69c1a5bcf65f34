"""
Message endpoints.

Plain CRUD over single messages, the batch write used by clients that
resolve recipients themselves, and ``/send``, which resolves a
recipient group on the server and fans the message out.  Writing
messages is for managers, and only under their own sender id.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Any, Dict, List, Optional

from volunteer_hub_api.app.container import Services, get_services
from volunteer_hub_api.app.core.security import get_current_user, require_roles
from volunteer_hub_api.app.schemas.message import Message, MessageCreate, MessageUpdate, SendMessage
from volunteer_hub_api.app.schemas.user import User, UserRole


router = APIRouter()


def _ensure_participant(message: Message, current_user: User) -> None:
    if current_user.id in (message.sender_id, message.recipient_id):
        return
    if not current_user.role.includes(UserRole.MANAGER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")


def _ensure_sender(sender_id: str, current_user: User) -> None:
    if sender_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Messages can only be sent as yourself")


@router.get("", response_model=List[Message])
async def list_messages(
    user_id: Optional[str] = Query(None, alias="userId"),
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> List[Message]:
    """List the messages a user sent or received, newest first.

    Defaults to the calling user.  Other users' messages, and the list
    of all messages (``userId=*``), require a manager.
    """
    user_id = user_id or current_user.id
    if user_id != current_user.id and not current_user.role.includes(UserRole.MANAGER):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return await services.messages.list(None if user_id == "*" else user_id)


@router.post("/send", response_model=Dict[str, Any])
async def send_message(
    body: SendMessage,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    """Send a message to an individual, an event, a role or everyone."""
    result = await services.fanout.send(current_user.id, body.recipients, body.subject, body.content)
    return {
        "success": True,
        "recipients": result.recipient_ids,
        "failedIncrements": result.failed_increments,
    }


@router.post("/batch", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_batch(
    body: List[Message],
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    """Store several fully formed messages in one write."""
    for message in body:
        _ensure_sender(message.sender_id, current_user)
    await services.messages.create_many(body)
    return {"success": True}


@router.get("/{message_id}", response_model=Message)
async def get_message(
    message_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> Message:
    message = await services.messages.get(message_id)
    _ensure_participant(message, current_user)
    return message


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_message(
    body: MessageCreate,
    services: Services = Depends(get_services),
    current_user: User = Depends(require_roles(UserRole.MANAGER)),
) -> Dict[str, Any]:
    _ensure_sender(body.sender_id, current_user)
    message = await services.messages.create(body)
    return {"success": True, "message": message.to_json()}


@router.patch("/{message_id}", response_model=Dict[str, Any])
async def update_message(
    message_id: str,
    body: MessageUpdate,
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    _ensure_participant(await services.messages.get(message_id), current_user)
    await services.messages.update(message_id, body)
    return {"success": True}


@router.delete("/{message_id}", response_model=Dict[str, Any])
async def delete_message(
    message_id: str,
    services: Services = Depends(get_services),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    _ensure_participant(await services.messages.get(message_id), current_user)
    await services.messages.delete(message_id)
    return {"success": True}
