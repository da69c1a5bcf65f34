"""
Business logic for users.

Users are created the first time the identity collaborator hands one
over (``sign_in``); the very first user becomes the OWNER and everyone
after that starts as a VOLUNTEER.  There is always at most one OWNER:
ownership moves with ``transfer_ownership``, which demotes the current
owner to MANAGER and promotes the new one in a single write.

``unread_messages`` is a stored counter maintained by the message
fan-out and the inbox visit.
"""

import logging
from typing import List, Optional

from ..core import codec
from ..core.cache import CacheKeys, CacheTTL
from ..core.errors import DataAccessError, NotFoundError, ValidationError
from ..schemas.user import SignIn, User, UserRole
from ..storage.base import Tables
from .data_service import DataService, utc_now

logger = logging.getLogger(__name__)


class UserService(DataService):
    """Cache-aside access to the ``users`` table."""

    table = Tables.USERS
    model = User
    list_ttl = CacheTTL.USER_LIST
    item_ttl = CacheTTL.USER_DETAIL

    def item_key(self, item_id: str) -> str:
        return CacheKeys.user(item_id)

    def list_key(self, parent_id: Optional[str] = None) -> str:
        return CacheKeys.USERS

    async def sign_in(self, identity: SignIn) -> User:
        """Return the user behind ``identity``, creating it on first sign-in."""
        try:
            return await self.get(identity.id, fresh=True)
        except NotFoundError:
            pass
        existing = await self.list(fresh=True)
        role = UserRole.VOLUNTEER if existing else UserRole.OWNER
        now = utc_now()
        user = User(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            image=identity.image,
            provider_id=identity.provider_id,
            role=role,
            email_notifications=True,
            unread_messages=0,
            created_at=now,
            updated_at=now,
        )
        created = await self._insert(user)
        logger.info("Registered user %s as %s", created.email, created.role.value)
        return created

    async def find_owner(self) -> Optional[User]:
        for user in await self.list(fresh=True):
            if user.role is UserRole.OWNER:
                return user
        return None

    async def _ensure_single_owner(self, user_id: str, current: Optional[UserRole], role: UserRole) -> None:
        if role is UserRole.OWNER:
            owner = await self.find_owner()
            if owner is not None and owner.id != user_id:
                raise ValidationError("There is already an owner; transfer ownership instead")
        elif current is UserRole.OWNER:
            raise ValidationError("The owner cannot be demoted; transfer ownership instead")

    async def update_role(self, user_id: str, role: UserRole) -> User:
        """Change a user's role.

        Raises
        ------
        ValidationError
            If the change would create a second OWNER or leave none.
            Ownership only moves through ``transfer_ownership``.
        """
        user = await self.get(user_id, fresh=True)
        if user.role is role:
            return user
        await self._ensure_single_owner(user_id, user.role, role)
        return await self.update(user_id, {"role": role.value})

    async def stored_role(self, user_id: str) -> Optional[UserRole]:
        """Role of the stored user, or ``None`` when there is none yet."""
        try:
            return (await self.get(user_id, fresh=True)).role
        except NotFoundError:
            return None

    async def save(self, user: User) -> User:
        """Insert or replace ``user`` without ever leaving two OWNERs.

        Raises
        ------
        ValidationError
            If the saved role would add an OWNER or demote the current one.
        """
        current = await self.stored_role(user.id)
        if user.role is not current:
            await self._ensure_single_owner(user.id, current, user.role)
        return await super().save(user)

    async def set_email_notifications(self, user_id: str, enabled: bool) -> User:
        return await self.update(user_id, {"email_notifications": enabled})

    async def increment_unread(self, user_id: str) -> User:
        user = await self.get(user_id, fresh=True)
        return await self.update(user_id, {"unread_messages": user.unread_messages + 1})

    async def reset_unread(self, user_id: str) -> User:
        return await self.update(user_id, {"unread_messages": 0})

    async def transfer_ownership(self, new_owner_id: str) -> List[User]:
        """Make ``new_owner_id`` the OWNER and the current owner a MANAGER.

        Both users are written with one ``upsert`` call; no other user
        changes.  Transferring to the current owner changes nothing.

        Returns
        -------
        List[User]
            The users that were written, new owner last.
        """
        target = await self.get(new_owner_id, fresh=True)
        if target.role is UserRole.OWNER:
            return [target]
        now = utc_now()
        changed = []
        owner = await self.find_owner()
        if owner is not None:
            changed.append(owner.model_copy(update={"role": UserRole.MANAGER, "updated_at": now}))
        changed.append(target.model_copy(update={"role": UserRole.OWNER, "updated_at": now}))
        try:
            records = await self.backend.upsert(self.table, [codec.encode(self.table, user) for user in changed])
        except DataAccessError as exc:
            logger.error("Failed to transfer ownership to %s: %s", new_owner_id, exc)
            raise
        users = [codec.decode(self.table, record) for record in records]
        for user in users:
            self.remember(user)
        logger.info(
            "Ownership transferred from %s to %s", owner.id if owner else None, new_owner_id
        )
        return users
