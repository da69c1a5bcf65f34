"""
Volunteer sign-up.

Checking that a role has room and appending the volunteer are two
separate writes, so on their own two sign-ups for the last place could
both succeed.  The sign-up therefore ends with a conditional write on
the role's version stamp: it only succeeds if nobody else signed up
(or saved the event) since the role was read.  The loser of such a race
has its volunteer record removed again and gets ``ConflictError``.
"""

import logging

from ..core.capacity import ensure_can_join
from ..core.errors import ConflictError, DataAccessError, NotFoundError
from ..schemas.role import Volunteer, VolunteerCreate
from .role_service import RoleService
from .volunteer_service import VolunteerService

logger = logging.getLogger(__name__)


class SignupService:
    """Add volunteers to roles without ever exceeding their ceiling."""

    def __init__(self, roles: RoleService, volunteers: VolunteerService) -> None:
        self.roles = roles
        self.volunteers = volunteers

    async def sign_up(self, event_id: str, role_id: str, form: VolunteerCreate) -> Volunteer:
        """Sign a volunteer up for ``role_id`` of ``event_id``.

        Parameters
        ----------
        event_id : str
            Event the role must belong to.
        role_id : str
            Role to join.
        form : VolunteerCreate
            The volunteer's details.

        Returns
        -------
        Volunteer
            The stored volunteer.

        Raises
        ------
        NotFoundError
            If the role does not exist or belongs to another event.
        RoleFullError
            If the role already reached its ceiling.
        ConflictError
            If another write changed the role while signing up.
        """
        role = await self.roles.get(role_id, fresh=True)
        if role.event_id != event_id:
            raise NotFoundError(f"Role {role_id} does not belong to event {event_id}")
        current = await self.volunteers.list(role_id, fresh=True)
        ensure_can_join(role.model_copy(update={"volunteers": current}))

        values = form.model_dump(mode="json")
        values["role_id"] = role_id
        volunteer = await self.volunteers.create(values)
        try:
            await self.roles.bump_version(role_id, role.version)
        except ConflictError:
            logger.warning("Sign-up of %s for role %s lost a race, rolling back", volunteer.email, role_id)
            await self._undo(volunteer)
            raise
        except DataAccessError:
            await self._undo(volunteer)
            raise
        logger.info("Volunteer %s signed up for role %s", volunteer.email, role_id)
        return volunteer

    async def _undo(self, volunteer: Volunteer) -> None:
        try:
            await self.volunteers.delete(volunteer.id)
        except DataAccessError as exc:
            logger.error("Could not remove volunteer %s after a failed sign-up: %s", volunteer.id, exc)
