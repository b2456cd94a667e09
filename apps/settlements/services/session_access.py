"""
Locking and precondition checks shared by the settlement services.

Every state-changing settlement operation runs inside ``transaction.atomic``
and starts by locking its session row with ``select_for_update``. Writers
on the same session are serialized by that lock; different sessions never
contend.
"""

import logging
from typing import Optional
from uuid import UUID

from apps.accounts.models import User
from apps.groups.services import is_group_member
from apps.settlements.models import SettlementSession

from .exceptions import (
    InvalidSessionStatusError,
    NotGroupMemberError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)


def lock_session(
    session_id: UUID,
    user: User,
    *,
    required_status: Optional[str] = None,
) -> SettlementSession:
    """
    Fetch a session row for update and check the caller may act on it.

    Must be called inside a transaction.

    Raises:
        SessionNotFoundError: If the session doesn't exist
        NotGroupMemberError: If user is not in the session's group
        InvalidSessionStatusError: If required_status is given and differs
    """
    try:
        session = (
            SettlementSession.objects
            .select_for_update()
            .get(id=session_id)
        )
    except SettlementSession.DoesNotExist:
        raise SessionNotFoundError(f"Settlement session {session_id} not found")

    if not is_group_member(session.group_id, user.id):
        logger.warning("User %s is not a member of group %s", user.id, session.group_id)
        raise NotGroupMemberError("You are not a member of this group")

    if required_status is not None and session.status != required_status:
        raise InvalidSessionStatusError(
            f"Session is {session.status}, expected {required_status}"
        )

    return session
