"""
Membership lookups.

Group membership is managed elsewhere; the expense and settlement services
only need to ask who is in a group and whether a given user is.
"""

from typing import List
from uuid import UUID

from django.db.models import QuerySet

from apps.groups.models import Group, GroupMembership

from .exceptions import GroupNotFoundError


def is_group_member(group_id: UUID, user_id: UUID) -> bool:
    """Check whether user_id belongs to group_id."""
    return GroupMembership.objects.filter(group_id=group_id, user_id=user_id).exists()


def get_group_members(*, group_id: UUID) -> QuerySet:
    """
    Get all memberships of a group, oldest first.

    Raises:
        GroupNotFoundError: If group doesn't exist
    """
    if not Group.objects.filter(id=group_id).exists():
        raise GroupNotFoundError(f"Group with ID {group_id} not found")

    return (
        GroupMembership.objects
        .filter(group_id=group_id)
        .select_related('user')
        .order_by('joined_at')
    )


def get_member_ids(group_id: UUID) -> List[UUID]:
    """User ids of a group's members in join order."""
    return list(
        GroupMembership.objects
        .filter(group_id=group_id)
        .order_by('joined_at')
        .values_list('user_id', flat=True)
    )
