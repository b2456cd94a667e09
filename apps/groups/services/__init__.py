"""
Groups app services layer.

Membership itself is managed outside this project; these services answer
membership questions for the expense and settlement apps.
"""

from .exceptions import (
    GroupsServiceError,
    GroupNotFoundError,
)

from .membership_management import (
    is_group_member,
    get_group_members,
    get_member_ids,
)


__all__ = [
    # Exceptions
    'GroupsServiceError',
    'GroupNotFoundError',

    # Membership
    'is_group_member',
    'get_group_members',
    'get_member_ids',
]
