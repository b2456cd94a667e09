"""
Category management service.

Categories are per-group labels for payments and recurring rules.
"""

import logging
from uuid import UUID

from django.db import IntegrityError, transaction

from apps.accounts.models import User
from apps.expenses.models import Category
from apps.groups.services import is_group_member

from .exceptions import CategoryNotFoundError, DuplicateCategoryError, NotGroupMemberError

logger = logging.getLogger(__name__)


def create_category(*, group_id: UUID, user: User, name: str, icon: str = '', color: str = '') -> Category:
    """
    Create a category in a group.

    Raises:
        NotGroupMemberError: If user is not a member of the group
        DuplicateCategoryError: If the group already has this name
    """
    if not is_group_member(group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")

    try:
        with transaction.atomic():
            category = Category.objects.create(
                group_id=group_id,
                name=name,
                icon=icon or '',
                color=color or '',
            )
    except IntegrityError:
        raise DuplicateCategoryError(f"Category '{name}' already exists in this group")

    logger.info("User %s created category %s", user.id, category.id)
    return category


@transaction.atomic
def delete_category(*, category_id: UUID, user: User) -> None:
    """
    Delete a category. Payments and rules using it keep no category.

    Raises:
        CategoryNotFoundError, NotGroupMemberError
    """
    try:
        category = Category.objects.select_for_update().get(id=category_id)
    except Category.DoesNotExist:
        raise CategoryNotFoundError(f"Category with ID {category_id} not found")

    if not is_group_member(category.group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")

    category.delete()
    logger.info("User %s deleted category %s", user.id, category_id)
