"""
Permission classes for the expenses app.

Group membership for writes is enforced again by the services; these
classes keep non-members from reading another household's records.
"""
from rest_framework.permissions import BasePermission


class IsGroupMemberForRecord(BasePermission):
    """
    Permission: user must belong to the group of the payment, rule or
    category being accessed.
    """

    message = 'You must be a member of this group.'

    def has_object_permission(self, request, view, obj):
        return obj.group.has_member(request.user)
