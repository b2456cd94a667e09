from rest_framework.permissions import BasePermission


class IsSessionGroupMember(BasePermission):
    """
    Permission: user must belong to the group of the session (or of the
    entry's session) being accessed.
    """

    message = 'You must be a member of this group.'

    def has_object_permission(self, request, view, obj):
        session = getattr(obj, 'session', obj)
        return session.group.has_member(request.user)
