from rest_framework import permissions


class IsStaffUser(permissions.BasePermission):
    """
    Number inventory and Telnyx account settings cost money or affect every
    user, so only staff may touch them.
    """

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_staff)
