from rest_framework import permissions


class CalendarPermission(permissions.BasePermission):
    """
    Calendar endpoints always act on the requesting user's own integration,
    so authentication is the only requirement.
    """

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated
