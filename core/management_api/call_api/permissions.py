from rest_framework import permissions


class CallPermission(permissions.BasePermission):
    """
    Permission for Call records
    - Authenticated users read their own calls and place outbound calls
    - Only notes can be edited, by the owner or staff
    - Calls are never deleted through the API
    """

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        return obj.user_id == request.user.id or request.user.is_staff
