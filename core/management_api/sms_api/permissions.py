from rest_framework import permissions


class SmsMessagePermission(permissions.BasePermission):
    """
    Permission for SMS messages
    - Authenticated users read and send their own messages
    - Staff can read every user's messages
    """

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        return obj.user_id == request.user.id or request.user.is_staff
