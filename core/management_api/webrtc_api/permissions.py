from rest_framework import permissions


class CanManageWebRTCUser(permissions.BasePermission):
    """
    Users manage their own softphone credentials; staff may act on anyone.
    """
    message = 'You can only manage WebRTC credentials for your own account.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        return obj == request.user or request.user.is_staff
