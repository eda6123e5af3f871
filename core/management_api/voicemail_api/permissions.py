from rest_framework import permissions


class VoicemailPermission(permissions.BasePermission):
    """
    Permission for voicemails
    - Owners read, annotate, mark read and delete their voicemails
    - Staff have the same access to every user's voicemails
    """

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        return obj.user_id == request.user.id or request.user.is_staff
