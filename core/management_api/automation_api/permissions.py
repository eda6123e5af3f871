from rest_framework import permissions


class SmsTemplatePermission(permissions.BasePermission):
    """
    Permission for SMS templates
    - Users read their own templates and global ones
    - Users edit and delete only their own templates
    - Staff manage global templates
    """

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return obj.is_global or obj.user_id == request.user.id or request.user.is_staff
        if obj.is_global:
            return request.user.is_staff
        return obj.user_id == request.user.id or request.user.is_staff


class SmsAutomationPermission(permissions.BasePermission):
    """
    Permission for automation rules
    - Owners manage their own rules
    - Staff manage every rule
    """

    def has_permission(self, request, view):
        return request.user and request.user.is_authenticated

    def has_object_permission(self, request, view, obj):
        return obj.user_id == request.user.id or request.user.is_staff
