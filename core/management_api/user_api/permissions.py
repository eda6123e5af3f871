from rest_framework import permissions


class UserPermission(permissions.BasePermission):
    """
    Custom permission for User operations
    - Users can view and edit their own profile
    - Staff can view and edit all users
    - Only staff can create or delete users
    """

    def has_permission(self, request, view):
        if not (request.user and request.user.is_authenticated):
            return False
        if getattr(view, 'action', None) in ('create', 'destroy', 'assign_number'):
            return request.user.is_staff
        return True

    def has_object_permission(self, request, view, obj):
        if request.method == 'DELETE':
            return request.user.is_staff
        return obj == request.user or request.user.is_staff
