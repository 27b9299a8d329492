# apps/core/permissions/drf.py
from rest_framework import permissions

LIBRARIAN_GROUP = 'librarian'
ADMIN_GROUP = 'admin'


def is_admin(user):
    """
    Admins run the admin console: superusers or members of the admin group
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    return user.groups.filter(name=ADMIN_GROUP).exists()


def is_librarian(user):
    """
    Librarians staff the circulation desk; admins are librarians too
    """
    if not user or not user.is_authenticated:
        return False
    if user.is_staff or is_admin(user):
        return True
    return user.groups.filter(name=LIBRARIAN_GROUP).exists()


class IsAdmin(permissions.BasePermission):
    """
    Allows access only to admins
    """
    message = 'Admin access required.'

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsLibrarian(permissions.BasePermission):
    """
    Allows access only to circulation staff
    """
    message = 'Librarian access required.'

    def has_permission(self, request, view):
        return is_librarian(request.user)


class IsLibrarianOrReadOnly(permissions.BasePermission):
    """
    Authenticated users may read; only staff may write
    """
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return is_librarian(request.user)


class IsOwnerOrLibrarian(permissions.BasePermission):
    """
    Object-level permission: the owning member or circulation staff
    """
    owner_field = 'member'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        user = request.user
        if is_librarian(user):
            return True

        owner = getattr(obj, getattr(view, 'owner_field', self.owner_field), None)
        # Loans, fines and reservations point at a Member; notifications at a User
        owner_user_id = getattr(owner, 'user_id', None) or getattr(owner, 'pk', None)
        return owner_user_id == user.pk
