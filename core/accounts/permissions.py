"""
Role Based Permissions

Role checks shared by every app. Roles live on ``Profile.role``; superusers
always count as admin.

- role_required(*roles): permission class factory for DRF views
- IsAuthor / IsEditor / IsAdmin / IsAdminOrStaff: the role lists used by
  the API
- IsOwnerOrEditor: object-level check for author-owned content

Author: Agency Development Team
Version: 1.0.0
"""

from typing import Optional

from rest_framework.permissions import SAFE_METHODS, BasePermission

from .models import Profile

Role = Profile.Role

AUTHOR_ROLES = (Role.AUTHOR, Role.EDITOR, Role.ADMIN)
EDITOR_ROLES = (Role.EDITOR, Role.ADMIN)
ADMIN_ROLES = (Role.ADMIN,)
STAFF_ROLES = (Role.ADMIN, Role.STAFF)


def get_role(user) -> Optional[str]:
    if user is None or not user.is_authenticated:
        return None
    if user.is_superuser:
        return Role.ADMIN
    profile = getattr(user, "profile", None)
    return profile.role if profile is not None else Role.MEMBER


def has_role(user, *roles) -> bool:
    role = get_role(user)
    return role is not None and role in roles


def is_editor(user) -> bool:
    return has_role(user, *EDITOR_ROLES)


def is_admin(user) -> bool:
    return has_role(user, *ADMIN_ROLES)


def role_required(*roles):
    """
    Build a permission class granting access to authenticated users whose
    role is one of ``roles``.
    """

    class RolePermission(BasePermission):
        message = "Insufficient role for this operation."

        def has_permission(self, request, view) -> bool:
            return has_role(request.user, *roles)

    RolePermission.__name__ = "RoleRequired_" + "_".join(str(r) for r in roles)
    return RolePermission


IsAuthor = role_required(*AUTHOR_ROLES)
IsEditor = role_required(*EDITOR_ROLES)
IsAdmin = role_required(*ADMIN_ROLES)
IsAdminOrStaff = role_required(*STAFF_ROLES)


class IsOwnerOrEditor(BasePermission):
    """
    Object-level permission: reads are open, writes require the object's
    owner (``owner_field``, default ``author``) or an editor/admin.
    """

    owner_field = "author"

    def has_object_permission(self, request, view, obj) -> bool:
        if request.method in SAFE_METHODS:
            return True
        if is_editor(request.user):
            return True
        owner_id = getattr(obj, f"{self.owner_field}_id", None)
        return owner_id is not None and owner_id == request.user.id
