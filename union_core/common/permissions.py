# union_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import SAFE_METHODS, BasePermission

# Member roles (mirrors members.models.MemberRole values)
ROLE_APPLICANT = "APPLICANT"
ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"
ROLE_SYSTEM_ADMIN = "SYSTEM_ADMIN"

ALL_MEMBER_ROLES = {ROLE_APPLICANT, ROLE_USER, ROLE_ADMIN, ROLE_SYSTEM_ADMIN}
ADMIN_ROLES = {ROLE_ADMIN, ROLE_SYSTEM_ADMIN}


def _user_roles(request) -> Set[str]:
    """
    Resolve roles of request.user inside request.union:
    1) Django superuser -> SYSTEM_ADMIN everywhere
    2) Member linked to the auth user in this union -> member.role
       (blocked members get no roles)

    Returns set of role strings; empty when the caller is not a member.
    """
    roles: Set[str] = set()
    user = getattr(request, "user", None)

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_SYSTEM_ADMIN)
        return roles

    tenant_id = getattr(request, "tenant_id", None)
    if not tenant_id:
        return roles

    from union_core.members.selectors import get_member_for_auth_user_or_none

    member = get_member_for_auth_user_or_none(tenant_id=tenant_id, auth_user_id=user.id)
    if member is None or member.is_blocked:
        return roles

    roles.add(str(member.role))
    return roles


class UnionRolePermission(BasePermission):
    """
    Base permission class for role-based access inside a union.

    Key behavior:
    - Requires a resolved union (UnionScopeMiddleware) and an authenticated caller.
    - SYSTEM_ADMIN bypass.
    - Uses allowed_roles_per_action for strict RBAC.
    - If action is unknown and request is SAFE, fall back to list/retrieve.
    """
    message = "You do not have permission to perform this action."

    # Override in subclasses: dict of action -> set of allowed roles
    allowed_roles_per_action = {
        "list": ADMIN_ROLES,
        "retrieve": ADMIN_ROLES,
        "create": ADMIN_ROLES,
        "update": ADMIN_ROLES,
        "partial_update": ADMIN_ROLES,
        "destroy": ADMIN_ROLES,
    }

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "pnu" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "update"
        if method == "PATCH":
            return "partial_update"
        if method == "DELETE":
            return "destroy"
        return None

    def has_permission(self, request, view) -> bool:
        if getattr(request, "union", None) is None:
            return False

        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = _user_roles(request)

        if ROLE_SYSTEM_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "pnu" in kwargs
            allowed = self.allowed_roles_per_action.get("retrieve" if is_detail else "list")

        if allowed is not None:
            return bool(roles & allowed)

        # Unknown action => deny by default
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class IsSystemAdmin(BasePermission):
    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        return bool(user and getattr(user, "is_authenticated", False) and getattr(user, "is_superuser", False))


# Specific permission classes for each module

class MemberPermission(UnionRolePermission):
    """Member registry: admins manage, members only reach their own profile endpoints."""
    allowed_roles_per_action = {
        "list": ADMIN_ROLES,
        "retrieve": ADMIN_ROLES,
        "partial_update": ADMIN_ROLES,
        "approve": ADMIN_ROLES,
        "reject": ADMIN_ROLES,
        "cancel_rejection": ADMIN_ROLES,
        "block": ADMIN_ROLES,
        "unblock": ADMIN_ROLES,
        "force_withdraw": ADMIN_ROLES,
        "conflicts": ADMIN_ROLES,
        "rows": ADMIN_ROLES,
        "set_primary_unit": ADMIN_ROLES,
    }


class InvitePermission(UnionRolePermission):
    allowed_roles_per_action = {
        "list": ADMIN_ROLES,
        "create": ADMIN_ROLES,
        "bulk": ADMIN_ROLES,
        "destroy": ADMIN_ROLES,
    }


class ParcelPermission(UnionRolePermission):
    """GIS parcel/building registry: members read maps, admins edit and merge."""
    allowed_roles_per_action = {
        "list": {ROLE_USER, ROLE_ADMIN},
        "retrieve": {ROLE_USER, ROLE_ADMIN},
        "partial_update": ADMIN_ROLES,
        "destroy": ADMIN_ROLES,
        "members": ADMIN_ROLES,
        "link_member": ADMIN_ROLES,
        "building_match": ADMIN_ROLES,
        "building_units": ADMIN_ROLES,
        "delete_building_unit": ADMIN_ROLES,
        "merge": ADMIN_ROLES,
        "merge_multiple": ADMIN_ROLES,
        "undo_merge": ADMIN_ROLES,
        "manual_add": ADMIN_ROLES,
        "resolve_pnu": ADMIN_ROLES,
        "linked_search": ADMIN_ROLES,
        "building_search": ADMIN_ROLES,
        "registration_map": ADMIN_ROLES,
    }


class ConsentPermission(UnionRolePermission):
    allowed_roles_per_action = {
        "list": {ROLE_USER, ROLE_ADMIN},
        "retrieve": {ROLE_USER, ROLE_ADMIN},
        "create": ADMIN_ROLES,
        "consents": ADMIN_ROLES,
        "set_consent": ADMIN_ROLES,
        "bulk_update": ADMIN_ROLES,
        "summary": {ROLE_USER, ROLE_ADMIN},
        "parcels": {ROLE_USER, ROLE_ADMIN},
        "map": {ROLE_USER, ROLE_ADMIN},
        "remind": ADMIN_ROLES,
        "registration_summary": ADMIN_ROLES,
        "registration_parcels": ADMIN_ROLES,
    }


class AuditPermission(UnionRolePermission):
    allowed_roles_per_action = {
        "list": ADMIN_ROLES,
        "retrieve": ADMIN_ROLES,
    }


class MessageLogPermission(UnionRolePermission):
    allowed_roles_per_action = {
        "list": ADMIN_ROLES,
    }
