"""Role to capability mapping.

Every capability-gated operation checks the policy before it touches a
store, so a denied call never leaves a partial mutation behind.
"""
from pydantic import BaseModel, ConfigDict
from shared.enums import UserRole
from shared.validation import PermissionDenied


class RolePermissions(BaseModel):
    can_create_templates: bool = False
    can_edit_templates: bool = False
    can_delete_templates: bool = False
    can_create_inspections: bool = False
    can_assign_inspections: bool = False
    can_view_all_inspections: bool = False
    can_view_all_assignments: bool = False
    can_view_own_inspections: bool = False
    can_edit_own_inspections: bool = False
    can_manage_users: bool = False

    model_config = ConfigDict(frozen=True)


NO_PERMISSIONS = RolePermissions()

ROLE_PERMISSIONS = {
    UserRole.ADMIN: RolePermissions(
        can_create_templates=True,
        can_edit_templates=True,
        can_delete_templates=True,
        can_create_inspections=True,
        can_assign_inspections=True,
        can_view_all_inspections=True,
        can_view_all_assignments=True,
        can_view_own_inspections=True,
        can_edit_own_inspections=True,
        can_manage_users=True,
    ),
    UserRole.MANAGER: RolePermissions(
        can_create_templates=True,
        can_edit_templates=True,
        can_delete_templates=False,
        can_create_inspections=True,
        can_assign_inspections=True,
        can_view_all_inspections=True,
        can_view_all_assignments=False,
        can_view_own_inspections=True,
        can_edit_own_inspections=True,
        can_manage_users=True,
    ),
    UserRole.INSPECTOR: RolePermissions(
        can_view_own_inspections=True,
        can_edit_own_inspections=True,
    ),
}

ROLE_DISPLAY_NAMES = {
    UserRole.ADMIN: 'Administrator',
    UserRole.MANAGER: 'Manager/Responsible',
    UserRole.INSPECTOR: 'Inspector',
}

ASSIGNABLE_ROLES = {
    UserRole.ADMIN: [UserRole.ADMIN, UserRole.MANAGER, UserRole.INSPECTOR],
    UserRole.MANAGER: [UserRole.INSPECTOR],
    UserRole.INSPECTOR: [],
}


def _role(value):
    if value is None:
        return None
    try:
        return UserRole(value)
    except ValueError:
        return None


class RolePolicy:
    """Pure mapping from a caller's role to its capabilities."""

    def __init__(self, managers_can_manage_users=True):
        self.managers_can_manage_users = managers_can_manage_users

    def permissions(self, role):
        role = _role(role)
        if role is None:
            return NO_PERMISSIONS
        permissions = ROLE_PERMISSIONS[role]
        if role == UserRole.MANAGER and not self.managers_can_manage_users:
            permissions = permissions.model_copy(update={'can_manage_users': False})
        return permissions

    def has_permission(self, caller, capability):
        if caller is None:
            return False
        return bool(getattr(self.permissions(caller.role), capability))

    def require(self, caller, capability):
        """Raise PermissionDenied unless the caller holds ``capability``."""
        if not hasattr(NO_PERMISSIONS, capability):
            raise ValueError(f"Unknown capability: {capability}")
        if not self.has_permission(caller, capability):
            role = getattr(caller, 'role', None) or 'anonymous'
            raise PermissionDenied(f"Role '{role}' is not allowed to perform this action ({capability})")

    def assignable_roles(self, role):
        """Roles a caller with ``role`` may assign work to or grant."""
        role = _role(role)
        if role is None:
            return []
        return list(ASSIGNABLE_ROLES[role])


def role_display_name(role):
    role = _role(role)
    return ROLE_DISPLAY_NAMES.get(role, 'Unknown')


default_policy = RolePolicy()
