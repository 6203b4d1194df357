"""
Declarative role x capability policy table.

Each capability is ``"<module>.<action>"`` and maps to the set of roles
allowed to exercise it. Resolution is a plain membership check, so the table
below is the single place where access rules live.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional

from .roles import UserRole

ADMIN = UserRole.ADMIN.value
FINANCIAL_MANAGER = UserRole.FINANCIAL_MANAGER.value
APPROVER = UserRole.APPROVER.value
RELEASER = UserRole.RELEASER.value
AUDITOR = UserRole.AUDITOR.value
USER = UserRole.USER.value

ADMIN_ROLES = frozenset({ADMIN})
MANAGER_ROLES = frozenset({ADMIN, FINANCIAL_MANAGER})
APPROVER_ROLES = frozenset({ADMIN, FINANCIAL_MANAGER, APPROVER})
PAYER_ROLES = frozenset({ADMIN, FINANCIAL_MANAGER, RELEASER})
CREATOR_ROLES = frozenset({ADMIN, FINANCIAL_MANAGER, APPROVER, RELEASER, USER})
VIEWER_ROLES = frozenset({ADMIN, FINANCIAL_MANAGER, APPROVER, RELEASER, AUDITOR})
AUDIT_ROLES = frozenset({ADMIN, AUDITOR})
ALL_ROLES = CREATOR_ROLES | VIEWER_ROLES

ACTIONS = ("view", "create", "edit", "delete", "approve", "pay")

POLICY: Dict[str, Dict[str, FrozenSet[str]]] = {
    "payables": {
        "view": ALL_ROLES,
        "create": CREATOR_ROLES,
        "edit": CREATOR_ROLES,
        "delete": MANAGER_ROLES,
        "approve": APPROVER_ROLES,
        "pay": PAYER_ROLES,
    },
    "receivables": {
        "view": ALL_ROLES,
        "create": CREATOR_ROLES,
        "edit": CREATOR_ROLES,
        "delete": MANAGER_ROLES,
        "approve": APPROVER_ROLES,
        "pay": PAYER_ROLES,
    },
    "recurrences": {
        "view": VIEWER_ROLES,
        "create": MANAGER_ROLES,
        "edit": MANAGER_ROLES,
        "delete": MANAGER_ROLES,
    },
    "batches": {
        "view": VIEWER_ROLES,
        "create": MANAGER_ROLES,
        "edit": MANAGER_ROLES,
        "delete": MANAGER_ROLES,
        "approve": APPROVER_ROLES,
        "pay": PAYER_ROLES,
    },
    "cost_centers": {
        "view": ALL_ROLES,
        "create": MANAGER_ROLES,
        "edit": MANAGER_ROLES,
        "delete": MANAGER_ROLES,
    },
    "entities": {
        "view": ALL_ROLES,
        "create": MANAGER_ROLES,
        "edit": MANAGER_ROLES,
        "delete": MANAGER_ROLES,
    },
    "reports": {
        "view": VIEWER_ROLES,
    },
    "users": {
        "view": ADMIN_ROLES,
        "create": ADMIN_ROLES,
        "edit": ADMIN_ROLES,
        "delete": ADMIN_ROLES,
        "approve": ADMIN_ROLES,
    },
    "companies": {
        "view": ALL_ROLES,
        "create": ADMIN_ROLES,
        "edit": ADMIN_ROLES,
        "delete": ADMIN_ROLES,
    },
    "audit_logs": {
        "view": AUDIT_ROLES,
    },
    "settings": {
        "view": MANAGER_ROLES,
    },
}

# Granted to every authenticated user, even without a role in the company.
ALWAYS_GRANTED = frozenset({"notifications.view", "feedback.create"})


def all_capabilities() -> FrozenSet[str]:
    codes = {
        f"{module}.{action}"
        for module, actions in POLICY.items()
        for action in actions
    }
    return frozenset(codes | ALWAYS_GRANTED)


def allowed_roles(capability: str) -> FrozenSet[str]:
    """Roles that hold ``capability``. Unknown capabilities are held by nobody."""
    module, _, action = capability.partition(".")
    return POLICY.get(module, {}).get(action, frozenset())


@dataclass(frozen=True)
class PermissionSet:
    role: Optional[str]
    capabilities: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    def can(self, capability: str) -> bool:
        return capability in self.capabilities

    def as_dict(self) -> Dict[str, object]:
        modules: Dict[str, Dict[str, bool]] = {}
        for module, actions in POLICY.items():
            modules[module] = {action: f"{module}.{action}" in self.capabilities for action in actions}
        return {
            "role": self.role,
            "is_admin": self.is_admin,
            "modules": modules,
            "always": sorted(ALWAYS_GRANTED),
        }


def resolve_effective_role(
    global_role: Optional[str],
    company_roles: Optional[Mapping[object, str]],
    company_id: Optional[object],
) -> Optional[str]:
    """
    Effective role of a user inside ``company_id``.

    Global admins are admins everywhere. Otherwise the per-company role wins;
    a user without a role in the selected company has no role there. When no
    company is selected the legacy global role applies.
    """
    if global_role == ADMIN:
        return ADMIN
    if company_id in (None, ""):
        return global_role or None
    roles_by_company = {str(key): value for key, value in (company_roles or {}).items()}
    return roles_by_company.get(str(company_id)) or None


def resolve_permissions(
    global_role: Optional[str],
    company_roles: Optional[Mapping[object, str]],
    company_id: Optional[object],
) -> PermissionSet:
    role = resolve_effective_role(global_role, company_roles, company_id)
    granted = set(ALWAYS_GRANTED)
    if role:
        for module, actions in POLICY.items():
            for action, roles in actions.items():
                if role in roles:
                    granted.add(f"{module}.{action}")
    return PermissionSet(role=role, capabilities=frozenset(granted))
