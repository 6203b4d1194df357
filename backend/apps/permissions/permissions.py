"""
Core permission checking logic.
"""
from __future__ import annotations

from typing import Optional

from .matrix import PermissionSet, resolve_permissions


def get_permission_set(user, company=None) -> PermissionSet:
    """
    Resolve the capability set of ``user`` inside ``company``.

    Anonymous users get an empty set.
    """
    if not user or not user.is_authenticated:
        return PermissionSet(role=None)
    company_id = getattr(company, "pk", company)
    return resolve_permissions(user.global_role, user.company_roles, company_id)


def has_permission(user, permission_code: str, company=None) -> bool:
    """
    Checks if a user holds a capability within the context of a given company.

    This is the central function for all permission checks across the system.

    Args:
        user: The user instance to check.
        permission_code: The capability code (e.g., 'payables.approve').
        company: The company context for the check, or None.
    """
    return get_permission_set(user, company).can(permission_code)


def effective_role(user, company=None) -> Optional[str]:
    return get_permission_set(user, company).role
