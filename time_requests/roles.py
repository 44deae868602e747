"""Resolve the approval authority a user holds."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
from django.contrib.auth import get_user_model

from .models import DepartmentManager, Employee, RoleGrant

User = get_user_model()


@dataclass(frozen=True)
class RoleProfile:
    """Authority flags of one user, computed once per call."""

    user_id: Optional[int] = None
    is_superadmin: bool = False
    is_hrd_manager: bool = False
    is_department_manager: bool = False
    is_employee: bool = False
    managed_departments: Tuple[str, ...] = ()
    employee_id: Optional[int] = None

    @property
    def role_label(self) -> str:
        if self.is_superadmin:
            return "Superadmin"
        if self.is_hrd_manager:
            return "HRD Manager"
        if self.is_department_manager:
            return "Department Manager"
        if self.is_employee:
            return "Employee"
        return "User"

    @property
    def can_auto_approve(self) -> bool:
        return self.is_superadmin or self.is_hrd_manager

    def manages(self, department_name: Optional[str]) -> bool:
        return bool(department_name) and department_name in self.managed_departments


def _legacy_heuristics_enabled() -> bool:
    return getattr(settings, "TIME_REQUESTS_LEGACY_ROLE_HEURISTICS", False)


def _display_name(user) -> str:
    return (user.get_full_name() or user.get_username() or "").lower()


def _is_first_account(user) -> bool:
    return User.objects.order_by("pk").values_list("pk", flat=True).first() == user.pk


def resolve_roles(user) -> RoleProfile:
    """Build the authority profile of ``user``.

    Explicit ``RoleGrant`` rows (and Django's ``is_superuser`` flag) are the
    source of truth. The name/e-mail/first-account guesses carried over from
    legacy data only apply when ``TIME_REQUESTS_LEGACY_ROLE_HEURISTICS`` is on.
    Anonymous or missing users get an empty profile.
    """
    if user is None or not getattr(user, "is_authenticated", False) or user.pk is None:
        return RoleProfile()

    grants = set(RoleGrant.objects.filter(user=user).values_list("role", flat=True))
    legacy = _legacy_heuristics_enabled()

    is_superadmin = user.is_superuser or RoleGrant.Role.SUPERADMIN in grants
    if not is_superadmin and legacy:
        is_superadmin = _is_first_account(user) or "admin" in _display_name(user)

    is_hrd_manager = RoleGrant.Role.HRD_MANAGER in grants
    if not is_hrd_manager and legacy:
        is_hrd_manager = "hrd" in _display_name(user) or "hrd" in (user.email or "").lower()

    managed = tuple(
        DepartmentManager.objects.filter(manager=user)
        .order_by("department__name")
        .values_list("department__name", flat=True)
    )
    employee_id = Employee.objects.filter(user=user).values_list("pk", flat=True).first()

    return RoleProfile(
        user_id=user.pk,
        is_superadmin=is_superadmin,
        is_hrd_manager=is_hrd_manager,
        is_department_manager=bool(managed) or RoleGrant.Role.DEPARTMENT_MANAGER in grants,
        is_employee=employee_id is not None,
        managed_departments=managed,
        employee_id=employee_id,
    )
