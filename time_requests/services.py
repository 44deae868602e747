"""Operations the presentation layer calls to file and decide time requests.

Every mutating call runs in one database transaction. Batch calls give each
item its own savepoint: expected per-item failures (authorization,
conflicts, invalid input) roll back only that item and are reported, while
a storage failure rolls back the whole batch and surfaces as
``InfrastructureError``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from .exceptions import AuthorizationError, ConflictError, InfrastructureError
from .forms import FORCE_APPROVED, DecisionForm, LeaveBankAdjustmentForm
from .models import DepartmentManager, Employee, LeaveBank, TimeRequest
from .roles import RoleProfile, resolve_roles
from .workflow import ApprovalStateMachine, RequestKind, get_kind

logger = logging.getLogger(__name__)

KindArg = Union[str, RequestKind]


@dataclass
class RejectedFiling:
    employee_id: int
    reason: str


@dataclass
class CreationResult:
    created: List[TimeRequest] = field(default_factory=list)
    rejected: List[RejectedFiling] = field(default_factory=list)


@dataclass
class BulkResult:
    success_count: int = 0
    fail_count: int = 0
    errors: List[str] = field(default_factory=list)

    def record_failure(self, message: str) -> None:
        self.fail_count += 1
        self.errors.append(message)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success_count": self.success_count,
            "fail_count": self.fail_count,
            "errors": list(self.errors),
        }


def _require_actor(profile: RoleProfile) -> None:
    if profile.user_id is None:
        raise AuthorizationError("An authenticated user is required.")


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return " ".join(exc.messages)
    return str(exc)


def _clean_ids(values: Iterable[Any], name: str, limit: Optional[int] = None) -> List[int]:
    try:
        ids = [int(value) for value in values]
    except (TypeError, ValueError):
        raise ValidationError({name: "Every id must be an integer."}) from None
    if not ids:
        raise ValidationError({name: "Select at least one item."})
    if limit is not None and len(ids) > limit:
        raise ValidationError({name: f"Cannot process more than {limit} items at once."})
    return ids


def _max_bulk_items() -> int:
    return getattr(settings, "TIME_REQUESTS_MAX_BULK_ITEMS", 100)


def _get_employee(employee_id: Any) -> Employee:
    try:
        return Employee.objects.select_related("department").get(pk=employee_id)
    except (Employee.DoesNotExist, TypeError, ValueError):
        raise ValidationError({"employee_id": f"Unknown employee id {employee_id!r}."}) from None


def _clean_decision(kind: RequestKind, target_status: str, remarks: Optional[str]) -> Dict[str, Any]:
    form = DecisionForm(
        data={"status": target_status, "remarks": remarks or ""},
        statuses=kind.statuses,
    )
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    return form.cleaned_data


def _lock_request(kind: RequestKind, request_id: int) -> TimeRequest:
    return kind.model.objects.select_for_update().get(pk=request_id)


# Filing -------------------------------------------------------------------


def _file_for_employee(machine: ApprovalStateMachine, form, employee: Employee, profile: RoleProfile) -> TimeRequest:
    form.check_employee(employee)
    request_obj = form.build(
        employee,
        created_by_id=profile.user_id,
        dept_manager_id=DepartmentManager.manager_id_for(employee.department),
    )
    settle = machine.stamp_auto_approval(request_obj, profile)
    if not settle:
        machine.stamp_manager_auto_approval(request_obj, profile, form.auto_approval_measure())
    request_obj.save()
    if settle:
        request_obj.on_final_approval(profile.user_id)
        request_obj.save()
    return request_obj


def create_request(kind: KindArg, payload: Dict[str, Any], employee_ids: Iterable[Any], actor) -> CreationResult:
    """File one request per employee from a shared payload.

    Employees that fail a per-employee precondition (overlapping leave,
    inactive department, insufficient balance) are listed in ``rejected``
    while the others are still created.
    """
    kind = get_kind(kind)
    profile = resolve_roles(actor)
    _require_actor(profile)

    form = kind.form_class(data=payload)
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())

    ids = list(dict.fromkeys(_clean_ids(employee_ids, "employee_ids")))
    employees = Employee.objects.select_related("department").in_bulk(ids)
    missing = [employee_id for employee_id in ids if employee_id not in employees]
    if missing:
        raise ValidationError({"employee_ids": f"Unknown employee id(s): {', '.join(map(str, missing))}."})

    machine = ApprovalStateMachine(kind)
    result = CreationResult()
    try:
        with transaction.atomic():
            for employee_id in ids:
                try:
                    with transaction.atomic():
                        request_obj = _file_for_employee(machine, form, employees[employee_id], profile)
                except ConflictError as exc:
                    result.rejected.append(RejectedFiling(employee_id, str(exc)))
                    continue
                result.created.append(request_obj)
    except DatabaseError as exc:
        logger.exception("Filing %s requests for %d employee(s) rolled back", kind.code, len(ids))
        raise InfrastructureError(f"Could not file {kind.label.lower()} requests; nothing was saved.") from exc

    logger.info(
        "Filed %d %s request(s) by user %s (%d rejected, %d auto-approved)",
        len(result.created),
        kind.code,
        profile.user_id,
        len(result.rejected),
        sum(1 for request_obj in result.created if not request_obj.is_pending),
    )
    return result


# Decisions ------------------------------------------------------------------


def transition(kind: KindArg, request_id: Any, target_status: str, remarks: Optional[str], actor) -> TimeRequest:
    """Move one request to ``target_status`` on behalf of ``actor``.

    ``force_approved`` routes through the superadmin override. Denials raise
    ``AuthorizationError`` and leave the stored row untouched.
    """
    kind = get_kind(kind)
    decision = _clean_decision(kind, target_status, remarks)
    profile = resolve_roles(actor)
    _require_actor(profile)
    machine = ApprovalStateMachine(kind)
    try:
        with transaction.atomic():
            try:
                request_obj = _lock_request(kind, request_id)
            except (ObjectDoesNotExist, TypeError, ValueError):
                raise ValidationError(f"{kind.label} #{request_id} does not exist.") from None
            machine.apply(request_obj, decision["status"], profile, decision["remarks"])
    except DatabaseError as exc:
        logger.exception("Updating %s #%s rolled back", kind.code, request_id)
        raise InfrastructureError(f"Could not update {kind.label.lower()} #{request_id}.") from exc
    return request_obj


def _run_batch(
    kind: RequestKind,
    request_ids: List[int],
    target: str,
    remarks: Optional[str],
    profile: RoleProfile,
    action: str,
    allow_overdraw: bool = False,
) -> BulkResult:
    machine = ApprovalStateMachine(kind)
    result = BulkResult()
    try:
        with transaction.atomic():
            for request_id in request_ids:
                try:
                    with transaction.atomic():
                        request_obj = _lock_request(kind, request_id)
                        machine.apply(
                            request_obj,
                            target,
                            profile,
                            remarks,
                            bulk=True,
                            allow_overdraw=allow_overdraw,
                        )
                except ObjectDoesNotExist:
                    result.record_failure(f"{kind.label} #{request_id}: not found.")
                except (AuthorizationError, ConflictError, ValidationError) as exc:
                    result.record_failure(f"{kind.label} #{request_id}: {_describe(exc)}")
                else:
                    result.success_count += 1
    except DatabaseError as exc:
        logger.exception("%s of %d %s request(s) rolled back", action, len(request_ids), kind.code)
        raise InfrastructureError(f"{action} failed and was rolled back; no request was changed.") from exc

    logger.info(
        "%s of %s requests by user %s: %d succeeded, %d failed",
        action,
        kind.code,
        profile.user_id,
        result.success_count,
        result.fail_count,
    )
    return result


def bulk_transition(
    kind: KindArg,
    request_ids: Iterable[Any],
    target_status: str,
    remarks: Optional[str],
    actor,
) -> BulkResult:
    """Apply one target status to many requests, each judged on its own stage."""
    kind = get_kind(kind)
    decision = _clean_decision(kind, target_status, remarks)
    ids = _clean_ids(request_ids, "request_ids", _max_bulk_items())
    profile = resolve_roles(actor)
    _require_actor(profile)
    return _run_batch(kind, ids, decision["status"], decision["remarks"], profile, "Bulk update")


def force_approve(
    kind: KindArg,
    request_ids: Iterable[Any],
    remarks: Optional[str],
    actor,
    allow_overdraw: bool = False,
) -> BulkResult:
    """Superadmin override approving requests regardless of their stage.

    ``allow_overdraw`` lets a leave debit exceed the remaining balance.
    """
    kind = get_kind(kind)
    profile = resolve_roles(actor)
    if not profile.is_superadmin:
        raise AuthorizationError("Only superadmins can force approve requests.")
    decision = _clean_decision(kind, FORCE_APPROVED, remarks)
    ids = _clean_ids(request_ids, "request_ids", _max_bulk_items())
    logger.info("Force approval of %d %s request(s) started by user %s", len(ids), kind.code, profile.user_id)
    return _run_batch(
        kind,
        ids,
        FORCE_APPROVED,
        decision["remarks"],
        profile,
        "Force approval",
        allow_overdraw=allow_overdraw,
    )


def delete_request(kind: KindArg, request_id: Any, actor) -> None:
    """Delete a request that is still pending."""
    kind = get_kind(kind)
    profile = resolve_roles(actor)
    _require_actor(profile)
    machine = ApprovalStateMachine(kind)
    with transaction.atomic():
        try:
            request_obj = _lock_request(kind, request_id)
        except (ObjectDoesNotExist, TypeError, ValueError):
            raise ValidationError(f"{kind.label} #{request_id} does not exist.") from None
        if not request_obj.is_pending:
            raise ConflictError(f"Only pending requests can be deleted; this one is {request_obj.status}.")
        allowed = (
            profile.is_superadmin
            or profile.is_hrd_manager
            or request_obj.created_by_id == profile.user_id
            or (profile.employee_id is not None and request_obj.employee_id == profile.employee_id)
            or machine.is_department_approver(request_obj, profile)
        )
        if not allowed:
            raise AuthorizationError(f"Not authorized to delete {kind.label.lower()} #{request_id}.")
        request_obj.delete()
    logger.info("Deleted %s #%s by user %s", kind.code, request_id, profile.user_id)


def visible_requests(kind: KindArg, actor) -> QuerySet:
    """Requests ``actor`` may list, newest first."""
    kind = get_kind(kind)
    profile = resolve_roles(actor)
    queryset = kind.model.objects.select_related("employee", "employee__department", "created_by")
    if profile.is_superadmin or profile.is_hrd_manager:
        return queryset
    if profile.is_department_manager:
        return queryset.filter(
            Q(created_by_id=profile.user_id)
            | Q(dept_manager_id=profile.user_id)
            | Q(employee__department__name__in=profile.managed_departments)
        )
    if profile.employee_id is not None:
        return queryset.filter(employee_id=profile.employee_id)
    if profile.user_id is not None:
        return queryset.filter(created_by_id=profile.user_id)
    return queryset.none()


# Leave bank -----------------------------------------------------------------


def get_leave_bank(employee_id: Any, year: Optional[int] = None) -> Dict[str, Dict[str, Decimal]]:
    """Sick and vacation balances of one employee for ``year``."""
    employee = _get_employee(employee_id)
    year = year or timezone.localdate().year
    with transaction.atomic():
        banks = {
            leave_type: LeaveBank.find_or_create(employee, leave_type, year)
            for leave_type in LeaveBank.LeaveType.values
        }
    return {
        leave_type: {
            "total": bank.total_days,
            "used": bank.used_days,
            "remaining": bank.remaining_days,
        }
        for leave_type, bank in banks.items()
    }


def add_leave_bank_days(
    employee_id: Any,
    leave_type: str,
    days: Any,
    reason: Optional[str],
    actor,
    year: Optional[int] = None,
) -> LeaveBank:
    """Credit days to an employee's leave bank (HRD managers and superadmins)."""
    profile = resolve_roles(actor)
    if not (profile.is_hrd_manager or profile.is_superadmin):
        raise AuthorizationError("Only HRD managers and superadmins can add leave bank days.")
    form = LeaveBankAdjustmentForm(
        data={
            "leave_type": leave_type,
            "days": days,
            "year": year or timezone.localdate().year,
            "reason": reason or "",
        }
    )
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    data = form.cleaned_data
    employee = _get_employee(employee_id)

    note = f"{timezone.localtime():%Y-%m-%d %H:%M} - Added {data['days']} days by {actor.get_username()}"
    if data["reason"]:
        note = f"{note}: {data['reason']}"
    try:
        with transaction.atomic():
            bank = LeaveBank.find_or_create(
                employee,
                data["leave_type"],
                data["year"],
                created_by_id=profile.user_id,
                lock=True,
            )
            bank.credit(data["days"], note=note)
    except DatabaseError as exc:
        logger.exception("Crediting leave bank of employee %s rolled back", employee.pk)
        raise InfrastructureError("Could not update the leave bank.") from exc
    return bank
