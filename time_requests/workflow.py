"""Approval state machine shared by every request kind.

Three-stage kinds (overtime, leave) climb ``pending -> manager_approved ->
approved``: the department manager acts on ``pending`` and HRD acts on
``manager_approved``. Two-stage kinds go straight from ``pending`` to
``approved`` or ``rejected`` in one decision. ``rejected`` and
``approved`` are terminal; only a superadmin force-approval may touch a
request once it is settled.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, Optional, Tuple, Type, Union

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from .exceptions import AuthorizationError, ConflictError
from .forms import (
    FORCE_APPROVED,
    ChangeOffScheduleForm,
    LeaveRequestForm,
    OffsetForm,
    OvertimeForm,
    RequestPayloadForm,
    TimeScheduleForm,
)
from .models import (
    ChangeOffSchedule,
    LeaveRequest,
    Offset,
    Overtime,
    RequestStatus,
    TimeRequest,
    TimeSchedule,
)
from .roles import RoleProfile

logger = logging.getLogger(__name__)

OVERRIDE_PREFIX = "Administrative override: "
DEFAULT_OVERRIDE_REMARKS = "Force approved by admin"

DEPARTMENT_FIELDS = ("dept_approved_by", "dept_approved_at", "dept_remarks")
HRD_FIELDS = ("hrd_approved_by", "hrd_approved_at", "hrd_remarks")
SINGLE_FIELDS = ("approved_by", "approved_at", "remarks")


@dataclass(frozen=True)
class RequestKind:
    """Describes one request type to the shared state machine."""

    code: str
    label: str
    model: Type[TimeRequest]
    form_class: Type[RequestPayloadForm]
    stages: int
    auto_approval_setting: Optional[str] = None
    auto_approval_default: Decimal = Decimal(0)

    @property
    def has_manager_stage(self) -> bool:
        return self.stages == 3

    @property
    def manager_auto_approval(self) -> bool:
        return self.auto_approval_setting is not None

    def auto_approval_threshold(self) -> Decimal:
        value = getattr(settings, self.auto_approval_setting, self.auto_approval_default)
        return Decimal(str(value))

    @property
    def statuses(self) -> Tuple[str, ...]:
        if self.has_manager_stage:
            return tuple(RequestStatus.values) + (FORCE_APPROVED,)
        return (
            RequestStatus.PENDING,
            RequestStatus.APPROVED,
            RequestStatus.REJECTED,
            FORCE_APPROVED,
        )


REQUEST_KINDS: Dict[str, RequestKind] = {
    kind.code: kind
    for kind in (
        RequestKind(
            code="overtime",
            label="Overtime",
            model=Overtime,
            form_class=OvertimeForm,
            stages=3,
            auto_approval_setting="TIME_REQUESTS_OVERTIME_AUTO_APPROVAL_MIN_HOURS",
            auto_approval_default=Decimal(4),
        ),
        RequestKind(
            code="slvl",
            label="Leave request",
            model=LeaveRequest,
            form_class=LeaveRequestForm,
            stages=3,
            auto_approval_setting="TIME_REQUESTS_LEAVE_AUTO_APPROVAL_MIN_DAYS",
            auto_approval_default=Decimal("0.5"),
        ),
        RequestKind(
            code="offset",
            label="Offset",
            model=Offset,
            form_class=OffsetForm,
            stages=2,
        ),
        RequestKind(
            code="time_schedule",
            label="Schedule change",
            model=TimeSchedule,
            form_class=TimeScheduleForm,
            stages=2,
        ),
        RequestKind(
            code="change_off",
            label="Change of day-off",
            model=ChangeOffSchedule,
            form_class=ChangeOffScheduleForm,
            stages=2,
        ),
    )
}


def get_kind(kind: Union[str, RequestKind]) -> RequestKind:
    if isinstance(kind, RequestKind):
        return kind
    try:
        return REQUEST_KINDS[kind]
    except KeyError:
        raise ValidationError(f"Unknown request kind: {kind!r}.") from None


THREE_STAGE_EDGES: Dict[str, FrozenSet[str]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.MANAGER_APPROVED, RequestStatus.REJECTED}),
    RequestStatus.MANAGER_APPROVED: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
}

TWO_STAGE_EDGES: Dict[str, FrozenSet[str]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
}


class ApprovalStateMachine:
    """Authorizes and applies status changes for one request kind."""

    def __init__(self, kind: Union[str, RequestKind]) -> None:
        self.kind = get_kind(kind)
        self.edges = THREE_STAGE_EDGES if self.kind.has_manager_stage else TWO_STAGE_EDGES

    # Authority -----------------------------------------------------------

    def is_department_approver(self, request_obj: TimeRequest, profile: RoleProfile) -> bool:
        if profile.is_superadmin:
            return True
        if profile.user_id is not None and request_obj.dept_manager_id == profile.user_id:
            return True
        department = request_obj.employee.department
        return department is not None and profile.manages(department.name)

    @staticmethod
    def is_hrd_approver(profile: RoleProfile) -> bool:
        return profile.is_hrd_manager or profile.is_superadmin

    def can_act(self, request_obj: TimeRequest, status: str, profile: RoleProfile) -> bool:
        """Whether ``profile`` may act on a request sitting at ``status``."""
        if self.kind.has_manager_stage:
            if status == RequestStatus.PENDING:
                return self.is_department_approver(request_obj, profile)
            if status == RequestStatus.MANAGER_APPROVED:
                return self.is_hrd_approver(profile)
            return False
        if status == RequestStatus.PENDING:
            return self.is_hrd_approver(profile) or self.is_department_approver(request_obj, profile)
        return False

    def check(self, request_obj: TimeRequest, target: str, profile: RoleProfile) -> None:
        """Raise unless moving ``request_obj`` to ``target`` is permitted."""
        current = request_obj.status
        if target == FORCE_APPROVED:
            if not profile.is_superadmin:
                raise AuthorizationError("Only superadmins can force approve requests.")
            if current == RequestStatus.APPROVED:
                raise ConflictError("already approved")
            return

        if target not in self.kind.statuses:
            raise ValidationError(f"{target!r} is not a valid status for {self.kind.label.lower()}.")
        if request_obj.is_terminal:
            raise AuthorizationError(f"already {current}; settled requests cannot be changed.")
        if target != current and target not in self.edges.get(current, frozenset()):
            raise AuthorizationError(f"A {current} request cannot be moved to {target}.")
        if not self.can_act(request_obj, current, profile):
            raise AuthorizationError(f"Not authorized to update this {current} request.")

    # Mutation ------------------------------------------------------------

    def stage_fields(self, status: str) -> Tuple[str, str, str]:
        if not self.kind.has_manager_stage:
            return SINGLE_FIELDS
        if status == RequestStatus.PENDING:
            return DEPARTMENT_FIELDS
        return HRD_FIELDS

    @staticmethod
    def _stamp(request_obj: TimeRequest, fields: Tuple[str, str, str], user_id: int, when, remarks: str) -> None:
        by_field, at_field, remarks_field = fields
        setattr(request_obj, f"{by_field}_id", user_id)
        setattr(request_obj, at_field, when)
        setattr(request_obj, remarks_field, remarks)

    def apply(
        self,
        request_obj: TimeRequest,
        target: str,
        profile: RoleProfile,
        remarks: Optional[str] = None,
        bulk: bool = False,
        allow_overdraw: bool = False,
    ) -> TimeRequest:
        """Check and apply a status change, then persist ``request_obj``."""
        remarks = (remarks or "").strip() or None
        try:
            self.check(request_obj, target, profile)
        except AuthorizationError:
            logger.warning(
                "Denied %s #%s change from %s to %s for user %s",
                self.kind.code,
                request_obj.pk,
                request_obj.status,
                target,
                profile.user_id,
            )
            raise
        if target == RequestStatus.REJECTED and remarks is None:
            raise ValidationError("Please provide remarks when rejecting a request.")

        if target == FORCE_APPROVED:
            return self.force(request_obj, profile, remarks, allow_overdraw=allow_overdraw)

        current = request_obj.status
        fields = self.stage_fields(current)
        if target == current:
            if remarks is not None:
                setattr(request_obj, fields[2], remarks)
                request_obj.save(update_fields=[fields[2], "updated_at"])
            return request_obj

        if remarks is None:
            remarks = f"{'Bulk' if bulk else 'Administrative'} action by {profile.role_label}"
        self._stamp(request_obj, fields, profile.user_id, timezone.now(), remarks)
        request_obj.status = target
        if target == RequestStatus.APPROVED:
            request_obj.on_final_approval(profile.user_id, allow_overdraw=allow_overdraw)
        request_obj.save()
        logger.info(
            "%s #%s moved from %s to %s by user %s",
            self.kind.label,
            request_obj.pk,
            current,
            target,
            profile.user_id,
        )
        return request_obj

    def force(
        self,
        request_obj: TimeRequest,
        profile: RoleProfile,
        remarks: Optional[str] = None,
        allow_overdraw: bool = False,
    ) -> TimeRequest:
        """Collapse every remaining stage into an immediate approval.

        Department-level fields that a real approver already filled are kept;
        only the unset ones are back-filled. Terminal fields are always
        overwritten.
        """
        note = OVERRIDE_PREFIX + (remarks or DEFAULT_OVERRIDE_REMARKS)
        now = timezone.now()
        previous = request_obj.status
        if self.kind.has_manager_stage:
            if request_obj.dept_approved_by_id is None:
                request_obj.dept_approved_by_id = profile.user_id
            if request_obj.dept_approved_at is None:
                request_obj.dept_approved_at = now
            if request_obj.dept_remarks is None:
                request_obj.dept_remarks = note
            self._stamp(request_obj, HRD_FIELDS, profile.user_id, now, note)
        else:
            self._stamp(request_obj, SINGLE_FIELDS, profile.user_id, now, note)
        request_obj.status = RequestStatus.APPROVED
        request_obj.on_final_approval(profile.user_id, allow_overdraw=allow_overdraw)
        request_obj.save()
        logger.info(
            "Force approved %s #%s (was %s) by user %s",
            self.kind.code,
            request_obj.pk,
            previous,
            profile.user_id,
        )
        return request_obj

    def stamp_auto_approval(self, request_obj: TimeRequest, profile: RoleProfile) -> bool:
        """Pre-set the status of a new request from the filer's role.

        Returns True when the request lands approved and still needs its
        final-approval hook run once it has a primary key.
        """
        notice = f"Auto-approved: Filed by {profile.role_label}"
        now = timezone.now()
        if profile.can_auto_approve:
            if self.kind.has_manager_stage:
                self._stamp(request_obj, DEPARTMENT_FIELDS, profile.user_id, now, notice)
                self._stamp(request_obj, HRD_FIELDS, profile.user_id, now, notice)
            else:
                self._stamp(request_obj, SINGLE_FIELDS, profile.user_id, now, notice)
            request_obj.status = RequestStatus.APPROVED
            return True
        request_obj.status = RequestStatus.PENDING
        return False

    def stamp_manager_auto_approval(self, request_obj: TimeRequest, profile: RoleProfile, measure: Optional[Decimal]) -> bool:
        """Land a request filed by the employee's own department manager at ``manager_approved``."""
        if not self.kind.manager_auto_approval or not profile.is_department_manager:
            return False
        department = request_obj.employee.department
        if department is None or not profile.manages(department.name):
            return False
        if measure is None or measure < self.kind.auto_approval_threshold():
            return False
        self._stamp(
            request_obj,
            DEPARTMENT_FIELDS,
            profile.user_id,
            timezone.now(),
            f"Auto-approved: Filed by {profile.role_label}",
        )
        request_obj.status = RequestStatus.MANAGER_APPROVED
        return True
