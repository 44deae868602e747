"""Database models for the time-request approval workflow."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import models
from django.db.models import F

from .exceptions import ConflictError

User = get_user_model()

logger = logging.getLogger(__name__)


def default_leave_days() -> Decimal:
    return Decimal(str(getattr(settings, "TIME_REQUESTS_DEFAULT_LEAVE_DAYS", 15)))


class Department(models.Model):
    """A company department used to route first-level approvals."""

    name = models.CharField(max_length=100, unique=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class DepartmentManager(models.Model):
    """Assigns the user responsible for first-level approval in a department."""

    department = models.OneToOneField(
        Department,
        on_delete=models.CASCADE,
        related_name="manager_assignment",
    )
    manager = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="managed_departments",
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["department__name"]

    def __str__(self) -> str:
        return f"{self.department.name} · {self.manager.get_username()}"

    @classmethod
    def manager_id_for(cls, department: Optional[Department]) -> Optional[int]:
        if department is None:
            return None
        return cls.objects.filter(department=department).values_list("manager_id", flat=True).first()


class Employee(models.Model):
    """An employee whose time is subject to requests and approvals."""

    user = models.OneToOneField(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="employee",
    )
    idno = models.CharField(max_length=30, unique=True)
    first_name = models.CharField(max_length=120)
    last_name = models.CharField(max_length=120)
    department = models.ForeignKey(
        Department,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="employees",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self) -> str:
        return f"{self.idno} {self.full_name}"

    @property
    def full_name(self) -> str:
        return f"{self.last_name}, {self.first_name}"


class RoleGrant(models.Model):
    """Explicit grant of an approval role to a user."""

    class Role(models.TextChoices):
        SUPERADMIN = "superadmin", "Superadmin"
        HRD_MANAGER = "hrd_manager", "HRD Manager"
        DEPARTMENT_MANAGER = "department_manager", "Department Manager"

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="role_grants",
    )
    role = models.CharField(max_length=30, choices=Role.choices)
    granted_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    granted_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("user", "role")

    def __str__(self) -> str:
        return f"{self.user.get_username()} · {self.get_role_display()}"


class RequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    MANAGER_APPROVED = "manager_approved", "Dept. Approved"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


TERMINAL_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED})


class TimeRequestQuerySet(models.QuerySet):
    def pending(self) -> "TimeRequestQuerySet":
        return self.filter(status=RequestStatus.PENDING)

    def for_employee(self, employee: Employee) -> "TimeRequestQuerySet":
        return self.filter(employee=employee)


class TimeRequest(models.Model):
    """Fields shared by every kind of request that goes through approval."""

    Status = RequestStatus

    employee = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name="%(class)s_requests",
    )
    reason = models.CharField(max_length=500)
    status = models.CharField(
        max_length=20,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
        db_index=True,
    )
    dept_manager = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_%(class)s_requests",
    )
    created_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="filed_%(class)s_requests",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TimeRequestQuerySet.as_manager()

    class Meta:
        abstract = True
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self._meta.verbose_name} #{self.pk} · {self.employee.idno} ({self.status})"

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def on_final_approval(self, actor_id: Optional[int] = None, allow_overdraw: bool = False) -> None:
        """Hook run just before a request is stored as approved."""


class TwoLevelApprovalRequest(TimeRequest):
    """Request approved first by a department manager, then by HRD."""

    dept_approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="dept_approved_%(class)s_requests",
    )
    dept_approved_at = models.DateTimeField(null=True, blank=True)
    dept_remarks = models.TextField(null=True, blank=True)
    hrd_approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="hrd_approved_%(class)s_requests",
    )
    hrd_approved_at = models.DateTimeField(null=True, blank=True)
    hrd_remarks = models.TextField(null=True, blank=True)

    class Meta(TimeRequest.Meta):
        abstract = True


class SingleApprovalRequest(TimeRequest):
    """Request settled by a single approve/reject decision."""

    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="approved_%(class)s_requests",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    remarks = models.TextField(null=True, blank=True)

    class Meta(TimeRequest.Meta):
        abstract = True


class Overtime(TwoLevelApprovalRequest):
    date = models.DateField()
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    total_hours = models.DecimalField(max_digits=6, decimal_places=2)
    rate_multiplier = models.DecimalField(max_digits=4, decimal_places=2)

    class Meta(TwoLevelApprovalRequest.Meta):
        verbose_name = "overtime"
        verbose_name_plural = "overtimes"


class LeaveBank(models.Model):
    """Annual sick/vacation allotment of one employee."""

    class LeaveType(models.TextChoices):
        SICK = "sick", "Sick Leave"
        VACATION = "vacation", "Vacation Leave"

    employee = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name="leave_banks",
    )
    leave_type = models.CharField(max_length=10, choices=LeaveType.choices)
    year = models.PositiveIntegerField()
    total_days = models.DecimalField(max_digits=6, decimal_places=1, default=0)
    used_days = models.DecimalField(max_digits=6, decimal_places=1, default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-year", "leave_type"]
        unique_together = ("employee", "leave_type", "year")
        verbose_name = "leave bank"
        verbose_name_plural = "leave banks"

    def __str__(self) -> str:
        return f"{self.employee.idno} · {self.get_leave_type_display()} {self.year} ({self.remaining_days} left)"

    @property
    def remaining_days(self) -> Decimal:
        return self.total_days - self.used_days

    @classmethod
    def find_or_create(
        cls,
        employee: Employee,
        leave_type: str,
        year: int,
        created_by_id: Optional[int] = None,
        lock: bool = False,
    ) -> "LeaveBank":
        """Fetch the bank row, creating it with the default allotment on first access.

        With ``lock`` the row is re-read under ``SELECT ... FOR UPDATE`` so a
        following debit cannot lose a concurrent update; callers must be
        inside a transaction.
        """
        bank, created = cls.objects.get_or_create(
            employee=employee,
            leave_type=leave_type,
            year=year,
            defaults={
                "total_days": default_leave_days(),
                "created_by_id": created_by_id,
                "notes": "Auto-created default bank",
            },
        )
        if lock and not created:
            bank = cls.objects.select_for_update().get(pk=bank.pk)
        return bank

    def _append_note(self, note: str) -> None:
        if note:
            self.notes = f"{self.notes}\n{note}" if self.notes else note
            LeaveBank.objects.filter(pk=self.pk).update(notes=self.notes)

    def debit(self, days: Decimal, allow_overdraw: bool = False, note: str = "") -> None:
        if days <= 0:
            raise ValueError("Days to debit must be positive.")
        self.refresh_from_db(fields=["total_days", "used_days"])
        if days > self.remaining_days:
            if not allow_overdraw:
                raise ConflictError(
                    f"Insufficient {self.leave_type} leave days. "
                    f"Employee only has {self.remaining_days} days available."
                )
            logger.warning(
                "Leave bank %s overdrawn by explicit override: debiting %s with %s remaining",
                self.pk,
                days,
                self.remaining_days,
            )
        LeaveBank.objects.filter(pk=self.pk).update(used_days=F("used_days") + days)
        self.refresh_from_db(fields=["used_days"])
        self._append_note(note)
        logger.info("Leave bank %s debited %s day(s)", self.pk, days)

    def credit(self, days: Decimal, note: str = "") -> None:
        if days <= 0:
            raise ValueError("Days to credit must be positive.")
        LeaveBank.objects.filter(pk=self.pk).update(total_days=F("total_days") + days)
        self.refresh_from_db(fields=["total_days"])
        self._append_note(note)
        logger.info("Leave bank %s credited %s day(s)", self.pk, days)


class LeaveRequestQuerySet(TimeRequestQuerySet):
    def overlapping(self, employee: Employee, start: date, end: date) -> "LeaveRequestQuerySet":
        return self.filter(
            employee=employee,
            start_date__lte=end,
            end_date__gte=start,
        ).exclude(status=RequestStatus.REJECTED)


class LeaveRequest(TwoLevelApprovalRequest):
    """Sick, vacation and other leave (SLVL)."""

    class LeaveType(models.TextChoices):
        SICK = "sick", "Sick Leave"
        VACATION = "vacation", "Vacation Leave"
        EMERGENCY = "emergency", "Emergency Leave"
        BEREAVEMENT = "bereavement", "Bereavement Leave"
        MATERNITY = "maternity", "Maternity Leave"
        PATERNITY = "paternity", "Paternity Leave"
        PERSONAL = "personal", "Personal Leave"
        STUDY = "study", "Study Leave"

    class HalfDay(models.TextChoices):
        AM = "AM", "Morning"
        PM = "PM", "Afternoon"

    leave_type = models.CharField(max_length=20, choices=LeaveType.choices)
    start_date = models.DateField()
    end_date = models.DateField()
    half_day = models.BooleanField(default=False)
    am_pm = models.CharField(max_length=2, choices=HalfDay.choices, blank=True)
    with_pay = models.BooleanField(default=True)
    total_days = models.DecimalField(max_digits=5, decimal_places=1)
    bank_debited = models.BooleanField(default=False)

    objects = LeaveRequestQuerySet.as_manager()

    class Meta(TwoLevelApprovalRequest.Meta):
        verbose_name = "leave request"
        verbose_name_plural = "leave requests"

    @property
    def draws_from_bank(self) -> bool:
        return self.with_pay and self.leave_type in LeaveBank.LeaveType.values

    def on_final_approval(self, actor_id: Optional[int] = None, allow_overdraw: bool = False) -> None:
        if self.bank_debited or not self.draws_from_bank:
            return
        bank = LeaveBank.find_or_create(
            self.employee,
            self.leave_type,
            self.start_date.year,
            created_by_id=actor_id,
            lock=True,
        )
        bank.debit(self.total_days, allow_overdraw=allow_overdraw, note=f"Used for leave request #{self.pk}")
        self.bank_debited = True


class Offset(SingleApprovalRequest):
    work_date = models.DateField(help_text="The date the extra work was done.")
    offset_date = models.DateField(help_text="The date the offset will be taken.")
    hours = models.DecimalField(max_digits=5, decimal_places=2)
    offset_type = models.CharField(max_length=60, blank=True)

    class Meta(SingleApprovalRequest.Meta):
        verbose_name = "offset"
        verbose_name_plural = "offsets"


class TimeSchedule(SingleApprovalRequest):
    schedule_type = models.CharField(max_length=60)
    effective_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    current_schedule = models.CharField(max_length=100, blank=True)
    new_schedule = models.CharField(max_length=100, blank=True)
    new_start_time = models.TimeField()
    new_end_time = models.TimeField()

    class Meta(SingleApprovalRequest.Meta):
        verbose_name = "schedule change"
        verbose_name_plural = "schedule changes"


class ChangeOffSchedule(SingleApprovalRequest):
    original_date = models.DateField()
    requested_date = models.DateField()

    class Meta(SingleApprovalRequest.Meta):
        verbose_name = "change of day-off"
        verbose_name_plural = "changes of day-off"
