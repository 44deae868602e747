"""Forms validating request payloads and approval decisions."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from django import forms

from .exceptions import ConflictError
from .models import (
    ChangeOffSchedule,
    Employee,
    LeaveBank,
    LeaveRequest,
    Offset,
    Overtime,
    RequestStatus,
    TimeSchedule,
)
from .utils import calculate_leave_days, calculate_overtime_hours

FORCE_APPROVED = "force_approved"


class RequestPayloadForm(forms.Form):
    """Common payload of every request kind.

    Subclasses map the cleaned data onto model fields and may refuse a
    single employee through ``check_employee`` without failing the batch.
    """

    model = None

    reason = forms.CharField(max_length=500)

    def instance_fields(self) -> Dict[str, Any]:
        raise NotImplementedError

    def build(self, employee: Employee, **extra: Any):
        return self.model(
            employee=employee,
            reason=self.cleaned_data["reason"],
            **self.instance_fields(),
            **extra,
        )

    def check_employee(self, employee: Employee) -> None:
        """Raise ``ConflictError`` if the request cannot be filed for ``employee``."""

    def auto_approval_measure(self) -> Optional[Decimal]:
        return None


class OvertimeForm(RequestPayloadForm):
    model = Overtime

    date = forms.DateField()
    start_time = forms.TimeField()
    end_time = forms.TimeField()
    rate_multiplier = forms.DecimalField(max_digits=4, decimal_places=2, min_value=Decimal("1"))

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        work_date = cleaned.get("date")
        start = cleaned.get("start_time")
        end = cleaned.get("end_time")
        if not work_date or start is None or end is None:
            return cleaned
        start_at, end_at, hours = calculate_overtime_hours(work_date, start, end)
        if hours <= 0:
            raise forms.ValidationError("Overtime must last longer than zero hours.")
        cleaned["start_at"] = start_at
        cleaned["end_at"] = end_at
        cleaned["total_hours"] = hours
        return cleaned

    def instance_fields(self) -> Dict[str, Any]:
        data = self.cleaned_data
        return {
            "date": data["date"],
            "start_time": data["start_at"],
            "end_time": data["end_at"],
            "total_hours": data["total_hours"],
            "rate_multiplier": data["rate_multiplier"],
        }

    def auto_approval_measure(self) -> Decimal:
        return self.cleaned_data["total_hours"]


class LeaveRequestForm(RequestPayloadForm):
    model = LeaveRequest

    leave_type = forms.ChoiceField(choices=LeaveRequest.LeaveType.choices)
    start_date = forms.DateField()
    end_date = forms.DateField()
    half_day = forms.BooleanField(required=False)
    am_pm = forms.ChoiceField(choices=LeaveRequest.HalfDay.choices, required=False)
    with_pay = forms.NullBooleanField(required=False)

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        if cleaned.get("with_pay") is None:
            cleaned["with_pay"] = True
        start = cleaned.get("start_date")
        end = cleaned.get("end_date")
        if not start or not end:
            return cleaned
        if end < start:
            self.add_error("end_date", "End date cannot be earlier than the start date.")
            return cleaned
        total = calculate_leave_days(start, end, cleaned.get("half_day", False))
        if total <= 0:
            raise forms.ValidationError("The selected dates do not include any working day.")
        cleaned["total_days"] = total
        return cleaned

    def instance_fields(self) -> Dict[str, Any]:
        data = self.cleaned_data
        return {
            "leave_type": data["leave_type"],
            "start_date": data["start_date"],
            "end_date": data["end_date"],
            "half_day": data["half_day"],
            "am_pm": data["am_pm"] or "",
            "with_pay": data["with_pay"],
            "total_days": data["total_days"],
        }

    def check_employee(self, employee: Employee) -> None:
        data = self.cleaned_data
        department = employee.department
        if department is not None and not department.is_active:
            raise ConflictError(f"Department {department.name} is inactive.")

        overlapping = LeaveRequest.objects.overlapping(employee, data["start_date"], data["end_date"])
        if overlapping.exists():
            raise ConflictError("Leave request overlaps with existing leave period.")

        if data["with_pay"] and data["leave_type"] in LeaveBank.LeaveType.values:
            bank = LeaveBank.find_or_create(
                employee, data["leave_type"], data["start_date"].year, lock=True
            )
            if bank.remaining_days < data["total_days"]:
                raise ConflictError(
                    f"Insufficient {data['leave_type']} leave days. "
                    f"Employee only has {bank.remaining_days} days available."
                )

    def auto_approval_measure(self) -> Decimal:
        return self.cleaned_data["total_days"]


class OffsetForm(RequestPayloadForm):
    model = Offset

    work_date = forms.DateField()
    offset_date = forms.DateField()
    hours = forms.DecimalField(max_digits=5, decimal_places=2, min_value=Decimal("0.5"), max_value=Decimal("24"))
    offset_type = forms.CharField(max_length=60, required=False)

    def instance_fields(self) -> Dict[str, Any]:
        data = self.cleaned_data
        return {
            "work_date": data["work_date"],
            "offset_date": data["offset_date"],
            "hours": data["hours"],
            "offset_type": data["offset_type"],
        }


class TimeScheduleForm(RequestPayloadForm):
    model = TimeSchedule

    schedule_type = forms.CharField(max_length=60)
    effective_date = forms.DateField()
    end_date = forms.DateField(required=False)
    current_schedule = forms.CharField(max_length=100, required=False)
    new_schedule = forms.CharField(max_length=100, required=False)
    new_start_time = forms.TimeField()
    new_end_time = forms.TimeField()

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        effective = cleaned.get("effective_date")
        end = cleaned.get("end_date")
        if effective and end and end < effective:
            self.add_error("end_date", "End date cannot be earlier than the effective date.")
        return cleaned

    def instance_fields(self) -> Dict[str, Any]:
        data = self.cleaned_data
        return {
            "schedule_type": data["schedule_type"],
            "effective_date": data["effective_date"],
            "end_date": data["end_date"],
            "current_schedule": data["current_schedule"],
            "new_schedule": data["new_schedule"],
            "new_start_time": data["new_start_time"],
            "new_end_time": data["new_end_time"],
        }


class ChangeOffScheduleForm(RequestPayloadForm):
    model = ChangeOffSchedule

    original_date = forms.DateField()
    requested_date = forms.DateField()

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        original = cleaned.get("original_date")
        requested = cleaned.get("requested_date")
        if original and requested and original == requested:
            self.add_error("requested_date", "The requested day-off must differ from the original one.")
        return cleaned

    def instance_fields(self) -> Dict[str, Any]:
        return {
            "original_date": self.cleaned_data["original_date"],
            "requested_date": self.cleaned_data["requested_date"],
        }


class DecisionForm(forms.Form):
    """Target status and remarks of an approval decision."""

    status = forms.ChoiceField()
    remarks = forms.CharField(max_length=500, required=False)

    def __init__(self, *args: Any, statuses: Iterable[str], **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.fields["status"].choices = [(status, status) for status in statuses]

    def clean(self) -> Dict[str, Any]:
        cleaned = super().clean()
        if cleaned.get("status") == RequestStatus.REJECTED and not cleaned.get("remarks"):
            self.add_error("remarks", "Please provide remarks when rejecting a request.")
        return cleaned


class LeaveBankAdjustmentForm(forms.Form):
    """Days added to an employee's leave bank by HRD."""

    leave_type = forms.ChoiceField(choices=LeaveBank.LeaveType.choices)
    days = forms.DecimalField(max_digits=4, decimal_places=1, min_value=Decimal("0.5"), max_value=Decimal("365"))
    year = forms.IntegerField(min_value=2000, max_value=2100)
    reason = forms.CharField(max_length=500, required=False)
