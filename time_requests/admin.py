"""Admin configuration for time requests and leave banks."""
from django.contrib import admin

from .models import (
    ChangeOffSchedule,
    Department,
    DepartmentManager,
    Employee,
    LeaveBank,
    LeaveRequest,
    Offset,
    Overtime,
    RoleGrant,
    TimeSchedule,
)


class DepartmentManagerInline(admin.StackedInline):
    model = DepartmentManager
    extra = 0
    autocomplete_fields = ("manager",)
    readonly_fields = ("created_by", "updated_by", "created_at", "updated_at")


class LeaveBankInline(admin.TabularInline):
    model = LeaveBank
    extra = 0
    fields = ("leave_type", "year", "total_days", "used_days")
    readonly_fields = ("used_days",)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name",)
    inlines = [DepartmentManagerInline]


@admin.register(DepartmentManager)
class DepartmentManagerAdmin(admin.ModelAdmin):
    list_display = ("department", "manager", "updated_at")
    search_fields = ("department__name", "manager__username")
    autocomplete_fields = ("department", "manager")
    readonly_fields = ("created_by", "updated_by", "created_at", "updated_at")

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("idno", "last_name", "first_name", "department", "is_active")
    list_filter = ("is_active", "department")
    search_fields = ("idno", "last_name", "first_name")
    autocomplete_fields = ("user", "department")
    inlines = [LeaveBankInline]


@admin.register(RoleGrant)
class RoleGrantAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "granted_by", "granted_at")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email")
    autocomplete_fields = ("user", "granted_by")


@admin.register(LeaveBank)
class LeaveBankAdmin(admin.ModelAdmin):
    list_display = ("employee", "leave_type", "year", "total_days", "used_days", "remaining_days_display")
    list_filter = ("leave_type", "year")
    search_fields = ("employee__idno", "employee__last_name")
    autocomplete_fields = ("employee",)
    readonly_fields = ("used_days", "created_by", "created_at", "updated_at")

    def remaining_days_display(self, obj):
        return obj.remaining_days

    remaining_days_display.short_description = "Remaining days"


class TimeRequestAdmin(admin.ModelAdmin):
    """Read-mostly listing; decisions go through the workflow services."""

    list_filter = ("status",)
    search_fields = ("employee__idno", "employee__last_name", "reason")
    autocomplete_fields = ("employee",)
    ordering = ("-created_at",)
    readonly_fields = ("status", "dept_manager", "created_by", "created_at", "updated_at")


class TwoLevelRequestAdmin(TimeRequestAdmin):
    readonly_fields = TimeRequestAdmin.readonly_fields + (
        "dept_approved_by",
        "dept_approved_at",
        "dept_remarks",
        "hrd_approved_by",
        "hrd_approved_at",
        "hrd_remarks",
    )


class SingleRequestAdmin(TimeRequestAdmin):
    readonly_fields = TimeRequestAdmin.readonly_fields + ("approved_by", "approved_at", "remarks")


@admin.register(Overtime)
class OvertimeAdmin(TwoLevelRequestAdmin):
    list_display = ("employee", "date", "total_hours", "rate_multiplier", "status", "created_at")


@admin.register(LeaveRequest)
class LeaveRequestAdmin(TwoLevelRequestAdmin):
    list_display = ("employee", "leave_type", "start_date", "end_date", "total_days", "status", "created_at")
    list_filter = ("status", "leave_type", "start_date")
    readonly_fields = TwoLevelRequestAdmin.readonly_fields + ("bank_debited",)


@admin.register(Offset)
class OffsetAdmin(SingleRequestAdmin):
    list_display = ("employee", "work_date", "offset_date", "hours", "status", "created_at")


@admin.register(TimeSchedule)
class TimeScheduleAdmin(SingleRequestAdmin):
    list_display = ("employee", "schedule_type", "effective_date", "end_date", "status", "created_at")


@admin.register(ChangeOffSchedule)
class ChangeOffScheduleAdmin(SingleRequestAdmin):
    list_display = ("employee", "original_date", "requested_date", "status", "created_at")
