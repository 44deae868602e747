# Generated manually for the time_requests schema.
from __future__ import annotations

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


def _id():
    return (
        "id",
        models.BigAutoField(
            auto_created=True,
            primary_key=True,
            serialize=False,
            verbose_name="ID",
        ),
    )


def _user_fk(name, related_name, null=True):
    return (
        name,
        models.ForeignKey(
            blank=null,
            null=null,
            on_delete=(
                django.db.models.deletion.SET_NULL if null else django.db.models.deletion.CASCADE
            ),
            related_name=related_name,
            to=settings.AUTH_USER_MODEL,
        ),
    )


STATUS_CHOICES = [
    ("pending", "Pending"),
    ("manager_approved", "Dept. Approved"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
]


def _request_fields(model_name):
    return [
        _id(),
        ("reason", models.CharField(max_length=500)),
        (
            "status",
            models.CharField(
                choices=STATUS_CHOICES,
                db_index=True,
                default="pending",
                max_length=20,
            ),
        ),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        (
            "employee",
            models.ForeignKey(
                on_delete=django.db.models.deletion.CASCADE,
                related_name=f"{model_name}_requests",
                to="time_requests.employee",
            ),
        ),
        _user_fk("dept_manager", f"assigned_{model_name}_requests"),
        _user_fk("created_by", f"filed_{model_name}_requests", null=False),
    ]


def _two_level_fields(model_name):
    return [
        _user_fk("dept_approved_by", f"dept_approved_{model_name}_requests"),
        ("dept_approved_at", models.DateTimeField(blank=True, null=True)),
        ("dept_remarks", models.TextField(blank=True, null=True)),
        _user_fk("hrd_approved_by", f"hrd_approved_{model_name}_requests"),
        ("hrd_approved_at", models.DateTimeField(blank=True, null=True)),
        ("hrd_remarks", models.TextField(blank=True, null=True)),
    ]


def _single_fields(model_name):
    return [
        _user_fk("approved_by", f"approved_{model_name}_requests"),
        ("approved_at", models.DateTimeField(blank=True, null=True)),
        ("remarks", models.TextField(blank=True, null=True)),
    ]


def _request_options(verbose_name, verbose_name_plural):
    return {
        "verbose_name": verbose_name,
        "verbose_name_plural": verbose_name_plural,
        "ordering": ["-created_at", "-id"],
        "abstract": False,
    }


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Department",
            fields=[
                _id(),
                ("name", models.CharField(max_length=100, unique=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Employee",
            fields=[
                _id(),
                ("idno", models.CharField(max_length=30, unique=True)),
                ("first_name", models.CharField(max_length=120)),
                ("last_name", models.CharField(max_length=120)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "department",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="employees",
                        to="time_requests.department",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="employee",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["last_name", "first_name"],
            },
        ),
        migrations.CreateModel(
            name="DepartmentManager",
            fields=[
                _id(),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "department",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="manager_assignment",
                        to="time_requests.department",
                    ),
                ),
                _user_fk("manager", "managed_departments", null=False),
                _user_fk("created_by", "+"),
                _user_fk("updated_by", "+"),
            ],
            options={
                "ordering": ["department__name"],
            },
        ),
        migrations.CreateModel(
            name="RoleGrant",
            fields=[
                _id(),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("superadmin", "Superadmin"),
                            ("hrd_manager", "HRD Manager"),
                            ("department_manager", "Department Manager"),
                        ],
                        max_length=30,
                    ),
                ),
                ("granted_at", models.DateTimeField(auto_now_add=True)),
                _user_fk("user", "role_grants", null=False),
                _user_fk("granted_by", "+"),
            ],
            options={
                "unique_together": {("user", "role")},
            },
        ),
        migrations.CreateModel(
            name="LeaveBank",
            fields=[
                _id(),
                (
                    "leave_type",
                    models.CharField(
                        choices=[("sick", "Sick Leave"), ("vacation", "Vacation Leave")],
                        max_length=10,
                    ),
                ),
                ("year", models.PositiveIntegerField()),
                ("total_days", models.DecimalField(decimal_places=1, default=0, max_digits=6)),
                ("used_days", models.DecimalField(decimal_places=1, default=0, max_digits=6)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "employee",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="leave_banks",
                        to="time_requests.employee",
                    ),
                ),
                _user_fk("created_by", "+"),
            ],
            options={
                "verbose_name": "leave bank",
                "verbose_name_plural": "leave banks",
                "ordering": ["-year", "leave_type"],
                "unique_together": {("employee", "leave_type", "year")},
            },
        ),
        migrations.CreateModel(
            name="Overtime",
            fields=_request_fields("overtime")
            + _two_level_fields("overtime")
            + [
                ("date", models.DateField()),
                ("start_time", models.DateTimeField()),
                ("end_time", models.DateTimeField()),
                ("total_hours", models.DecimalField(decimal_places=2, max_digits=6)),
                ("rate_multiplier", models.DecimalField(decimal_places=2, max_digits=4)),
            ],
            options=_request_options("overtime", "overtimes"),
        ),
        migrations.CreateModel(
            name="LeaveRequest",
            fields=_request_fields("leaverequest")
            + _two_level_fields("leaverequest")
            + [
                (
                    "leave_type",
                    models.CharField(
                        choices=[
                            ("sick", "Sick Leave"),
                            ("vacation", "Vacation Leave"),
                            ("emergency", "Emergency Leave"),
                            ("bereavement", "Bereavement Leave"),
                            ("maternity", "Maternity Leave"),
                            ("paternity", "Paternity Leave"),
                            ("personal", "Personal Leave"),
                            ("study", "Study Leave"),
                        ],
                        max_length=20,
                    ),
                ),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("half_day", models.BooleanField(default=False)),
                (
                    "am_pm",
                    models.CharField(
                        blank=True,
                        choices=[("AM", "Morning"), ("PM", "Afternoon")],
                        max_length=2,
                    ),
                ),
                ("with_pay", models.BooleanField(default=True)),
                ("total_days", models.DecimalField(decimal_places=1, max_digits=5)),
                ("bank_debited", models.BooleanField(default=False)),
            ],
            options=_request_options("leave request", "leave requests"),
        ),
        migrations.CreateModel(
            name="Offset",
            fields=_request_fields("offset")
            + _single_fields("offset")
            + [
                ("work_date", models.DateField(help_text="The date the extra work was done.")),
                ("offset_date", models.DateField(help_text="The date the offset will be taken.")),
                ("hours", models.DecimalField(decimal_places=2, max_digits=5)),
                ("offset_type", models.CharField(blank=True, max_length=60)),
            ],
            options=_request_options("offset", "offsets"),
        ),
        migrations.CreateModel(
            name="TimeSchedule",
            fields=_request_fields("timeschedule")
            + _single_fields("timeschedule")
            + [
                ("schedule_type", models.CharField(max_length=60)),
                ("effective_date", models.DateField()),
                ("end_date", models.DateField(blank=True, null=True)),
                ("current_schedule", models.CharField(blank=True, max_length=100)),
                ("new_schedule", models.CharField(blank=True, max_length=100)),
                ("new_start_time", models.TimeField()),
                ("new_end_time", models.TimeField()),
            ],
            options=_request_options("schedule change", "schedule changes"),
        ),
        migrations.CreateModel(
            name="ChangeOffSchedule",
            fields=_request_fields("changeoffschedule")
            + _single_fields("changeoffschedule")
            + [
                ("original_date", models.DateField()),
                ("requested_date", models.DateField()),
            ],
            options=_request_options("change of day-off", "changes of day-off"),
        ),
    ]
