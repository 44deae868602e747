from __future__ import annotations

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from ...models import Employee, LeaveBank


class Command(BaseCommand):
    help = "Open sick and vacation leave banks for every active employee."

    def add_arguments(self, parser):
        parser.add_argument(
            "--year",
            type=int,
            default=None,
            help="Year to open banks for (default: the current year).",
        )

    def handle(self, *args, **options):
        year = options["year"] or timezone.localdate().year
        opened = 0
        with transaction.atomic():
            for employee in Employee.objects.filter(is_active=True):
                for leave_type in LeaveBank.LeaveType.values:
                    if LeaveBank.objects.filter(employee=employee, leave_type=leave_type, year=year).exists():
                        continue
                    LeaveBank.find_or_create(employee, leave_type, year)
                    opened += 1
        self.stdout.write(self.style.SUCCESS(f"Opened {opened} leave bank(s) for {year}."))
