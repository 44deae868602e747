from __future__ import annotations

from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase, override_settings

from ..exceptions import AuthorizationError, ConflictError
from ..models import LeaveBank
from ..services import add_leave_bank_days, get_leave_bank
from .base import WorkflowFixtureMixin


class LeaveBankTests(WorkflowFixtureMixin, TestCase):
    def test_banks_are_created_on_first_read(self):
        self.assertFalse(LeaveBank.objects.filter(employee=self.alice).exists())
        summary = get_leave_bank(self.alice.pk, year=2030)
        self.assertEqual(set(summary), {"sick", "vacation"})
        self.assertEqual(summary["vacation"]["total"], Decimal(15))
        self.assertEqual(summary["vacation"]["remaining"], Decimal(15))
        self.assertEqual(LeaveBank.objects.filter(employee=self.alice, year=2030).count(), 2)

    @override_settings(TIME_REQUESTS_DEFAULT_LEAVE_DAYS=10)
    def test_default_allotment_is_configurable(self):
        summary = get_leave_bank(self.alice.pk, year=2030)
        self.assertEqual(summary["sick"]["total"], Decimal(10))

    def test_unknown_employee(self):
        with self.assertRaises(ValidationError):
            get_leave_bank(9999, year=2030)

    def test_hrd_adds_days_with_audit_note(self):
        bank = add_leave_bank_days(self.alice.pk, "vacation", 3, "Carry over", self.hrd, year=2030)
        self.assertEqual(bank.total_days, Decimal(18))
        self.assertIn("Added 3 days by hr: Carry over", bank.notes)
        self.assertEqual(get_leave_bank(self.alice.pk, year=2030)["vacation"]["remaining"], Decimal(18))

    def test_only_hrd_or_superadmin_may_add_days(self):
        with self.assertRaises(AuthorizationError):
            add_leave_bank_days(self.alice.pk, "vacation", 3, "", self.eng_manager, year=2030)
        with self.assertRaises(AuthorizationError):
            add_leave_bank_days(self.alice.pk, "vacation", 3, "", self.staff_user, year=2030)

    def test_adjustment_is_validated(self):
        with self.assertRaises(ValidationError):
            add_leave_bank_days(self.alice.pk, "vacation", 0, "", self.superadmin, year=2030)
        with self.assertRaises(ValidationError):
            add_leave_bank_days(self.alice.pk, "maternity", 2, "", self.superadmin, year=2030)

    def test_debit_refuses_overdraw(self):
        bank = LeaveBank.find_or_create(self.alice, "sick", 2030)
        with self.assertRaises(ConflictError):
            bank.debit(Decimal(16))
        bank.refresh_from_db()
        self.assertEqual(bank.used_days, Decimal(0))
        bank.debit(Decimal(16), allow_overdraw=True)
        self.assertEqual(bank.remaining_days, Decimal(-1))


class OpenLeaveBanksCommandTests(WorkflowFixtureMixin, TestCase):
    def test_opens_banks_for_active_employees(self):
        self.carla.is_active = False
        self.carla.save(update_fields=["is_active"])
        out = StringIO()
        call_command("open_leave_banks", year=2031, stdout=out)
        self.assertIn("Opened 4 leave bank(s) for 2031.", out.getvalue())
        self.assertFalse(LeaveBank.objects.filter(employee=self.carla).exists())

        out = StringIO()
        call_command("open_leave_banks", year=2031, stdout=out)
        self.assertIn("Opened 0 leave bank(s) for 2031.", out.getvalue())
