from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import AuthorizationError, ConflictError
from ..models import DepartmentManager, LeaveBank, Offset, Overtime, RequestStatus
from ..roles import resolve_roles
from ..services import delete_request, transition, visible_requests
from .base import User, WorkflowFixtureMixin


class ThreeStageWorkflowTests(WorkflowFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        (self.overtime,) = self.file("overtime", self.overtime_payload(), [self.alice], self.staff_user)

    def test_filed_request_is_pending_and_routed(self):
        self.assertEqual(self.overtime.status, RequestStatus.PENDING)
        self.assertEqual(self.overtime.dept_manager_id, self.eng_manager.pk)
        self.assertEqual(self.overtime.created_by_id, self.staff_user.pk)
        self.assertEqual(self.overtime.total_hours, Decimal("2.00"))

    def test_department_then_hrd_approval(self):
        updated = transition("overtime", self.overtime.pk, "manager_approved", "", self.eng_manager)
        self.assertEqual(updated.status, RequestStatus.MANAGER_APPROVED)
        self.assertEqual(updated.dept_approved_by_id, self.eng_manager.pk)
        self.assertEqual(updated.dept_remarks, "Administrative action by Department Manager")
        self.assertIsNotNone(updated.dept_approved_at)

        updated = transition("overtime", self.overtime.pk, "approved", "Paid next cycle", self.hrd)
        self.assertEqual(updated.status, RequestStatus.APPROVED)
        self.assertEqual(updated.hrd_approved_by_id, self.hrd.pk)
        self.assertEqual(updated.hrd_remarks, "Paid next cycle")

    def test_other_department_manager_is_denied_and_row_unchanged(self):
        with self.assertRaises(AuthorizationError):
            transition("overtime", self.overtime.pk, "manager_approved", "", self.fin_manager)
        self.overtime.refresh_from_db()
        self.assertEqual(self.overtime.status, RequestStatus.PENDING)
        self.assertIsNone(self.overtime.dept_approved_by_id)

    def test_hrd_cannot_skip_department_stage(self):
        with self.assertRaises(AuthorizationError):
            transition("overtime", self.overtime.pk, "manager_approved", "", self.hrd)

    def test_pending_cannot_jump_to_approved(self):
        with self.assertRaises(AuthorizationError):
            transition("overtime", self.overtime.pk, "approved", "", self.superadmin)

    def test_department_manager_cannot_act_on_second_stage(self):
        transition("overtime", self.overtime.pk, "manager_approved", "", self.eng_manager)
        with self.assertRaises(AuthorizationError):
            transition("overtime", self.overtime.pk, "approved", "", self.eng_manager)

    def test_rejection_requires_remarks(self):
        with self.assertRaises(ValidationError):
            transition("overtime", self.overtime.pk, "rejected", "  ", self.eng_manager)
        self.overtime.refresh_from_db()
        self.assertEqual(self.overtime.status, RequestStatus.PENDING)

    def test_rejected_request_is_terminal(self):
        updated = transition("overtime", self.overtime.pk, "rejected", "Not budgeted", self.eng_manager)
        self.assertEqual(updated.status, RequestStatus.REJECTED)
        self.assertEqual(updated.dept_remarks, "Not budgeted")
        with self.assertRaises(AuthorizationError):
            transition("overtime", self.overtime.pk, "manager_approved", "", self.eng_manager)
        with self.assertRaises(AuthorizationError):
            transition("overtime", self.overtime.pk, "rejected", "Again", self.superadmin)
        self.overtime.refresh_from_db()
        self.assertEqual(self.overtime.dept_remarks, "Not budgeted")

    def test_approved_request_cannot_be_rejected(self):
        (approved,) = self.file("overtime", self.overtime_payload(), [self.bob], self.superadmin)
        with self.assertLogs("time_requests.workflow", level="WARNING"):
            with self.assertRaises(AuthorizationError):
                transition("overtime", approved.pk, "rejected", "Filed late", self.hrd)
        approved.refresh_from_db()
        self.assertEqual(approved.status, RequestStatus.APPROVED)

    def test_current_department_manager_may_approve_after_reassignment(self):
        new_manager = User.objects.create_user(username="eng_lead_2", password="pass123")
        DepartmentManager.objects.filter(department=self.engineering).update(manager=new_manager)
        (second,) = self.file("overtime", self.overtime_payload(), [self.bob], self.staff_user)
        self.assertEqual(second.dept_manager_id, new_manager.pk)

        updated = transition("overtime", self.overtime.pk, "manager_approved", "", new_manager)
        self.assertEqual(updated.status, RequestStatus.MANAGER_APPROVED)
        self.assertEqual(updated.dept_manager_id, self.eng_manager.pk)
        self.assertEqual(updated.dept_approved_by_id, new_manager.pk)

        updated = transition("overtime", second.pk, "manager_approved", "", new_manager)
        self.assertEqual(updated.status, RequestStatus.MANAGER_APPROVED)

    def test_assigned_manager_keeps_authority_after_reassignment(self):
        new_manager = User.objects.create_user(username="eng_lead_2", password="pass123")
        DepartmentManager.objects.filter(department=self.engineering).update(manager=new_manager)
        self.assertEqual(resolve_roles(self.eng_manager).managed_departments, ())

        updated = transition("overtime", self.overtime.pk, "manager_approved", "", self.eng_manager)
        self.assertEqual(updated.status, RequestStatus.MANAGER_APPROVED)
        self.assertEqual(updated.dept_approved_by_id, self.eng_manager.pk)

    def test_same_status_updates_remarks_only(self):
        updated = transition("overtime", self.overtime.pk, "pending", "Need the ticket number", self.eng_manager)
        self.assertEqual(updated.status, RequestStatus.PENDING)
        self.assertEqual(updated.dept_remarks, "Need the ticket number")
        self.assertIsNone(updated.dept_approved_by_id)

    def test_unknown_kind_and_request(self):
        with self.assertRaises(ValidationError):
            transition("payroll", self.overtime.pk, "approved", "", self.hrd)
        with self.assertRaises(ValidationError):
            transition("overtime", self.overtime.pk + 100, "manager_approved", "", self.eng_manager)

    def test_status_outside_kind_is_invalid(self):
        with self.assertRaises(ValidationError):
            transition("overtime", self.overtime.pk, "cancelled", "", self.superadmin)


class LeaveApprovalTests(WorkflowFixtureMixin, TestCase):
    def test_final_approval_debits_bank_once(self):
        (leave,) = self.file("slvl", self.leave_payload(), [self.alice], self.staff_user)
        self.assertEqual(leave.total_days, Decimal(3))
        transition("slvl", leave.pk, "manager_approved", "", self.eng_manager)
        leave = transition("slvl", leave.pk, "approved", "", self.hrd)
        self.assertTrue(leave.bank_debited)

        bank = LeaveBank.objects.get(employee=self.alice, leave_type="vacation", year=2030)
        self.assertEqual(bank.used_days, Decimal(3))
        self.assertEqual(bank.remaining_days, Decimal(12))
        self.assertIn(f"Used for leave request #{leave.pk}", bank.notes)

    def test_unpaid_leave_does_not_touch_bank(self):
        payload = self.leave_payload(with_pay="false")
        (leave,) = self.file("slvl", payload, [self.alice], self.staff_user)
        transition("slvl", leave.pk, "manager_approved", "", self.eng_manager)
        leave = transition("slvl", leave.pk, "approved", "", self.hrd)
        self.assertFalse(leave.bank_debited)
        self.assertFalse(LeaveBank.objects.filter(employee=self.alice, used_days__gt=0).exists())

    def test_rejection_does_not_debit(self):
        (leave,) = self.file("slvl", self.leave_payload(), [self.alice], self.staff_user)
        transition("slvl", leave.pk, "rejected", "Peak season", self.eng_manager)
        bank = LeaveBank.objects.get(employee=self.alice, leave_type="vacation", year=2030)
        self.assertEqual(bank.used_days, Decimal(0))


class TwoStageWorkflowTests(WorkflowFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        (self.offset,) = self.file("offset", self.offset_payload(), [self.alice], self.staff_user)

    def test_department_manager_settles_in_one_step(self):
        updated = transition("offset", self.offset.pk, "approved", "", self.eng_manager)
        self.assertEqual(updated.status, RequestStatus.APPROVED)
        self.assertEqual(updated.approved_by_id, self.eng_manager.pk)
        self.assertEqual(updated.remarks, "Administrative action by Department Manager")

    def test_hrd_settles_in_one_step(self):
        updated = transition("offset", self.offset.pk, "rejected", "No record of weekend work", self.hrd)
        self.assertEqual(updated.status, RequestStatus.REJECTED)
        self.assertEqual(updated.remarks, "No record of weekend work")

    def test_manager_approved_is_not_a_two_stage_status(self):
        with self.assertRaises(ValidationError):
            transition("offset", self.offset.pk, "manager_approved", "", self.eng_manager)

    def test_plain_employee_cannot_decide(self):
        with self.assertRaises(AuthorizationError):
            transition("offset", self.offset.pk, "approved", "", self.staff_user)
        self.assertEqual(Offset.objects.get(pk=self.offset.pk).status, RequestStatus.PENDING)


class DeletionTests(WorkflowFixtureMixin, TestCase):
    def test_filer_deletes_pending_request(self):
        (overtime,) = self.file("overtime", self.overtime_payload(), [self.alice], self.staff_user)
        delete_request("overtime", overtime.pk, self.staff_user)
        self.assertFalse(Overtime.objects.filter(pk=overtime.pk).exists())

    def test_settled_request_cannot_be_deleted(self):
        (overtime,) = self.file("overtime", self.overtime_payload(), [self.alice], self.staff_user)
        transition("overtime", overtime.pk, "rejected", "Duplicate", self.eng_manager)
        with self.assertRaises(ConflictError):
            delete_request("overtime", overtime.pk, self.superadmin)

    def test_unrelated_manager_cannot_delete(self):
        (overtime,) = self.file("overtime", self.overtime_payload(), [self.alice], self.staff_user)
        with self.assertRaises(AuthorizationError):
            delete_request("overtime", overtime.pk, self.fin_manager)
        self.assertTrue(Overtime.objects.filter(pk=overtime.pk).exists())


class VisibilityTests(WorkflowFixtureMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.requests = self.file(
            "overtime",
            self.overtime_payload(),
            [self.alice, self.bob, self.carla],
            self.superadmin,
        )

    def _visible_employees(self, user):
        return {request_obj.employee_id for request_obj in visible_requests("overtime", user)}

    def test_hrd_sees_everything(self):
        self.assertEqual(self._visible_employees(self.hrd), {self.alice.pk, self.bob.pk, self.carla.pk})

    def test_department_manager_sees_own_department(self):
        self.assertEqual(self._visible_employees(self.fin_manager), {self.carla.pk})

    def test_employee_sees_own_requests(self):
        self.assertEqual(self._visible_employees(self.staff_user), {self.alice.pk})
