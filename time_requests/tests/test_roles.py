from __future__ import annotations

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase, override_settings

from ..models import RoleGrant
from ..roles import resolve_roles
from .base import User, WorkflowFixtureMixin


class RoleResolutionTests(WorkflowFixtureMixin, TestCase):
    def test_superuser_flag_makes_superadmin(self):
        profile = resolve_roles(self.superadmin)
        self.assertTrue(profile.is_superadmin)
        self.assertTrue(profile.can_auto_approve)
        self.assertEqual(profile.role_label, "Superadmin")

    def test_explicit_superadmin_grant(self):
        user = User.objects.create_user(username="ops", password="pass123")
        RoleGrant.objects.create(user=user, role=RoleGrant.Role.SUPERADMIN)
        self.assertTrue(resolve_roles(user).is_superadmin)

    def test_hrd_grant(self):
        profile = resolve_roles(self.hrd)
        self.assertTrue(profile.is_hrd_manager)
        self.assertFalse(profile.is_superadmin)
        self.assertEqual(profile.role_label, "HRD Manager")

    def test_department_manager_lists_managed_departments(self):
        profile = resolve_roles(self.eng_manager)
        self.assertTrue(profile.is_department_manager)
        self.assertEqual(profile.managed_departments, ("Engineering",))
        self.assertTrue(profile.manages("Engineering"))
        self.assertFalse(profile.manages("Finance"))

    def test_employee_link(self):
        profile = resolve_roles(self.staff_user)
        self.assertTrue(profile.is_employee)
        self.assertEqual(profile.employee_id, self.alice.pk)
        self.assertFalse(profile.can_auto_approve)
        self.assertEqual(profile.role_label, "Employee")

    def test_anonymous_user_has_no_authority(self):
        profile = resolve_roles(AnonymousUser())
        self.assertIsNone(profile.user_id)
        self.assertEqual(profile.role_label, "User")

    def test_name_heuristics_are_off_by_default(self):
        user = User.objects.create_user(username="maria", email="maria@hrd.example.com", password="pass123")
        self.assertFalse(resolve_roles(user).is_hrd_manager)

    @override_settings(TIME_REQUESTS_LEGACY_ROLE_HEURISTICS=True)
    def test_legacy_heuristics_when_enabled(self):
        user = User.objects.create_user(username="maria", email="maria@hrd.example.com", password="pass123")
        self.assertTrue(resolve_roles(user).is_hrd_manager)
        admin_like = User.objects.create_user(username="siteadmin", password="pass123")
        self.assertTrue(resolve_roles(admin_like).is_superadmin)
