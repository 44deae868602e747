"""Error taxonomy for the approval workflow.

Malformed input is reported with Django's own ``ValidationError``; the
classes below cover the remaining outcomes a caller has to tell apart.
"""
from __future__ import annotations

from django.core.exceptions import PermissionDenied


class WorkflowError(Exception):
    """Base class for workflow failures that are not input validation."""


class AuthorizationError(PermissionDenied):
    """The acting user has no authority for the requested change."""


class ConflictError(WorkflowError):
    """The change clashes with stored state (overlap, balance, already approved)."""


class InfrastructureError(WorkflowError):
    """Storage failed mid-transaction; the whole unit of work was rolled back."""
