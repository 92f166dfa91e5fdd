"""Domain service functions for account registration and administration.

- Public registration only creates STUDENT accounts.
- ADMIN and MANAGER create TEACHER / STUDENT / MANAGER accounts; a MANAGER
  cannot create another MANAGER nor modify an ADMIN.
- Deactivation is a soft delete through ``AccountStatus``; ADMIN accounts and
  the acting user themselves cannot be deactivated.
"""

import logging
from typing import Any

from django.db import transaction
from rest_framework.exceptions import PermissionDenied, ValidationError

from ClassroomApp.core.choices import AccountStatus, UserRole
from ClassroomApp.users.models import User

logger = logging.getLogger(__name__)

MANAGED_ROLES = (UserRole.TEACHER, UserRole.STUDENT, UserRole.MANAGER)


def _ensure_email_free(email: str, exclude: User | None = None) -> None:
    qs = User.objects.filter(email__iexact=email)
    if exclude is not None:
        qs = qs.exclude(pk=exclude.pk)
    if qs.exists():
        raise ValidationError({"email": ["Email is already in use."]})


def _ensure_user_manager(actor: User) -> None:
    if actor.role not in (UserRole.ADMIN, UserRole.MANAGER):
        raise PermissionDenied("Account management requires an admin or manager.")


def _build_user(email: str, password: str, name: str, role: str) -> User:
    _ensure_email_free(email)
    user = User(email=email, username=email, name=name, role=role)
    user.set_password(password)
    user.save()
    return user


@transaction.atomic
def register_student(email: str, password: str, name: str) -> User:
    """Self-registration; always creates a STUDENT."""
    user = _build_user(email, password, name, UserRole.STUDENT)
    logger.info("Student registered: id=%s", user.pk)
    return user


@transaction.atomic
def create_user(actor: User, email: str, password: str, name: str, role: str) -> User:
    """Create an account on behalf of an admin or manager."""
    _ensure_user_manager(actor)
    if role not in MANAGED_ROLES:
        raise ValidationError({"role": [f"Cannot create {role} accounts."]})
    if actor.role == UserRole.MANAGER and role == UserRole.MANAGER:
        raise PermissionDenied("Managers cannot create other manager accounts.")
    user = _build_user(email, password, name, role)
    logger.info("Account created: id=%s role=%s by=%s", user.pk, role, actor.pk)
    return user


@transaction.atomic
def update_user(actor: User, user: User, data: dict[str, Any]) -> User:
    """Update name, email, password or status of an account."""
    _ensure_user_manager(actor)
    if user.role == UserRole.ADMIN and actor.role != UserRole.ADMIN:
        raise PermissionDenied("Only admins can modify admin accounts.")
    if "email" in data and data["email"] != user.email:
        _ensure_email_free(data["email"], exclude=user)
        user.email = data["email"]
        user.username = data["email"]
    if data.get("name"):
        user.name = data["name"]
    if data.get("password"):
        user.set_password(data["password"])
    if "status" in data:
        if data["status"] == AccountStatus.DEACTIVATED:
            _ensure_can_deactivate(actor, user)
        user.status = data["status"]
    user.save()
    return user


def _ensure_can_deactivate(actor: User, user: User) -> None:
    if user.role == UserRole.ADMIN:
        raise PermissionDenied("Admin accounts cannot be deactivated.")
    if user.pk == actor.pk:
        raise ValidationError("You cannot deactivate your own account.")


@transaction.atomic
def deactivate_user(actor: User, user: User) -> User:
    """Soft-delete an account."""
    _ensure_user_manager(actor)
    _ensure_can_deactivate(actor, user)
    user.status = AccountStatus.DEACTIVATED
    user.save(update_fields=["status"])
    logger.info("Account deactivated: id=%s by=%s", user.pk, actor.pk)
    return user
