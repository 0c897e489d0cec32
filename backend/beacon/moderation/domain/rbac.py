"""RBAC utilities for moderation staff actions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from beacon.domain.identity.models import UserProfile
from beacon.infra.auth import ADMIN_ROLES, AuthenticatedUser
from beacon.moderation.domain.errors import AuthorizationError
from beacon.settings import settings


@dataclass(frozen=True, slots=True)
class StaffContext:
    """Resolved caller context handed to the moderation dispatcher."""

    actor_id: int
    scopes: tuple[str, ...] = ()
    admin: bool = False

    @property
    def is_admin(self) -> bool:
        return self.admin or any(scope in ADMIN_ROLES for scope in self.scopes)


def resolve_staff_context(user: AuthenticatedUser, profile: Optional[UserProfile] = None) -> StaffContext:
    """Build the staff context for a caller.

    Admin roles on the identity headers, configured admin ids and the stored
    ``is_admin`` flag all grant admin rights.
    """

    admin = user.is_admin or user.id in settings.moderation_admin_ids or bool(profile and profile.is_admin)
    return StaffContext(actor_id=user.id, scopes=tuple(user.roles), admin=admin)


def ensure_admin(context: StaffContext) -> None:
    if not context.is_admin:
        raise AuthorizationError("admin_required")
