"""Identity helpers for FastAPI endpoints.

Authentication itself happens upstream: the gateway forwards the verified user id
and roles as headers, and this module turns them into an AuthenticatedUser.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Header, HTTPException, status

from beacon.settings import settings

ADMIN_ROLES = ("admin", "staff.admin")


@dataclass(slots=True)
class AuthenticatedUser:
	id: int
	roles: Tuple[str, ...] = ()

	def has_role(self, role: str) -> bool:
		return role in self.roles

	@property
	def is_admin(self) -> bool:
		if any(self.has_role(role) for role in ADMIN_ROLES):
			return True
		return self.id in settings.moderation_admin_ids


def _parse_user_id(raw: Optional[str]) -> Optional[int]:
	if raw is None:
		return None
	try:
		value = int(raw.strip())
	except ValueError:
		return None
	return value if value > 0 else None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_roles: Optional[str] = Header(default=None, alias="X-User-Roles"),
) -> AuthenticatedUser:
	"""Resolve the caller from gateway identity headers."""
	if not settings.trust_identity_headers:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="identity_headers_disabled")
	user_id = _parse_user_id(x_user_id)
	if user_id is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_identity")
	roles = tuple(part.strip() for part in (x_user_roles or "").split(",") if part.strip())
	return AuthenticatedUser(id=user_id, roles=roles)

