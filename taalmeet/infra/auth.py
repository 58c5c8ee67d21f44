"""Session object passed explicitly to every backend call.

Token verification belongs to the external auth provider; this module only
carries the caller's identity and bearer token through to the backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taalmeet.settings import settings


@dataclass(slots=True, frozen=True)
class Session:
	user_id: str
	access_token: Optional[str] = None

	def auth_headers(self) -> dict[str, str]:
		headers: dict[str, str] = {}
		if self.access_token:
			headers["Authorization"] = f"Bearer {self.access_token}"
		if settings.backend_api_key:
			headers["apikey"] = settings.backend_api_key
		return headers


_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_session(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Session:
	"""Resolve the caller's session.

	A bearer token plus X-User-Id is required; in development the header alone
	is accepted so local tools can call the views without a provider token.
	"""
	user_id = (x_user_id or "").strip()
	if not user_id:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing_user")
	if credentials and credentials.scheme.lower() == "bearer":
		return Session(user_id=user_id, access_token=credentials.credentials)
	if settings.is_dev():
		return Session(user_id=user_id)
	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
