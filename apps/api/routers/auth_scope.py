"""Authentication dependencies: member scope and admin gating."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import is_admin_email
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return is_admin_email(self.email)

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or self.email or self.user_id


def _context_from_credentials(credentials: HTTPAuthorizationCredentials) -> AuthContext:
    try:
        payload = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
        name=str(payload.get("name", "")) or None,
    )


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve authenticated member from Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")
    return _context_from_credentials(credentials)


async def get_optional_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> Optional[AuthContext]:
    """Like get_auth_context, but anonymous callers get None instead of 401."""
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    return _context_from_credentials(credentials)


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Admin allow-list check, enforced on the server for every moderation route."""
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return auth
