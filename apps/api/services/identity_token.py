"""Verification of the auth provider's ID tokens before a session is issued."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from jose import JWTError, jwt

from config import settings

logger = logging.getLogger(__name__)

_signing_keys: List[Dict[str, Any]] = []
_signing_keys_fetched_at = 0.0


class IdentityTokenError(ValueError):
    """Raised when an ID token cannot be trusted."""


@dataclass
class IdentityClaims:
    user_id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


async def _fetch_signing_keys() -> List[Dict[str, Any]]:
    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.get(settings.AUTH_JWKS_URL)
        response.raise_for_status()
        payload = response.json()
    keys = payload.get("keys") if isinstance(payload, dict) else None
    if not isinstance(keys, list):
        raise IdentityTokenError("Signing key set is malformed.")
    return keys


async def _signing_key(kid: str) -> Dict[str, Any]:
    global _signing_keys, _signing_keys_fetched_at

    stale = time.time() - _signing_keys_fetched_at > settings.AUTH_JWKS_CACHE_SECONDS
    known = next((key for key in _signing_keys if key.get("kid") == kid), None)
    if known and not stale:
        return known

    # Unknown kid usually means the provider rotated its keys.
    try:
        _signing_keys = await _fetch_signing_keys()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Could not refresh identity signing keys: %s", exc)
        raise IdentityTokenError("Signing keys are unavailable.") from exc
    _signing_keys_fetched_at = time.time()

    for key in _signing_keys:
        if key.get("kid") == kid:
            return key
    raise IdentityTokenError("ID token was signed with an unknown key.")


def clear_signing_key_cache() -> None:
    global _signing_keys, _signing_keys_fetched_at
    _signing_keys = []
    _signing_keys_fetched_at = 0.0


async def verify_identity_token(id_token: str) -> IdentityClaims:
    """
    Check signature, audience, issuer and expiry of a provider ID token.

    Only a verified email address is accepted, since it drives the admin
    allow-list.
    """
    project_id = (settings.AUTH_PROJECT_ID or "").strip()
    if not project_id:
        raise IdentityTokenError("Sign-in provider is not configured.")

    try:
        header = jwt.get_unverified_header(id_token)
    except JWTError as exc:
        raise IdentityTokenError("Malformed ID token.") from exc
    kid = str(header.get("kid") or "")
    if not kid:
        raise IdentityTokenError("ID token has no key id.")

    key = await _signing_key(kid)
    try:
        claims = jwt.decode(
            id_token,
            key,
            algorithms=["RS256"],
            audience=project_id,
            issuer=f"{settings.AUTH_ISSUER_PREFIX}{project_id}",
        )
    except JWTError as exc:
        raise IdentityTokenError("Invalid or expired ID token.") from exc

    user_id = str(claims.get("sub") or "").strip()
    email = str(claims.get("email") or "").strip()
    if not user_id:
        raise IdentityTokenError("ID token missing subject.")
    if not email:
        raise IdentityTokenError("ID token carries no email address.")
    if claims.get("email_verified") is not True:
        raise IdentityTokenError("Email address is not verified.")

    return IdentityClaims(
        user_id=user_id,
        email=email,
        name=claims.get("name") or None,
        picture=claims.get("picture") or None,
    )
