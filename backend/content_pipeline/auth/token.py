"""
JWT Token Verification — OIDC-Compatible

The identity provider signs RS256 tokens with a rotating key set and grants
admin rights through a boolean custom claim. We fetch the public JWKS once
and cache it (TTL: 1 hour). If a kid is missing we force-refresh, which
handles key rotation transparently.

Admin flag resolution (first match wins):
  <settings.auth_admin_claim>   e.g. "admin": true
  custom:admin                  Cognito-style custom attribute ("true"/"1")
  role == "admin"
"""

from __future__ import annotations

import logging
import time
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from content_pipeline.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# HTTP Bearer extractor
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Verified token payload
# ---------------------------------------------------------------------------

class TokenPayload(BaseModel):
    """Parsed, validated JWT claims — passed to route handlers."""
    sub:   str          # provider user ID
    email: str = ""
    admin: bool = False
    exp:   int
    iss:   str


# ---------------------------------------------------------------------------
# JWKS cache (in-memory, TTL-based)
# ---------------------------------------------------------------------------

_JWKS_CACHE: dict[str, tuple[dict, float]] = {}   # issuer → (jwks, fetched_at)
_JWKS_TTL   = 3600   # 1 hour


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _fetch_jwks(issuer: str) -> dict:
    """Fetch JWKS from the provider's well-known endpoint with TTL caching."""
    now = time.monotonic()
    cached = _JWKS_CACHE.get(issuer)
    if cached and (now - cached[1]) < _JWKS_TTL:
        return cached[0]

    jwks_uri = f"{issuer.rstrip('/')}/.well-known/jwks.json"
    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.get(jwks_uri)
        resp.raise_for_status()
        jwks = resp.json()

    _JWKS_CACHE[issuer] = (jwks, now)
    logger.debug("JWKS refreshed for issuer: %s", issuer)
    return jwks


async def _get_signing_key(token: str) -> dict:
    """
    Extract kid from token header, fetch matching public key from JWKS.
    Force-refreshes the cache if the kid is not found (handles key rotation).
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise _unauthenticated("Invalid token header") from exc

    kid = header.get("kid")
    issuer = settings.auth_issuer

    for attempt in range(2):   # 0 = cached, 1 = force refresh
        if attempt == 1:
            _JWKS_CACHE.pop(issuer, None)

        try:
            jwks = await _fetch_jwks(issuer)
        except httpx.HTTPError as exc:
            logger.error("JWKS fetch failed | issuer=%s error=%s", issuer, exc)
            raise _unauthenticated("Unable to verify token") from exc

        for key_data in jwks.get("keys", []):
            if key_data.get("kid") == kid:
                return key_data

    raise _unauthenticated(f"Unable to find signing key for kid={kid}")


# ---------------------------------------------------------------------------
# Claim extractors
# ---------------------------------------------------------------------------

def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return False


def _extract_admin(claims: dict) -> bool:
    for name in (settings.auth_admin_claim, "custom:admin"):
        if name in claims:
            return _as_bool(claims[name])
    return claims.get("role") == "admin"


# ---------------------------------------------------------------------------
# Main verification function
# ---------------------------------------------------------------------------

async def verify_token(token: str) -> TokenPayload:
    """
    Verify a JWT token:
      1. Fetch matching public key from JWKS (cached).
      2. Verify signature, expiry, issuer, audience.
      3. Return a typed TokenPayload with the resolved admin flag.
    """
    signing_key = await _get_signing_key(token)

    try:
        claims = jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            options={"verify_exp": True},
        )
    except ExpiredSignatureError as exc:
        raise _unauthenticated("Token has expired") from exc
    except JWTError as exc:
        raise _unauthenticated(f"Invalid token: {exc}") from exc

    return TokenPayload(
        sub=claims["sub"],
        email=claims.get("email", ""),
        admin=_extract_admin(claims),
        exp=claims["exp"],
        iss=claims["iss"],
    )


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> TokenPayload:
    """Extract and validate the Bearer token; 401 when absent or invalid."""
    if credentials is None or not credentials.credentials:
        raise _unauthenticated("Must be authenticated")
    return await verify_token(credentials.credentials)


CurrentUser = Annotated[TokenPayload, Depends(get_current_user)]
