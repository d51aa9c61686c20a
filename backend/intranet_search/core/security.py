"""
Caller identity for search logging.

Searches may be anonymous: a bearer token, when present, is verified against
Clerk's JWKS and resolved to the Clerk user id. Any problem with the token
resolves to anonymous instead of failing the request.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from .config import settings

logger = logging.getLogger(__name__)


class TokenVerificationError(Exception):
    """Raised when a bearer token cannot be verified."""
    pass


async def get_clerk_jwks() -> Dict[str, Any]:
    """
    Fetch Clerk's JSON Web Key Set (JWKS) for JWT verification.
    """
    if not settings.CLERK_SECRET_KEY:
        raise TokenVerificationError("CLERK_SECRET_KEY not configured")

    headers = {"Authorization": f"Bearer {settings.CLERK_SECRET_KEY}"}
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(settings.CLERK_JWKS_URL, headers=headers)
    except httpx.RequestError as e:
        raise TokenVerificationError(f"JWKS fetch error: {str(e)}") from e

    if response.status_code != 200:
        raise TokenVerificationError(f"Failed to fetch Clerk JWKS: HTTP {response.status_code}")

    return response.json()


async def verify_clerk_token(token: str) -> Dict[str, Any]:
    """
    Verify a Clerk JWT signature and expiry and return its claims.

    Raises:
        TokenVerificationError: If the token is malformed, unsigned by a known
            key, expired, or has no subject
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise TokenVerificationError(f"Malformed token: {str(e)}") from e

    kid = unverified_header.get("kid")
    if not kid:
        raise TokenVerificationError("Token missing key ID (kid) in header")

    jwks = await get_clerk_jwks()

    rsa_key = None
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            rsa_key = {
                "kty": key.get("kty"),
                "kid": key.get("kid"),
                "use": key.get("use"),
                "n": key.get("n"),
                "e": key.get("e"),
            }
            break

    if not rsa_key:
        raise TokenVerificationError("Unable to find matching key in JWKS")

    try:
        payload = jwt.decode(
            token,
            rsa_key,
            algorithms=["RS256"],
            options={"verify_exp": True, "verify_aud": False},
        )
    except JWTError as e:
        raise TokenVerificationError(f"JWT signature verification failed: {str(e)}") from e

    if not payload.get("sub"):
        raise TokenVerificationError("Invalid token: missing subject (user_id)")

    return payload


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


async def resolve_user_id(authorization: Optional[str]) -> Optional[str]:
    """Clerk user id for an ``Authorization`` header, or None for anonymous callers."""
    token = extract_bearer_token(authorization)
    if token is None:
        return None

    try:
        payload = await verify_clerk_token(token)
    except TokenVerificationError as e:
        logger.warning(f"Ignoring unverifiable bearer token, searching anonymously: {str(e)}")
        return None

    return payload["sub"]
