from __future__ import annotations

from typing import Optional

from jose import JWTError, jwt

BEARER_PREFIX = "Bearer "


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token part of a 'Bearer <token>' header value, or None."""
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def subject_from_token(token: Optional[str]) -> str:
    """Read the 'sub' claim without verifying the token. Empty string when unavailable."""
    if not token:
        return ""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return ""
    sub = claims.get("sub")
    return sub if isinstance(sub, str) else ""


# PUBLIC_INTERFACE
def extract_subject(authorization: Optional[str]) -> str:
    """
    Derive the caller's subject from a raw Authorization header value.

    This is a pure parse used as the ownership key: signature and expiry are
    checked by the token gate in auth.py, never here.
    """
    return subject_from_token(bearer_token(authorization))
