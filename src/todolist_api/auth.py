from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .dependencies import get_token_validator
from .identity import extract_subject
from .logging_config import get_logger
from .tokens import TokenValidationError, TokenValidator

logger = get_logger(__name__)

_security = HTTPBearer(auto_error=False)


class AuthError(HTTPException):
    """401 with a Bearer challenge."""

    def __init__(self, detail: str = "Not authenticated") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


# PUBLIC_INTERFACE
async def require_bearer_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_security),
    validator: TokenValidator = Depends(get_token_validator),
) -> str:
    """
    Gate for protected routers: validate the bearer token before any handler runs.

    Usage:
        router = APIRouter(dependencies=[Depends(require_bearer_token)])

    Returns:
        The raw token, so handlers that forward it (profile lookup) can reuse it.

    Raises:
        AuthError(401) if the token is missing or fails validation.
    """
    if creds is None or not creds.credentials:
        raise AuthError()

    try:
        claims = await validator.validate(creds.credentials)
    except TokenValidationError as exc:
        logger.info("token_rejected", reason=exc.reason)
        raise AuthError("Invalid or expired token") from exc

    logger.debug("token_validated", sub=claims.get("sub"))
    return creds.credentials


# PUBLIC_INTERFACE
def get_subject(request: Request) -> str:
    """
    Resolve the caller's subject from the Authorization header.

    Raises:
        AuthError(401) when no subject can be derived, before any storage access.
    """
    subject = extract_subject(request.headers.get("Authorization"))
    if not subject:
        raise AuthError()
    return subject
