"""
Bearer token validation against the identity provider's published keys.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from jose import JWTError, jwt

from .logging_config import get_logger

logger = get_logger(__name__)


class TokenValidationError(Exception):
    """The bearer token was rejected; reason is safe to log, not to return."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class TokenValidator:
    """
    Validates access tokens issued by the configured user pool.

    Checks run in this order: issuer, expiry (no clock skew), signature
    against the JWKS key named by the token's 'kid', and finally the
    'client_id' claim against the expected audience. The token's own 'aud'
    claim is not consulted because Cognito access tokens do not carry one.
    """

    def __init__(
        self,
        issuer: str,
        audience: str,
        jwks_url: str,
        algorithms: Sequence[str] = ("RS256",),
        *,
        client: Optional[httpx.AsyncClient] = None,
        refresh_interval: float = 3600.0,
        http_timeout: float = 10.0,
    ) -> None:
        self.issuer = issuer
        self.audience = audience
        self.jwks_url = jwks_url
        self.algorithms = list(algorithms)
        self.refresh_interval = refresh_interval
        self._client = client or httpx.AsyncClient(timeout=http_timeout)
        self._keys: List[Dict[str, Any]] = []
        self._last_refresh = 0.0
        self._lock = asyncio.Lock()

    async def close(self) -> None:
        await self._client.aclose()

    async def validate(self, token: str) -> Dict[str, Any]:
        """Return the verified claims of token or raise TokenValidationError."""
        try:
            header = jwt.get_unverified_header(token)
            claims = jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenValidationError(f"malformed token: {exc}") from exc

        if claims.get("iss") != self.issuer:
            raise TokenValidationError("issuer mismatch")

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp <= time.time():
            raise TokenValidationError("token expired")

        kid = header.get("kid")
        if not isinstance(kid, str):
            raise TokenValidationError("token header missing key id")
        key = await self._get_key(kid)
        if key is None:
            raise TokenValidationError(f"unknown signing key {kid}")

        try:
            verified = jwt.decode(
                token,
                key,
                algorithms=self.algorithms,
                issuer=self.issuer,
                options={"verify_aud": False, "verify_at_hash": False, "leeway": 0},
            )
        except JWTError as exc:
            raise TokenValidationError(f"signature verification failed: {exc}") from exc

        if verified.get("client_id") != self.audience:
            raise TokenValidationError("client_id does not match audience")
        return verified

    async def _get_key(self, kid: str) -> Optional[Dict[str, Any]]:
        stale = time.monotonic() - self._last_refresh > self.refresh_interval
        key = None if stale else self._find_key(self._keys, kid)
        if key is None:
            await self._refresh_keys(seen=self._last_refresh)
            key = self._find_key(self._keys, kid)
        return key

    @staticmethod
    def _find_key(keys: Iterable[Dict[str, Any]], kid: str) -> Optional[Dict[str, Any]]:
        for key in keys:
            if key.get("kid") == kid:
                return key
        return None

    async def _refresh_keys(self, *, seen: float) -> None:
        async with self._lock:
            if self._last_refresh != seen:
                # Another request refreshed while this one waited for the lock.
                return
            try:
                response = await self._client.get(self.jwks_url)
                response.raise_for_status()
                document = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("jwks_fetch_failed", url=self.jwks_url, error=str(exc))
                raise TokenValidationError("signing keys unavailable") from exc

            keys = document.get("keys") if isinstance(document, dict) else None
            if not isinstance(keys, list):
                raise TokenValidationError("signing keys document is invalid")
            self._keys = keys
            self._last_refresh = time.monotonic()
            logger.debug("jwks_refreshed", url=self.jwks_url, key_count=len(keys))
