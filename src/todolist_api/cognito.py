"""
Identity bridge to an Amazon Cognito user pool.

Talks to the Cognito Identity Provider JSON API over httpx. Every call made on
behalf of the app client carries a SECRET_HASH, the base64 HMAC-SHA256 of
``identifier + client_id`` keyed by the client secret (``client_id`` alone for
refresh requests, which carry no username).

Provider outcomes are returned as values: ``AuthResult`` for token flows and
``BridgeOutcome`` for account flows. No provider or network error escapes
this module.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from .identity import subject_from_token
from .logging_config import get_logger
from .settings import Settings

logger = get_logger(__name__)

_TARGET_PREFIX = "AWSCognitoIdentityProviderService."
_CONTENT_TYPE = "application/x-amz-json-1.1"


class AuthFailure(str, Enum):
    """Closed set of provider failures the API distinguishes."""

    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_CONFIRMED = "not_confirmed"
    USER_NOT_FOUND = "user_not_found"
    CHALLENGE_REQUIRED = "challenge_required"
    USERNAME_EXISTS = "username_exists"
    INVALID_PASSWORD = "invalid_password"
    INVALID_PARAMETER = "invalid_parameter"
    CODE_MISMATCH = "code_mismatch"
    EXPIRED_CODE = "expired_code"
    UNAVAILABLE = "unavailable"
    OTHER = "other"


_FAILURES_BY_CODE = {
    "NotAuthorizedException": AuthFailure.INVALID_CREDENTIALS,
    "UserNotConfirmedException": AuthFailure.NOT_CONFIRMED,
    "UserNotFoundException": AuthFailure.USER_NOT_FOUND,
    "UsernameExistsException": AuthFailure.USERNAME_EXISTS,
    "InvalidPasswordException": AuthFailure.INVALID_PASSWORD,
    "InvalidParameterException": AuthFailure.INVALID_PARAMETER,
    "CodeMismatchException": AuthFailure.CODE_MISMATCH,
    "ExpiredCodeException": AuthFailure.EXPIRED_CODE,
}

_LOGIN_MESSAGES = {
    AuthFailure.INVALID_CREDENTIALS: "Invalid email or password",
    AuthFailure.NOT_CONFIRMED: "User email not confirmed",
    AuthFailure.USER_NOT_FOUND: "User not found",
}


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    access_token: Optional[str] = None
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    failure: Optional[AuthFailure] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class BridgeOutcome:
    ok: bool
    failure: Optional[AuthFailure] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class UserInfo:
    username: Optional[str]
    name: Optional[str]
    email: Optional[str]
    phone_number: Optional[str]
    sub: Optional[str]


class ProviderError(Exception):
    """A failed provider call: Cognito error code plus its message."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")

    @property
    def failure(self) -> AuthFailure:
        return _FAILURES_BY_CODE.get(self.code, AuthFailure.OTHER)


class UnavailableError(ProviderError):
    """The provider could not be reached or answered with a server-side error."""

    @property
    def failure(self) -> AuthFailure:
        return AuthFailure.UNAVAILABLE


# PUBLIC_INTERFACE
def compute_secret_hash(client_secret: str, message: str) -> str:
    """Base64-encoded HMAC-SHA256 of message keyed by client_secret."""
    digest = hmac.new(
        client_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


class CognitoIdentityBridge:
    """Login, registration, confirmation, refresh and profile lookup against Cognito."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None) -> None:
        if not (settings.cognito_endpoint and settings.cognito_client_id and settings.cognito_client_secret):
            raise ValueError("Cognito configuration is missing or incomplete")
        self._endpoint = settings.cognito_endpoint
        self._client_id = settings.cognito_client_id
        self._client_secret = settings.cognito_client_secret
        self._contact_attribute = settings.cognito_contact_attribute
        self._client = client or httpx.AsyncClient(timeout=settings.http_timeout)

    async def close(self) -> None:
        await self._client.aclose()

    def secret_hash(self, identifier: str = "") -> str:
        return compute_secret_hash(self._client_secret, identifier + self._client_id)

    async def _call(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._client.post(
                self._endpoint,
                content=json.dumps(payload),
                headers={"Content-Type": _CONTENT_TYPE, "X-Amz-Target": _TARGET_PREFIX + action},
            )
        except httpx.HTTPError as exc:
            raise UnavailableError(type(exc).__name__, str(exc) or "Identity provider unreachable") from exc

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = None
        if not isinstance(body, dict):
            if response.is_success:
                raise UnavailableError("InvalidResponse", "Identity provider returned an unexpected body")
            body = {}

        if response.status_code >= 500:
            raise UnavailableError(
                f"HTTP{response.status_code}", body.get("message") or response.reason_phrase
            )
        if response.status_code >= 400:
            code = str(body.get("__type", "UnknownError")).rsplit("#", 1)[-1]
            message = body.get("message") or body.get("Message") or code
            raise ProviderError(code, message)
        return body

    # PUBLIC_INTERFACE
    async def login(self, identifier: str, password: str) -> AuthResult:
        """Exchange an email/password pair for Cognito tokens."""
        logger.info("login_attempt", identifier=identifier)
        try:
            body = await self._call(
                "InitiateAuth",
                {
                    "ClientId": self._client_id,
                    "AuthFlow": "USER_PASSWORD_AUTH",
                    "AuthParameters": {
                        "USERNAME": identifier,
                        "PASSWORD": password,
                        "SECRET_HASH": self.secret_hash(identifier),
                    },
                },
            )
        except ProviderError as exc:
            failure = exc.failure
            if failure in _LOGIN_MESSAGES:
                logger.warning("login_failed", identifier=identifier, failure=failure.value, error=exc.message)
            else:
                logger.error("login_error", identifier=identifier, code=exc.code, error=exc.message)
            return AuthResult(ok=False, failure=failure, error=_LOGIN_MESSAGES.get(failure, exc.message))

        tokens = body.get("AuthenticationResult")
        if not tokens:
            challenge = body.get("ChallengeName", "unknown")
            logger.warning("login_challenge", identifier=identifier, challenge=challenge)
            return AuthResult(
                ok=False,
                failure=AuthFailure.CHALLENGE_REQUIRED,
                error=f"Additional authentication step required: {challenge}",
            )

        logger.info("login_succeeded", identifier=identifier)
        return AuthResult(
            ok=True,
            access_token=tokens.get("AccessToken"),
            id_token=tokens.get("IdToken"),
            refresh_token=tokens.get("RefreshToken"),
            expires_in=tokens.get("ExpiresIn"),
        )

    # PUBLIC_INTERFACE
    async def refresh(self, refresh_token: str) -> AuthResult:
        """Trade a refresh token for new access and id tokens."""
        try:
            body = await self._call(
                "InitiateAuth",
                {
                    "ClientId": self._client_id,
                    "AuthFlow": "REFRESH_TOKEN_AUTH",
                    "AuthParameters": {
                        "REFRESH_TOKEN": refresh_token,
                        "SECRET_HASH": self.secret_hash(),
                    },
                },
            )
        except ProviderError as exc:
            logger.error("refresh_failed", code=exc.code, error=exc.message)
            return AuthResult(ok=False, failure=exc.failure, error=exc.message)

        tokens = body.get("AuthenticationResult") or {}
        logger.info("refresh_succeeded")
        return AuthResult(
            ok=True,
            access_token=tokens.get("AccessToken"),
            id_token=tokens.get("IdToken"),
            expires_in=tokens.get("ExpiresIn"),
        )

    # PUBLIC_INTERFACE
    async def register(self, password: str, display_name: str, identifier: str, contact: str) -> BridgeOutcome:
        """Create an account; Cognito sends a confirmation code to contact."""
        logger.info("register_attempt", identifier=identifier)
        attributes: List[Dict[str, str]] = [
            {"Name": "name", "Value": display_name},
            {"Name": self._contact_attribute, "Value": contact},
        ]
        try:
            body = await self._call(
                "SignUp",
                {
                    "ClientId": self._client_id,
                    "Username": identifier,
                    "Password": password,
                    "SecretHash": self.secret_hash(identifier),
                    "UserAttributes": attributes,
                },
            )
        except ProviderError as exc:
            logger.error("register_failed", identifier=identifier, code=exc.code, error=exc.message)
            return BridgeOutcome(ok=False, failure=exc.failure, error=exc.message)

        logger.info("register_succeeded", identifier=identifier, user_sub=body.get("UserSub"))
        return BridgeOutcome(ok=True)

    # PUBLIC_INTERFACE
    async def confirm(self, identifier: str, code: str) -> BridgeOutcome:
        """Confirm a new account with the code delivered at registration."""
        try:
            await self._call(
                "ConfirmSignUp",
                {
                    "ClientId": self._client_id,
                    "Username": identifier,
                    "ConfirmationCode": code,
                    "SecretHash": self.secret_hash(identifier),
                },
            )
        except ProviderError as exc:
            logger.warning("confirm_failed", identifier=identifier, code=exc.code, error=exc.message)
            return BridgeOutcome(ok=False, failure=exc.failure, error=exc.message)

        logger.info("confirm_succeeded", identifier=identifier)
        return BridgeOutcome(ok=True)

    # PUBLIC_INTERFACE
    async def get_profile(self, access_token: str) -> Optional[UserInfo]:
        """Fetch the caller's Cognito attributes. None when the lookup fails."""
        try:
            body = await self._call("GetUser", {"AccessToken": access_token})
        except ProviderError as exc:
            logger.warning("profile_lookup_failed", code=exc.code, error=exc.message)
            return None

        attributes = {a.get("Name"): a.get("Value") for a in body.get("UserAttributes", [])}
        return UserInfo(
            username=body.get("Username"),
            name=attributes.get("name"),
            email=attributes.get("email"),
            phone_number=attributes.get("phone_number"),
            sub=subject_from_token(access_token) or None,
        )
