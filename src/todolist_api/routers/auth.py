from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..auth import AuthError, require_bearer_token
from ..cognito import AuthFailure, CognitoIdentityBridge
from ..dependencies import get_identity_bridge
from ..schemas import (
    ConfirmRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfoResponse,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


def _upstream_failure() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    summary="Login",
    description="Exchange an email and password for access, id and refresh tokens.",
    responses={400: {"description": "Login failed", "model": LoginResponse}},
)
async def login(
    payload: LoginRequest,
    bridge: CognitoIdentityBridge = Depends(get_identity_bridge),
):
    result = await bridge.login(payload.identifier, payload.password)
    if result.ok:
        return LoginResponse(
            success=True,
            access_token=result.access_token,
            id_token=result.id_token,
            refresh_token=result.refresh_token,
            expires_in=result.expires_in,
        )
    if result.failure is AuthFailure.UNAVAILABLE:
        return _upstream_failure()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=LoginResponse(success=False, message=result.error).model_dump(by_alias=True, exclude_none=True),
    )


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=RegisterResponse,
    summary="Register",
    description="Create an account. A confirmation code is sent to the given contact.",
    responses={400: {"description": "Registration rejected", "model": MessageResponse}},
)
async def register(
    payload: RegisterRequest,
    bridge: CognitoIdentityBridge = Depends(get_identity_bridge),
):
    outcome = await bridge.register(payload.password, payload.name, payload.identifier, payload.contact)
    if outcome:
        return RegisterResponse(
            message="Registration successful. Please check your email for the verification code.",
            identifier=payload.identifier,
        )
    if outcome.failure is AuthFailure.UNAVAILABLE:
        return _upstream_failure()
    if outcome.failure is AuthFailure.OTHER:
        return _bad_request("Registration failed. Please check your information and try again.")
    return _bad_request(outcome.error or "Registration failed")


# PUBLIC_INTERFACE
@router.post(
    "/confirm",
    response_model=MessageResponse,
    summary="Confirm Registration",
    responses={400: {"description": "Confirmation rejected", "model": MessageResponse}},
)
async def confirm(
    payload: ConfirmRequest,
    bridge: CognitoIdentityBridge = Depends(get_identity_bridge),
):
    outcome = await bridge.confirm(payload.identifier, payload.confirmation_code)
    if outcome:
        return MessageResponse(message="Email confirmed successfully. You can now login.")
    if outcome.failure is AuthFailure.UNAVAILABLE:
        return _upstream_failure()
    if outcome.failure is AuthFailure.OTHER:
        return _bad_request("Email confirmation failed")
    return _bad_request(outcome.error or "Email confirmation failed")


# PUBLIC_INTERFACE
@router.post(
    "/refresh",
    response_model=RefreshResponse,
    summary="Refresh Tokens",
    responses={400: {"description": "Refresh rejected", "model": MessageResponse}},
)
async def refresh(
    payload: RefreshRequest,
    bridge: CognitoIdentityBridge = Depends(get_identity_bridge),
):
    result = await bridge.refresh(payload.refresh_token)
    if result.ok:
        return RefreshResponse(
            access_token=result.access_token,
            id_token=result.id_token,
            expires_in=result.expires_in,
        )
    if result.failure is AuthFailure.UNAVAILABLE:
        return _upstream_failure()
    return _bad_request(result.error or "Token refresh failed")


# PUBLIC_INTERFACE
@router.get(
    "/profile",
    response_model=UserInfoResponse,
    summary="Current User Profile",
    responses={401: {"description": "Missing, invalid or expired bearer token"}},
)
async def profile(
    token: str = Depends(require_bearer_token),
    bridge: CognitoIdentityBridge = Depends(get_identity_bridge),
) -> UserInfoResponse:
    info = await bridge.get_profile(token)
    if info is None:
        raise AuthError()
    return UserInfoResponse(
        username=info.username,
        name=info.name,
        email=info.email,
        phone_number=info.phone_number,
        sub=info.sub,
    )
