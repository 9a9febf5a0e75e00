"""
Accessors for the collaborators built once by ``create_app``.

The application factory stores the repository, identity bridge and token
validator on ``app.state``; these dependencies hand them to route handlers.
Tests swap them by passing their own instances to ``create_app``.
"""
from __future__ import annotations

from fastapi import Request

from .cognito import CognitoIdentityBridge
from .repositories import Repository
from .tokens import TokenValidator


def get_repo(request: Request) -> Repository:
    return request.app.state.repository


def get_identity_bridge(request: Request) -> CognitoIdentityBridge:
    return request.app.state.identity_bridge


def get_token_validator(request: Request) -> TokenValidator:
    return request.app.state.token_validator
