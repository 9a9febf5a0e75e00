import base64
import time
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from todolist_api.cognito import CognitoIdentityBridge
from todolist_api.main import create_app
from todolist_api.repositories import InMemoryRepository
from todolist_api.settings import Settings
from todolist_api.tokens import TokenValidator

ISSUER = "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_TestPool"
CLIENT_ID = "test-client-id"
CLIENT_SECRET = "test-client-secret"
JWKS_URL = f"{ISSUER}/.well-known/jwks.json"
KID = "test-key"


def _oct_jwk(secret: bytes, kid: str = KID) -> dict:
    k = base64.urlsafe_b64encode(secret).rstrip(b"=").decode("ascii")
    return {"kty": "oct", "kid": kid, "alg": "HS256", "k": k}


SIGNING_JWK = _oct_jwk(b"signing-secret-used-only-in-tests")
FORGED_JWK = _oct_jwk(b"some-other-secret-nobody-published")


def build_settings(**overrides) -> Settings:
    values = dict(
        persistence_backend="memory",
        sqlite_db_path="./data/test.db",
        cors_allow_origins=["*"],
        api_prefix="/api",
        cognito_region="eu-west-1",
        cognito_user_pool_id="eu-west-1_TestPool",
        cognito_client_id=CLIENT_ID,
        cognito_client_secret=CLIENT_SECRET,
        cognito_endpoint="https://cognito-idp.eu-west-1.amazonaws.com/",
        cognito_contact_attribute="email",
        jwt_issuer=ISSUER,
        jwt_audience=CLIENT_ID,
        jwt_jwks_url=JWKS_URL,
        jwt_algorithms=("HS256",),
        http_timeout=5.0,
        log_level="warning",
        log_json=False,
        host="127.0.0.1",
        port=8000,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return build_settings()


@pytest.fixture
def make_token():
    """Mint a signed access token shaped like the ones Cognito issues."""

    def _make(
        sub="user-a",
        *,
        issuer=ISSUER,
        client_id=CLIENT_ID,
        expires_in=3600,
        key=SIGNING_JWK,
        kid=KID,
    ) -> str:
        now = int(time.time())
        claims = {
            "iss": issuer,
            "client_id": client_id,
            "token_use": "access",
            "iat": now,
            "exp": now + expires_in,
        }
        if sub is not None:
            claims["sub"] = sub
        return jwt.encode(claims, key, algorithm="HS256", headers={"kid": kid})

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(sub="user-a", **kwargs) -> dict:
        return {"Authorization": f"Bearer {make_token(sub, **kwargs)}"}

    return _headers


@pytest.fixture
def jwks_requests():
    """Requests received by the fake JWKS endpoint."""
    return []


@pytest.fixture
def jwks_client(jwks_requests) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        jwks_requests.append(request)
        return httpx.Response(200, json={"keys": [SIGNING_JWK]})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def validator(jwks_client) -> TokenValidator:
    return TokenValidator(ISSUER, CLIENT_ID, JWKS_URL, algorithms=("HS256",), client=jwks_client)


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def bridge():
    return MagicMock(spec=CognitoIdentityBridge)


@pytest.fixture
def app(settings, repo, bridge, validator):
    return create_app(settings, repository=repo, identity_bridge=bridge, token_validator=validator)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
