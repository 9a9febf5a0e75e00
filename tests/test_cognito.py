import base64
import hashlib
import hmac
import json

import httpx
import pytest

from conftest import CLIENT_ID, CLIENT_SECRET, build_settings
from todolist_api.cognito import AuthFailure, CognitoIdentityBridge, compute_secret_hash


def _expected_hash(message: str) -> str:
    mac = hmac.new(CLIENT_SECRET.encode(), message.encode(), hashlib.sha256).digest()
    return base64.b64encode(mac).decode()


class FakeCognito:
    """Records calls and answers with queued (status, body) pairs."""

    def __init__(self):
        self.calls = []
        self.replies = []

    def reply(self, status_code, body=None):
        self.replies.append((status_code, body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.headers["X-Amz-Target"].rsplit(".", 1)[-1], json.loads(request.content)))
        assert request.headers["Content-Type"] == "application/x-amz-json-1.1"
        status_code, body = self.replies.pop(0) if self.replies else (200, {})
        return httpx.Response(status_code, json=body if body is not None else {})


@pytest.fixture
def cognito():
    return FakeCognito()


@pytest.fixture
def identity(cognito):
    client = httpx.AsyncClient(transport=httpx.MockTransport(cognito.handler))
    return CognitoIdentityBridge(build_settings(), client=client)


class TestSecretHash:
    def test_matches_hmac_sha256(self):
        assert compute_secret_hash(CLIENT_SECRET, "bob@example.com" + CLIENT_ID) == _expected_hash(
            "bob@example.com" + CLIENT_ID
        )

    def test_bridge_appends_client_id(self, identity):
        assert identity.secret_hash("bob@example.com") == _expected_hash("bob@example.com" + CLIENT_ID)
        assert identity.secret_hash() == _expected_hash(CLIENT_ID)


class TestConfiguration:
    @pytest.mark.parametrize("field", ["cognito_client_id", "cognito_client_secret", "cognito_endpoint"])
    def test_incomplete_config_is_rejected(self, field):
        with pytest.raises(ValueError, match="Cognito configuration"):
            CognitoIdentityBridge(build_settings(**{field: ""}))


class TestLogin:
    @pytest.mark.asyncio
    async def test_success(self, identity, cognito):
        cognito.reply(
            200,
            {
                "AuthenticationResult": {
                    "AccessToken": "at",
                    "IdToken": "it",
                    "RefreshToken": "rt",
                    "ExpiresIn": 3600,
                    "TokenType": "Bearer",
                }
            },
        )
        result = await identity.login("bob@example.com", "hunter22")

        assert result.ok
        assert (result.access_token, result.id_token, result.refresh_token, result.expires_in) == ("at", "it", "rt", 3600)
        action, payload = cognito.calls[0]
        assert action == "InitiateAuth"
        assert payload["ClientId"] == CLIENT_ID
        assert payload["AuthFlow"] == "USER_PASSWORD_AUTH"
        assert payload["AuthParameters"] == {
            "USERNAME": "bob@example.com",
            "PASSWORD": "hunter22",
            "SECRET_HASH": _expected_hash("bob@example.com" + CLIENT_ID),
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code, failure, message",
        [
            ("NotAuthorizedException", AuthFailure.INVALID_CREDENTIALS, "Invalid email or password"),
            ("UserNotConfirmedException", AuthFailure.NOT_CONFIRMED, "User email not confirmed"),
            ("UserNotFoundException", AuthFailure.USER_NOT_FOUND, "User not found"),
        ],
    )
    async def test_known_failures(self, identity, cognito, code, failure, message):
        cognito.reply(400, {"__type": code, "message": "provider text"})
        result = await identity.login("bob@example.com", "wrong")
        assert not result.ok
        assert result.failure is failure
        assert result.error == message
        assert result.access_token is None

    @pytest.mark.asyncio
    async def test_unexpected_error_keeps_provider_message(self, identity, cognito):
        cognito.reply(400, {"__type": "com.amazonaws#TooManyRequestsException", "message": "Slow down"})
        result = await identity.login("bob@example.com", "pw")
        assert result.failure is AuthFailure.OTHER
        assert result.error == "Slow down"

    @pytest.mark.asyncio
    async def test_challenge_is_not_a_success(self, identity, cognito):
        cognito.reply(200, {"ChallengeName": "NEW_PASSWORD_REQUIRED", "Session": "s"})
        result = await identity.login("bob@example.com", "pw")
        assert not result.ok
        assert result.failure is AuthFailure.CHALLENGE_REQUIRED
        assert "NEW_PASSWORD_REQUIRED" in result.error

    @pytest.mark.asyncio
    async def test_network_error_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        identity = CognitoIdentityBridge(
            build_settings(), client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        result = await identity.login("bob@example.com", "pw")
        assert not result.ok
        assert result.failure is AuthFailure.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, identity, cognito):
        cognito.reply(503, {"message": "Service Unavailable"})
        result = await identity.login("bob@example.com", "pw")
        assert result.failure is AuthFailure.UNAVAILABLE


class TestRefresh:
    @pytest.mark.asyncio
    async def test_hash_covers_client_id_only(self, identity, cognito):
        cognito.reply(200, {"AuthenticationResult": {"AccessToken": "at2", "IdToken": "it2", "ExpiresIn": 3600}})
        result = await identity.refresh("rt")

        assert result.ok
        assert result.access_token == "at2"
        assert result.refresh_token is None
        _, payload = cognito.calls[0]
        assert payload["AuthFlow"] == "REFRESH_TOKEN_AUTH"
        assert payload["AuthParameters"] == {"REFRESH_TOKEN": "rt", "SECRET_HASH": _expected_hash(CLIENT_ID)}

    @pytest.mark.asyncio
    async def test_rejected_refresh_token(self, identity, cognito):
        cognito.reply(400, {"__type": "NotAuthorizedException", "message": "Invalid Refresh Token"})
        result = await identity.refresh("stale")
        assert not result.ok
        assert result.error == "Invalid Refresh Token"


class TestRegister:
    @pytest.mark.asyncio
    async def test_sign_up_payload(self, identity, cognito):
        cognito.reply(200, {"UserConfirmed": False, "UserSub": "new-sub"})
        outcome = await identity.register("Passw0rd!", "Bob", "bob@example.com", "bob@example.com")

        assert outcome
        action, payload = cognito.calls[0]
        assert action == "SignUp"
        assert payload["Username"] == "bob@example.com"
        assert payload["SecretHash"] == _expected_hash("bob@example.com" + CLIENT_ID)
        assert payload["UserAttributes"] == [
            {"Name": "name", "Value": "Bob"},
            {"Name": "email", "Value": "bob@example.com"},
        ]

    @pytest.mark.asyncio
    async def test_contact_attribute_is_configurable(self, cognito):
        client = httpx.AsyncClient(transport=httpx.MockTransport(cognito.handler))
        identity = CognitoIdentityBridge(build_settings(cognito_contact_attribute="phone_number"), client=client)
        await identity.register("Passw0rd!", "Bob", "bob@example.com", "+15550100")
        _, payload = cognito.calls[0]
        assert payload["UserAttributes"][1] == {"Name": "phone_number", "Value": "+15550100"}

    @pytest.mark.asyncio
    async def test_existing_user(self, identity, cognito):
        cognito.reply(400, {"__type": "UsernameExistsException", "message": "User already exists"})
        outcome = await identity.register("Passw0rd!", "Bob", "bob@example.com", "bob@example.com")
        assert not outcome
        assert outcome.failure is AuthFailure.USERNAME_EXISTS
        assert outcome.error == "User already exists"


class TestConfirm:
    @pytest.mark.asyncio
    async def test_success(self, identity, cognito):
        outcome = await identity.confirm("bob@example.com", "123456")
        assert outcome
        action, payload = cognito.calls[0]
        assert action == "ConfirmSignUp"
        assert payload["ConfirmationCode"] == "123456"
        assert payload["SecretHash"] == _expected_hash("bob@example.com" + CLIENT_ID)

    @pytest.mark.asyncio
    async def test_wrong_code(self, identity, cognito):
        cognito.reply(400, {"__type": "CodeMismatchException", "message": "Invalid verification code provided"})
        outcome = await identity.confirm("bob@example.com", "000000")
        assert not outcome
        assert outcome.failure is AuthFailure.CODE_MISMATCH


class TestGetProfile:
    @pytest.mark.asyncio
    async def test_maps_attributes(self, identity, cognito, make_token):
        token = make_token("sub-from-token")
        cognito.reply(
            200,
            {
                "Username": "bob@example.com",
                "UserAttributes": [
                    {"Name": "sub", "Value": "ignored"},
                    {"Name": "name", "Value": "Bob"},
                    {"Name": "email", "Value": "bob@example.com"},
                ],
            },
        )
        info = await identity.get_profile(token)

        assert info.username == "bob@example.com"
        assert info.name == "Bob"
        assert info.email == "bob@example.com"
        assert info.phone_number is None
        assert info.sub == "sub-from-token"
        action, payload = cognito.calls[0]
        assert action == "GetUser"
        assert payload == {"AccessToken": token}

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, identity, cognito):
        cognito.reply(400, {"__type": "NotAuthorizedException", "message": "Access Token has expired"})
        assert await identity.get_profile("token") is None
