from todolist_api.cognito import AuthFailure, AuthResult, BridgeOutcome, UserInfo

AUTH = "/api/auth"


class TestLogin:
    def test_success_returns_tokens(self, client, bridge):
        bridge.login.return_value = AuthResult(
            ok=True, access_token="at", id_token="it", refresh_token="rt", expires_in=3600
        )
        res = client.post(f"{AUTH}/login", json={"identifier": "bob@example.com", "password": "pw"})

        assert res.status_code == 200
        assert res.json() == {
            "success": True,
            "accessToken": "at",
            "idToken": "it",
            "refreshToken": "rt",
            "expiresIn": 3600,
        }
        bridge.login.assert_awaited_once_with("bob@example.com", "pw")

    def test_bad_credentials(self, client, bridge):
        bridge.login.return_value = AuthResult(
            ok=False, failure=AuthFailure.INVALID_CREDENTIALS, error="Invalid email or password"
        )
        res = client.post(f"{AUTH}/login", json={"identifier": "bob@example.com", "password": "nope"})

        assert res.status_code == 400
        assert res.json() == {"success": False, "message": "Invalid email or password"}

    def test_provider_outage_is_generic(self, client, bridge):
        bridge.login.return_value = AuthResult(ok=False, failure=AuthFailure.UNAVAILABLE, error="ConnectError")
        res = client.post(f"{AUTH}/login", json={"identifier": "bob@example.com", "password": "pw"})

        assert res.status_code == 500
        assert res.json() == {"message": "Internal server error"}

    def test_missing_password(self, client, bridge):
        res = client.post(f"{AUTH}/login", json={"identifier": "bob@example.com"})
        assert res.status_code == 400
        assert res.json()["errors"][0]["field"] == "password"
        bridge.login.assert_not_awaited()


class TestRegister:
    BODY = {
        "password": "Passw0rd!",
        "name": "Bob",
        "identifier": "bob@example.com",
        "contact": "bob@example.com",
    }

    def test_success(self, client, bridge):
        bridge.register.return_value = BridgeOutcome(ok=True)
        res = client.post(f"{AUTH}/register", json=self.BODY)

        assert res.status_code == 200
        assert res.json()["identifier"] == "bob@example.com"
        assert "verification code" in res.json()["message"]
        bridge.register.assert_awaited_once_with("Passw0rd!", "Bob", "bob@example.com", "bob@example.com")

    def test_existing_account_reports_provider_message(self, client, bridge):
        bridge.register.return_value = BridgeOutcome(
            ok=False, failure=AuthFailure.USERNAME_EXISTS, error="User already exists"
        )
        res = client.post(f"{AUTH}/register", json=self.BODY)
        assert res.status_code == 400
        assert res.json() == {"message": "User already exists"}

    def test_unclassified_failure_is_generic(self, client, bridge):
        bridge.register.return_value = BridgeOutcome(ok=False, failure=AuthFailure.OTHER, error="internal detail")
        res = client.post(f"{AUTH}/register", json=self.BODY)
        assert res.status_code == 400
        assert "internal detail" not in res.text

    def test_short_password(self, client, bridge):
        res = client.post(f"{AUTH}/register", json={**self.BODY, "password": "short"})
        assert res.status_code == 400
        bridge.register.assert_not_awaited()


class TestConfirm:
    def test_success(self, client, bridge):
        bridge.confirm.return_value = BridgeOutcome(ok=True)
        res = client.post(f"{AUTH}/confirm", json={"identifier": "bob@example.com", "confirmationCode": "123456"})

        assert res.status_code == 200
        assert res.json() == {"message": "Email confirmed successfully. You can now login."}
        bridge.confirm.assert_awaited_once_with("bob@example.com", "123456")

    def test_wrong_code(self, client, bridge):
        bridge.confirm.return_value = BridgeOutcome(
            ok=False, failure=AuthFailure.CODE_MISMATCH, error="Invalid verification code provided"
        )
        res = client.post(f"{AUTH}/confirm", json={"identifier": "bob@example.com", "confirmationCode": "0"})
        assert res.status_code == 400
        assert res.json() == {"message": "Invalid verification code provided"}


class TestRefresh:
    def test_success(self, client, bridge):
        bridge.refresh.return_value = AuthResult(ok=True, access_token="at2", id_token="it2", expires_in=3600)
        res = client.post(f"{AUTH}/refresh", json={"refreshToken": "rt"})

        assert res.status_code == 200
        assert res.json() == {"accessToken": "at2", "idToken": "it2", "expiresIn": 3600}

    def test_rejected(self, client, bridge):
        bridge.refresh.return_value = AuthResult(
            ok=False, failure=AuthFailure.INVALID_CREDENTIALS, error="Invalid Refresh Token"
        )
        res = client.post(f"{AUTH}/refresh", json={"refreshToken": "stale"})
        assert res.status_code == 400
        assert res.json() == {"message": "Invalid Refresh Token"}


class TestProfile:
    def test_returns_provider_profile(self, client, bridge, make_token):
        token = make_token("user-a")
        bridge.get_profile.return_value = UserInfo(
            username="bob@example.com", name="Bob", email="bob@example.com", phone_number=None, sub="user-a"
        )
        res = client.get(f"{AUTH}/profile", headers={"Authorization": f"Bearer {token}"})

        assert res.status_code == 200
        assert res.json()["sub"] == "user-a"
        assert res.json()["name"] == "Bob"
        bridge.get_profile.assert_awaited_once_with(token)

    def test_requires_token(self, client, bridge):
        res = client.get(f"{AUTH}/profile")
        assert res.status_code == 401
        bridge.get_profile.assert_not_awaited()

    def test_provider_lookup_failure(self, client, bridge, auth_headers):
        bridge.get_profile.return_value = None
        res = client.get(f"{AUTH}/profile", headers=auth_headers())
        assert res.status_code == 401
