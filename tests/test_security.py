from datetime import timedelta

import jwt

from clicklink_app.security import create_access_token, resolve_principal


class TestResolvePrincipal:
    """Invalid credentials always mean anonymous, never an error"""

    def test_valid_token(self, test_settings):
        token = create_access_token(42, test_settings)

        assert resolve_principal(f"Bearer {token}", test_settings) == 42

    def test_scheme_is_case_insensitive(self, test_settings):
        token = create_access_token(42, test_settings)

        assert resolve_principal(f"bearer {token}", test_settings) == 42

    def test_missing_header(self, test_settings):
        assert resolve_principal(None, test_settings) is None
        assert resolve_principal("", test_settings) is None

    def test_malformed_header(self, test_settings):
        assert resolve_principal("Bearer", test_settings) is None
        assert resolve_principal("Basic dXNlcjpwYXNz", test_settings) is None
        assert resolve_principal("Bearer not.a.jwt", test_settings) is None

    def test_wrong_secret(self, test_settings):
        token = jwt.encode({"sub": "42"}, "another-secret-key-that-does-not-match-0123", algorithm="HS256")

        assert resolve_principal(f"Bearer {token}", test_settings) is None

    def test_expired_token(self, test_settings):
        token = create_access_token(42, test_settings, expires_delta=timedelta(seconds=-10))

        assert resolve_principal(f"Bearer {token}", test_settings) is None

    def test_non_integer_subject(self, test_settings):
        token = jwt.encode({"sub": "alice"}, test_settings.secret_key, algorithm="HS256")

        assert resolve_principal(f"Bearer {token}", test_settings) is None

    def test_missing_subject(self, test_settings):
        token = jwt.encode({"role": "admin"}, test_settings.secret_key, algorithm="HS256")

        assert resolve_principal(f"Bearer {token}", test_settings) is None

    def test_user_id_claim(self, test_settings):
        token = jwt.encode({"userId": 7}, test_settings.secret_key, algorithm="HS256")

        assert resolve_principal(f"Bearer {token}", test_settings) == 7

    def test_subject_wins_over_user_id(self, test_settings):
        token = jwt.encode({"sub": "3", "userId": 7}, test_settings.secret_key, algorithm="HS256")

        assert resolve_principal(f"Bearer {token}", test_settings) == 3


def test_user_id_token_owns_created_link(client):
    settings = client.app.state.settings
    token = jwt.encode({"userId": 9}, settings.secret_key, algorithm=settings.jwt_algorithm)
    headers = {"Authorization": f"Bearer {token}"}

    created = client.post("/api/v1/urls/", json={"original_url": "https://example.com"}, headers=headers)

    assert created.json()["owner_id"] == 9
    assert client.get("/api/v1/urls/", headers=headers).status_code == 200
