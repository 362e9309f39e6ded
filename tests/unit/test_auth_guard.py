"""Unit tests for AuthGuard and token extraction."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt

from src.models.result import Err, ErrorKind, Ok
from src.services.auth_guard import extract_token
from src.services.token_service import JWT_ALGORITHM


class TestExtractToken:
    def test_cookie_wins_over_header(self):
        token = extract_token({"accessToken": "from-cookie"}, "Bearer from-header")
        assert token == "from-cookie"

    def test_bearer_header(self):
        assert extract_token({}, "Bearer abc.def.ghi") == "abc.def.ghi"

    def test_bearer_prefix_case_insensitive(self):
        assert extract_token({}, "bearer abc") == "abc"

    def test_non_bearer_scheme_ignored(self):
        assert extract_token({}, "Basic dXNlcjpwYXNz") is None

    def test_empty_bearer(self):
        assert extract_token({}, "Bearer   ") is None

    def test_nothing_present(self):
        assert extract_token({}, None) is None


class TestAuthenticate:
    async def test_valid_token_resolves_user(self, auth_guard, token_service, register_user):
        user = await register_user()
        result = await auth_guard.authenticate(token_service.issue_access(str(user.id)))

        assert isinstance(result, Ok)
        assert result.value.id == user.id
        assert not hasattr(result.value, "password_hash")

    async def test_no_token_is_unauthorized(self, auth_guard):
        result = await auth_guard.authenticate(None)
        assert isinstance(result, Err)
        assert result.error.kind is ErrorKind.UNAUTHORIZED

    async def test_wrong_secret_is_forbidden(self, auth_guard, register_user):
        user = await register_user()
        now = datetime.now(timezone.utc)
        forged = jwt.encode(
            {
                "sub": str(user.id),
                "type": "access",
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            "some-other-secret",
            algorithm=JWT_ALGORITHM,
        )

        result = await auth_guard.authenticate(forged)
        assert result.error.kind is ErrorKind.FORBIDDEN

    async def test_refresh_token_is_not_an_access_token(
        self, auth_guard, token_service, register_user
    ):
        user = await register_user()
        result = await auth_guard.authenticate(token_service.issue_refresh(str(user.id)))
        assert result.error.kind is ErrorKind.FORBIDDEN

    async def test_deleted_user_is_not_found(self, auth_guard, token_service):
        result = await auth_guard.authenticate(token_service.issue_access(str(uuid4())))
        assert result.error.kind is ErrorKind.NOT_FOUND

    async def test_does_not_touch_refresh_token(
        self, auth_guard, token_service, session_manager, register_user, user_store
    ):
        user = await register_user()
        session = (await session_manager.login({"username": "alice", "password": "correctpw"})).value

        await auth_guard.authenticate(session.access_token)

        assert user_store.users[user.id].refresh_token == session.refresh_token
