"""Unit tests for result -> HTTP error mapping."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.errors import (
    STATUS_BY_KIND,
    ApiError,
    api_error_handler,
    unhandled_exception_handler,
    unwrap,
)
from src.models.result import ErrorKind, Ok, fail


class TestUnwrap:
    def test_ok_returns_value(self):
        assert unwrap(Ok(42)) == 42

    @pytest.mark.parametrize(
        "kind, status_code",
        [
            (ErrorKind.VALIDATION, 400),
            (ErrorKind.BAD_REQUEST, 400),
            (ErrorKind.CONFLICT, 409),
            (ErrorKind.UNAUTHORIZED, 401),
            (ErrorKind.FORBIDDEN, 403),
            (ErrorKind.NOT_FOUND, 404),
            (ErrorKind.INTERNAL, 500),
        ],
    )
    def test_err_raises_with_status(self, kind, status_code):
        with pytest.raises(ApiError) as exc_info:
            unwrap(fail(kind, "nope"))
        assert exc_info.value.status_code == status_code
        assert exc_info.value.message == "nope"

    def test_every_kind_is_mapped(self):
        assert set(STATUS_BY_KIND) == set(ErrorKind)

    def test_field_errors_carried(self):
        with pytest.raises(ApiError) as exc_info:
            unwrap(fail(ErrorKind.VALIDATION, "Validation failed", email=["Invalid email address"]))
        assert exc_info.value.errors == {"email": ["Invalid email address"]}


class TestHandlers:
    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_exception_handler(ApiError, api_error_handler)
        app.add_exception_handler(Exception, unhandled_exception_handler)

        @app.get("/conflict")
        async def conflict():
            unwrap(fail(ErrorKind.CONFLICT, "User already registered with username or email"))

        @app.get("/crash")
        async def crash():
            raise RuntimeError("database password is hunter2")

        return TestClient(app, raise_server_exceptions=False)

    def test_known_error_body(self, client):
        response = client.get("/conflict")

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "User already registered with username or email"
        assert body["errors"] == {}

    def test_unexpected_error_is_generic_500(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        assert response.json()["message"] == "Internal Server Error"
        assert "hunter2" not in response.text
