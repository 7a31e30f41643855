"""HTTP handlers for registration and login."""

from __future__ import annotations

import json
from datetime import timedelta
from http import HTTPStatus
from typing import Any, Protocol

import bcrypt
from flask import Response, request

from loyaltymart.httperrors import HTTPError, internal_server_error, invalid_request_body
from loyaltymart.models import AuthService, RecordNotFoundError, User
from loyaltymart.security import JWT_COOKIE_NAME
from loyaltymart.store import is_unique_violation

JWT_COOKIE_PATH = "/"
COOKIE_LIFETIME = timedelta(hours=1)
BCRYPT_COST = 10


class _UserService(Protocol):
    def user_get(self, login: str) -> User:
        """The user with the given login."""

    def user_save(self, login: str, password: str) -> None:
        """Create a user."""


def _read_payload() -> dict[str, Any]:
    raw = request.get_data()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as err:
        raise invalid_request_body(err) from err
    if not isinstance(data, dict):
        raise invalid_request_body("expected a JSON object")
    return data


def _string_field(payload: dict[str, Any], name: str) -> str:
    value = payload.get(name, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise invalid_request_body(f"field {name!r} must be a string")
    return value


def _password_matches(stored_hash: str, password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), stored_hash.encode())
    except ValueError:
        return False


class AuthHandler:
    """Registers users and logs them in, handing out a token cookie."""

    def __init__(self, user_service: _UserService, auth_service: AuthService) -> None:
        self.jwt_cookie_name = JWT_COOKIE_NAME
        self.jwt_cookie_path = JWT_COOKIE_PATH
        self._user_service = user_service
        self._auth_service = auth_service

    def _jwt_response(self, user_login: str) -> Response:
        try:
            token = self._auth_service.new_jwt(user_login)
        except Exception as err:
            raise RuntimeError(f"jwt cookie: {err}") from err

        response = Response(status=HTTPStatus.OK)
        response.set_cookie(
            self.jwt_cookie_name,
            token,
            max_age=int(COOKIE_LIFETIME.total_seconds()),
            path=self.jwt_cookie_path,
            httponly=True,
        )
        return response

    def register(self) -> Response:
        """Create a user and authenticate it."""
        payload = _read_payload()
        login = _string_field(payload, "login")
        password = _string_field(payload, "password")

        try:
            hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_COST))
        except ValueError as err:
            raise internal_server_error(err)

        try:
            self._user_service.user_save(login, hashed.decode())
        except Exception as err:
            if is_unique_violation(err):
                raise HTTPError(HTTPStatus.CONFLICT, "user already exists") from err
            raise internal_server_error(err)

        return self._jwt_response(login)

    def login(self) -> Response:
        """Check a login and password pair and authenticate the user."""
        payload = _read_payload()
        login = _string_field(payload, "login")
        password = _string_field(payload, "password")

        try:
            user = self._user_service.user_get(login)
        except RecordNotFoundError as err:
            raise HTTPError(HTTPStatus.UNAUTHORIZED, "invalid credentials") from err
        except Exception as err:
            raise internal_server_error(err)

        if not _password_matches(user.password, password):
            raise HTTPError(HTTPStatus.UNAUTHORIZED, "invalid credentials")

        return self._jwt_response(user.login)