"""Authentication of requests and access to the caller's claims."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

from flask import g, request

from loyaltymart.httperrors import unauthorized
from loyaltymart.models import AuthService, Claims

F = TypeVar("F", bound=Callable[..., Any])

_CLAIMS_KEY = "claims"
JWT_COOKIE_NAME = "jwt"
_BEARER_PREFIX = "Bearer "


def store_claims(claims: Claims) -> None:
    """Keep ``claims`` for the current request."""
    setattr(g, _CLAIMS_KEY, claims)


def retrieve_claims() -> Claims:
    """The claims stored for the current request."""
    claims = g.get(_CLAIMS_KEY)
    if claims is None:
        raise LookupError("no claims stored for this request")
    return claims


def retrieve_user_login() -> str:
    """The login of the authenticated caller."""
    return retrieve_claims().get_subject()


def _token_from_header() -> str:
    header = request.headers.get("Authorization", "")
    return header.removeprefix(_BEARER_PREFIX)


def _token_from_cookie() -> str:
    return request.cookies.get(JWT_COOKIE_NAME, "")


def require_auth(auth_service: AuthService) -> Callable[[F], F]:
    """Decorate a view so it runs only for requests with a valid token."""

    def decorator(view: F) -> F:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            token = _token_from_header() or _token_from_cookie()
            if not token:
                raise unauthorized("no credentials provided")
            try:
                claims = auth_service.get_claims(token)
            except Exception as err:
                raise unauthorized("invalid credentials") from err
            store_claims(claims)
            return view(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator