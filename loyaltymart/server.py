"""The HTTP server of the loyalty system."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from flask import Flask, jsonify

from loyaltymart.auth_handlers import AuthHandler
from loyaltymart.balance_handlers import BalanceHandler
from loyaltymart.httperrors import HTTPError
from loyaltymart.models import AuthService, Querier
from loyaltymart.order_handlers import OrderHandler
from loyaltymart.security import require_auth

API_USER_PREFIX = "/api/user"


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address: {address!r}")
    return host.strip("[]") or "0.0.0.0", int(port)


@dataclass
class Server:
    """Wires the handlers to their routes and serves them."""

    address: str
    querier: Querier
    auth_service: AuthService
    order_service: Any
    withdraw_service: Any
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def _handle_http_error(self, err: HTTPError) -> Any:
        return jsonify(message=err.message), err.status

    def _handle_internal_error(self, err: Exception) -> Any:
        original = getattr(err, "original_exception", None) or err
        self.logger.error("request failed: %s", original)
        status = HTTPStatus.INTERNAL_SERVER_ERROR
        return jsonify(message=status.phrase), status

    def create_app(self) -> Flask:
        """Build the application with every route registered."""
        app = Flask(__name__)

        auth_handler = AuthHandler(self.querier, self.auth_service)
        order_handler = OrderHandler(self.order_service)
        balance_handler = BalanceHandler(self.querier, self.withdraw_service)
        secured = require_auth(self.auth_service)

        routes = [
            ("/register", "register", auth_handler.register, "POST"),
            ("/login", "login", auth_handler.login, "POST"),
            ("/orders", "orders_create", secured(order_handler.create), "POST"),
            ("/orders", "orders_get_all", secured(order_handler.get_all), "GET"),
            ("/balance", "balance_get", secured(balance_handler.get), "GET"),
            (
                "/balance/withdraw",
                "balance_withdraw",
                secured(balance_handler.withdraw_balance),
                "POST",
            ),
            (
                "/withdrawals",
                "withdrawals_get_all",
                secured(balance_handler.get_all_withdrawals),
                "GET",
            ),
        ]
        for path, endpoint, view, method in routes:
            app.add_url_rule(
                f"{API_USER_PREFIX}{path}", endpoint, view, methods=[method]
            )

        app.register_error_handler(HTTPError, self._handle_http_error)
        app.register_error_handler(500, self._handle_internal_error)
        return app

    def start(self) -> None:
        """Serve on the configured address until interrupted."""
        host, port = _split_address(self.address)
        self.create_app().run(host=host, port=port)