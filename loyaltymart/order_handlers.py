"""HTTP handlers for uploading and listing orders."""

from __future__ import annotations

from datetime import datetime, timedelta
from http import HTTPStatus
from typing import Any, Protocol

from flask import Response, jsonify, request

from loyaltymart.httperrors import HTTPError, internal_server_error, invalid_request_body
from loyaltymart.models import Order
from loyaltymart.security import retrieve_user_login
from loyaltymart.sequences import sort_by_time_desc, transform
from loyaltymart.store import is_unique_violation
from loyaltymart.validation import luhn


class _OrderService(Protocol):
    def order_get(self, order_id: str) -> Order:
        """The order with the given number."""

    def order_get_all(self, user_login: str) -> list[Order]:
        """All orders of a user."""

    def order_save(self, order_id: str, user_login: str) -> None:
        """Register a new order for a user."""


def _rfc3339(moment: datetime) -> str:
    offset = moment.utcoffset()
    if offset is None or offset == timedelta(0):
        return moment.strftime("%Y-%m-%dT%H:%M:%SZ")
    return moment.replace(microsecond=0).isoformat()


def _order_response(order: Order) -> dict[str, Any]:
    body: dict[str, Any] = {
        "number": order.id,
        "status": order.accrual_status.value,
        "uploaded_at": _rfc3339(order.uploaded_at),
    }
    if order.accrual_points is not None:
        body["accrual"] = order.accrual_points
    return body


class OrderHandler:
    """Accepts order numbers from users and lists their orders."""

    def __init__(self, order_service: _OrderService) -> None:
        self._order_service = order_service

    def create(self) -> Response:
        """Register the order number sent as the request body."""
        try:
            order_id = request.get_data(as_text=True)
        except UnicodeDecodeError as err:
            raise invalid_request_body(err) from err

        if not luhn(order_id):
            raise HTTPError(HTTPStatus.UNPROCESSABLE_ENTITY, "invalid order id")

        user_login = retrieve_user_login()

        try:
            self._order_service.order_save(order_id, user_login)
        except Exception as err:
            if not is_unique_violation(err):
                raise internal_server_error(err)
            try:
                existing = self._order_service.order_get(order_id)
            except Exception as lookup_err:
                raise internal_server_error(lookup_err)
            if existing.user_login != user_login:
                raise HTTPError(
                    HTTPStatus.CONFLICT, "order has been created by another user"
                ) from err
            return Response(status=HTTPStatus.OK)

        return Response(status=HTTPStatus.ACCEPTED)

    def get_all(self) -> Response:
        """The caller's orders, latest upload first."""
        user_login = retrieve_user_login()
        try:
            orders = list(self._order_service.order_get_all(user_login))
        except Exception as err:
            raise internal_server_error(err)

        if not orders:
            return Response(status=HTTPStatus.NO_CONTENT)

        sort_by_time_desc(orders, lambda order: order.uploaded_at)
        return jsonify(transform(orders, _order_response))