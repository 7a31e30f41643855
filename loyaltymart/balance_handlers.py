"""HTTP handlers for the balance and withdrawals of a user."""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from http import HTTPStatus
from typing import Any, Protocol

from flask import Response, jsonify, request

from loyaltymart.httperrors import HTTPError, internal_server_error, invalid_request_body
from loyaltymart.models import BalanceRow, InsufficientFundsError, Withdrawal
from loyaltymart.security import retrieve_user_login
from loyaltymart.sequences import sort_by_time_desc, transform
from loyaltymart.validation import luhn


class _BalanceService(Protocol):
    def balance_get(self, login: str) -> BalanceRow:
        """Current balance and total withdrawn of a user."""

    def withdrawal_get_all(self, user_login: str) -> list[Withdrawal]:
        """All withdrawals of a user."""


class _WithdrawService(Protocol):
    def withdraw_balance(self, user_login: str, order_id: str, amount: float) -> None:
        """Spend points of a user against an order."""


def _rfc3339(moment: datetime) -> str:
    offset = moment.utcoffset()
    if offset is None or offset == timedelta(0):
        return moment.strftime("%Y-%m-%dT%H:%M:%SZ")
    return moment.replace(microsecond=0).isoformat()


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


def _withdrawal_response(withdrawal: Withdrawal) -> dict[str, Any]:
    return {
        "order": withdrawal.order_number,
        "sum": withdrawal.amount,
        "processed_at": _rfc3339(withdrawal.processed_at),
    }


class BalanceHandler:
    """Reports balances and withdrawals, and spends points."""

    def __init__(
        self, balance_service: _BalanceService, withdraw_service: _WithdrawService
    ) -> None:
        self._balance_service = balance_service
        self._withdraw_service = withdraw_service

    def get(self) -> Response:
        """The caller's current balance and total withdrawn."""
        user_login = retrieve_user_login()
        try:
            row = self._balance_service.balance_get(user_login)
        except Exception as err:
            raise internal_server_error(err)
        return jsonify({"current": row.current, "withdrawn": row.withdrawn})

    def get_all_withdrawals(self) -> Response:
        """The caller's withdrawals, latest first."""
        user_login = retrieve_user_login()
        try:
            withdrawals = list(self._balance_service.withdrawal_get_all(user_login))
        except Exception as err:
            raise internal_server_error(err)

        if not withdrawals:
            return Response(status=HTTPStatus.NO_CONTENT)

        sort_by_time_desc(withdrawals, lambda w: w.processed_at)
        return jsonify(transform(withdrawals, _withdrawal_response))

    def withdraw_balance(self) -> Response:
        """Spend points of the caller against an order number."""
        user_login = retrieve_user_login()
        payload = _read_payload()

        order = payload.get("order", "")
        if order is None:
            order = ""
        if not isinstance(order, str):
            raise invalid_request_body("field 'order' must be a string")
        amount = payload.get("sum", 0)
        if amount is None:
            amount = 0
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise invalid_request_body("field 'sum' must be a number")

        if not luhn(order):
            raise HTTPError(HTTPStatus.UNPROCESSABLE_ENTITY, "invalid order id")

        try:
            self._withdraw_service.withdraw_balance(user_login, order, float(amount))
        except InsufficientFundsError as err:
            raise HTTPError(HTTPStatus.PAYMENT_REQUIRED) from err
        except Exception as err:
            raise internal_server_error(err)

        return Response(status=HTTPStatus.OK)