"""Withdrawal of bonus points from a user's balance."""

from __future__ import annotations

from typing import Any, Protocol

from loyaltymart.models import InsufficientFundsError, Querier, User


class _UserService(Protocol):
    def user_get(self, login: str) -> User:
        """The user with the given login."""


class WithdrawService:
    """Spends bonus points and records each withdrawal."""

    def __init__(self, user_service: _UserService, querier: Querier) -> None:
        self._user_service = user_service
        self._querier = querier

    def withdraw_balance(self, user_login: str, order_id: str, amount: float) -> None:
        """Take ``amount`` from the user's balance against ``order_id``.

        Raises InsufficientFundsError when the balance is too low.
        """
        user = self._user_service.user_get(user_login)
        if user.accrual_balance < amount:
            raise InsufficientFundsError()

        def record(qtx: Any) -> None:
            qtx.withdrawal_save(order_id, user_login, amount)
            qtx.user_add_accrual_balance(-amount, user_login)

        self._querier.do_in_tx(record)