"""Domain records, errors and service interfaces of the loyalty system."""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class AccrualStatus(str, enum.Enum):
    """Processing state of an order in the accrual system."""

    NEW = "NEW"
    PROCESSING = "PROCESSING"
    INVALID = "INVALID"
    PROCESSED = "PROCESSED"

    @classmethod
    def parse(cls, value: str | bytes) -> AccrualStatus:
        """Build a status from a stored text or bytes value."""
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode()
        if not isinstance(value, str):
            raise TypeError(
                f"unsupported scan type for AccrualStatus: {type(value).__name__}"
            )
        return cls(value)


@dataclass
class Order:
    id: str
    user_login: str
    uploaded_at: datetime
    accrual_status: AccrualStatus
    accrual_points: float | None = None


@dataclass
class User:
    login: str
    password: str
    accrual_balance: float = 0.0


@dataclass
class Withdrawal:
    id: int
    order_number: str
    user_login: str
    amount: float
    processed_at: datetime


@dataclass
class BalanceRow:
    withdrawn: float
    current: float


@dataclass
class AccrualOrder:
    """An order as reported by the accrual system."""

    order: str
    status: str
    accrual: float | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> AccrualOrder:
        """Build an order from a decoded JSON object."""
        if not isinstance(data, Mapping):
            raise TypeError("accrual order must be a JSON object")
        accrual = data.get("accrual")
        return cls(
            order=str(data.get("order", "")),
            status=str(data.get("status", "")),
            accrual=None if accrual is None else float(accrual),
        )


class InsufficientFundsError(Exception):
    """The user's balance does not cover a withdrawal."""

    def __init__(self, message: str = "insufficient funds") -> None:
        super().__init__(message)


class RecordNotFoundError(LookupError):
    """A query that expects one row found none."""

    def __init__(self, message: str = "no rows in result set") -> None:
        super().__init__(message)


class RetryAfterError(Exception):
    """The accrual system asks to wait before the next request."""

    def __init__(self, interval: int) -> None:
        self.interval = int(interval)
        super().__init__(f"can not handle requests in {self.interval} seconds")


@dataclass
class Claims:
    """Claims carried by an authentication token."""

    subject: str
    expires_at: datetime | None = None

    def get_subject(self) -> str:
        return self.subject


class AuthService(Protocol):
    def new_jwt(self, login: str) -> str:
        """Create a token for the given login."""

    def get_claims(self, token: str) -> Claims:
        """Validate a token and return its claims."""


class Querier(Protocol):
    def balance_get(self, login: str) -> BalanceRow:
        """Current balance and total withdrawn of a user."""

    def order_get(self, order_id: str) -> Order:
        """The order with the given number."""

    def order_get_all(self, user_login: str) -> list[Order]:
        """All orders of a user."""

    def order_get_with_non_final_accrual_status(self, limit: int) -> list[Order]:
        """Up to ``limit`` orders still awaiting accrual."""

    def order_save(self, order_id: str, user_login: str) -> None:
        """Register a new order for a user."""

    def order_update_accrual(
        self, status: AccrualStatus, points: float | None, order_id: str
    ) -> None:
        """Set the accrual state of an order."""

    def user_add_accrual_balance(self, amount: float, login: str) -> None:
        """Add ``amount`` to a user's balance."""

    def user_get(self, login: str) -> User:
        """The user with the given login."""

    def user_save(self, login: str, password: str) -> None:
        """Create a user."""

    def withdrawal_get_all(self, user_login: str) -> list[Withdrawal]:
        """All withdrawals of a user."""

    def withdrawal_save(self, order_number: str, user_login: str, amount: float) -> None:
        """Record a withdrawal."""

    def do_in_tx(self, fn: Callable[[Querier], T]) -> T:
        """Run ``fn`` inside a transaction and commit on success."""