"""HTTP client of the accrual calculation system."""

from __future__ import annotations

import re
from http import HTTPStatus

import requests

from loyaltymart.models import AccrualOrder, RetryAfterError

_INTEGER = re.compile(r"[+-]?[0-9]+")


class AccrualClient:
    """Fetches order accrual data from the accrual system."""

    def __init__(self, base_url: str, session: requests.Session | None = None) -> None:
        if "://" not in base_url:
            base_url = f"http://{base_url}"
        self.base_url = base_url.rstrip("/")
        self._session = session if session is not None else requests.Session()

    def get_order(self, number: str) -> AccrualOrder:
        """Return the accrual state of order ``number``.

        Raises LookupError when the order is not registered and RetryAfterError
        when the accrual system asks to wait.
        """
        response = self._session.get(f"{self.base_url}/api/orders/{number}")

        if response.status_code == HTTPStatus.NO_CONTENT:
            raise LookupError("order has not been registered")
        if response.status_code == HTTPStatus.TOO_MANY_REQUESTS:
            raw = response.headers.get("Retry-After", "")
            if not _INTEGER.fullmatch(raw):
                raise ValueError(f"invalid Retry-After value: {raw!r}")
            raise RetryAfterError(int(raw))
        if not 200 <= response.status_code < 300:
            return AccrualOrder(order="", status="")
        return AccrualOrder.from_json(response.json())