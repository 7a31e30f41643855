"""Order service and the background fetching of accruals."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Protocol

from loyaltymart.models import AccrualOrder, AccrualStatus, Order, Querier, RetryAfterError

WORKERS = 5
FETCH_TICK = 5.0
ORDERS_BATCH_SIZE = WORKERS

_POLL = 0.05

_STATUS_MAPPING = {
    "REGISTERED": AccrualStatus.PROCESSING,
    "INVALID": AccrualStatus.INVALID,
    "PROCESSING": AccrualStatus.PROCESSING,
    "PROCESSED": AccrualStatus.PROCESSED,
}


class _AccrualClient(Protocol):
    def get_order(self, number: str) -> AccrualOrder:
        """Accrual state of an order."""


class OrderService:
    """Stores orders and keeps their accrual state in step with the accrual system."""

    def __init__(
        self,
        querier: Querier,
        accrual_client: _AccrualClient,
        logger: logging.Logger | None = None,
    ) -> None:
        self._querier = querier
        self._accrual_client = accrual_client
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self.fetch_tick = FETCH_TICK

    def order_get(self, order_id: str) -> Order:
        return self._querier.order_get(order_id)

    def order_get_all(self, user_login: str) -> list[Order]:
        return self._querier.order_get_all(user_login)

    def order_save(self, order_id: str, user_login: str) -> None:
        self._querier.order_save(order_id, user_login)

    def process_order(self, order: Order) -> AccrualStatus | None:
        """Fetch the accrual of ``order`` and store it.

        Returns the status written, or None when nothing was written. Errors of
        the accrual client propagate; storage errors are logged.
        """
        response = self._accrual_client.get_order(order.id)
        status = _STATUS_MAPPING.get(response.status)
        if status is None:
            return None

        def update(qtx: Any) -> None:
            try:
                qtx.order_update_accrual(status, response.accrual, order.id)
            except Exception as err:
                raise RuntimeError(f"accrual status update: {err}") from err

            if response.status == AccrualStatus.PROCESSED.value:
                if response.accrual is None:
                    raise ValueError("accrual balance update: processed order has no accrual")
                try:
                    qtx.user_add_accrual_balance(response.accrual, order.user_login)
                except Exception as err:
                    raise RuntimeError(f"accrual balance update: {err}") from err

        try:
            self._querier.do_in_tx(update)
        except Exception as err:
            self._logger.error("%s", err)
            return None
        return status

    def start_accrual_fetching(self, stop_event: threading.Event) -> list[threading.Thread]:
        """Start the workers and the periodic fetcher; they stop with ``stop_event``.

        Returns the started threads, workers first.
        """
        pending: queue.Queue[Order] = queue.Queue(maxsize=ORDERS_BATCH_SIZE)
        threads = [
            threading.Thread(target=self._work, args=(pending, stop_event), daemon=True)
            for _ in range(WORKERS)
        ]
        threads.append(
            threading.Thread(target=self._fetch, args=(pending, stop_event), daemon=True)
        )
        for thread in threads:
            thread.start()
        return threads

    @staticmethod
    def _enqueue(
        pending: queue.Queue[Order], order: Order, stop_event: threading.Event
    ) -> bool:
        while not stop_event.is_set():
            try:
                pending.put(order, timeout=_POLL)
                return True
            except queue.Full:
                continue
        return False

    def _work(self, pending: queue.Queue[Order], stop_event: threading.Event) -> None:
        while True:
            try:
                order = pending.get(timeout=_POLL)
            except queue.Empty:
                if stop_event.is_set():
                    return
                continue

            try:
                self.process_order(order)
            except RetryAfterError as err:
                # Wait as asked, then hand the same order back for another attempt.
                stop_event.wait(err.interval)
                self._enqueue(pending, order, stop_event)
            except Exception as err:
                self._logger.error("failed to get accrual response: %s", err)
                return

    def _fetch(self, pending: queue.Queue[Order], stop_event: threading.Event) -> None:
        while not stop_event.wait(self.fetch_tick):
            if not pending.empty():
                # Earlier orders are still waiting for a worker.
                continue
            try:
                orders = self._querier.order_get_with_non_final_accrual_status(
                    ORDERS_BATCH_SIZE
                )
            except Exception as err:
                self._logger.error("failed to get orders to process: %s", err)
                continue
            for order in orders:
                if not self._enqueue(pending, order, stop_event):
                    return