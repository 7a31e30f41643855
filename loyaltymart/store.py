"""SQLite-backed storage of users, orders and withdrawals."""

from __future__ import annotations

import contextlib
import sqlite3
import threading
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from loyaltymart.models import (
    AccrualStatus,
    BalanceRow,
    Order,
    RecordNotFoundError,
    User,
    Withdrawal,
)

T = TypeVar("T")

SCHEMA = """
create table if not exists "user" (
    login text primary key,
    password text not null,
    accrual_balance double precision not null default 0
);
create table if not exists "order" (
    id text primary key,
    user_login text not null references "user" (login),
    uploaded_at text not null default (strftime('%Y-%m-%dT%H:%M:%f', 'now')),
    accrual_status text not null default 'NEW'
        check (accrual_status in ('NEW', 'PROCESSING', 'INVALID', 'PROCESSED')),
    accrual_points double precision
);
create table if not exists withdrawal (
    id integer primary key autoincrement,
    order_number text not null,
    user_login text not null references "user" (login),
    sum double precision not null,
    processed_at text not null default (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);
"""

_ORDER_COLUMNS = "id, user_login, uploaded_at, accrual_status, accrual_points"


def connect(path: str) -> sqlite3.Connection:
    """Open a database connection in autocommit mode, shareable across threads."""
    conn = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    conn.execute("pragma foreign_keys = on")
    return conn


def run_migrations(conn: sqlite3.Connection) -> None:
    """Create the schema inside a single transaction."""
    try:
        conn.executescript(f"begin;\n{SCHEMA}\ncommit;")
    except sqlite3.Error:
        if conn.in_transaction:
            conn.execute("rollback")
        raise


def is_unique_violation(err: BaseException) -> bool:
    """Return whether ``err`` reports a unique or primary key conflict."""
    return isinstance(err, sqlite3.IntegrityError) and "UNIQUE constraint failed" in str(err)


def _timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _order(row: Sequence[Any]) -> Order:
    order_id, user_login, uploaded_at, status, points = row
    return Order(
        id=order_id,
        user_login=user_login,
        uploaded_at=_timestamp(uploaded_at),
        accrual_status=AccrualStatus.parse(status),
        accrual_points=None if points is None else float(points),
    )


def _withdrawal(row: Sequence[Any]) -> Withdrawal:
    withdrawal_id, order_number, user_login, amount, processed_at = row
    return Withdrawal(
        id=withdrawal_id,
        order_number=order_number,
        user_login=user_login,
        amount=float(amount),
        processed_at=_timestamp(processed_at),
    )


class Queries:
    """Typed queries over one connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _guard(self) -> contextlib.AbstractContextManager:
        return contextlib.nullcontext()

    def _fetch_one(self, sql: str, params: Sequence[Any]) -> Sequence[Any]:
        with self._guard():
            row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise RecordNotFoundError()
        return row

    def _fetch_all(self, sql: str, params: Sequence[Any]) -> list[Sequence[Any]]:
        with self._guard():
            return self._conn.execute(sql, params).fetchall()

    def _exec(self, sql: str, params: Sequence[Any]) -> None:
        with self._guard():
            self._conn.execute(sql, params)

    def balance_get(self, login: str) -> BalanceRow:
        withdrawn, current = self._fetch_one(
            'select cast(coalesce((select sum(w.sum) from withdrawal w '
            'where w.user_login = u.login), 0) as real) as withdrawn, '
            'u.accrual_balance as "current" from "user" u where u.login = ?',
            (login,),
        )
        return BalanceRow(withdrawn=float(withdrawn), current=float(current))

    def order_get(self, order_id: str) -> Order:
        return _order(
            self._fetch_one(f'select {_ORDER_COLUMNS} from "order" where id = ?', (order_id,))
        )

    def order_get_all(self, user_login: str) -> list[Order]:
        rows = self._fetch_all(
            f'select {_ORDER_COLUMNS} from "order" where user_login = ?', (user_login,)
        )
        return [_order(row) for row in rows]

    def order_get_with_non_final_accrual_status(self, limit: int) -> list[Order]:
        rows = self._fetch_all(
            f'select {_ORDER_COLUMNS} from "order" '
            "where accrual_status not in ('INVALID', 'PROCESSED') limit ?",
            (limit,),
        )
        return [_order(row) for row in rows]

    def order_save(self, order_id: str, user_login: str) -> None:
        self._exec('insert into "order" (id, user_login) values (?, ?)', (order_id, user_login))

    def order_update_accrual(
        self, status: AccrualStatus, points: float | None, order_id: str
    ) -> None:
        self._exec(
            'update "order" set accrual_status = ?, accrual_points = ? where id = ?',
            (AccrualStatus(status).value, points, order_id),
        )

    def user_add_accrual_balance(self, amount: float, login: str) -> None:
        self._exec(
            'update "user" set accrual_balance = accrual_balance + ? where login = ?',
            (amount, login),
        )

    def user_get(self, login: str) -> User:
        user_login, password, balance = self._fetch_one(
            'select login, password, accrual_balance from "user" where login = ?', (login,)
        )
        return User(login=user_login, password=password, accrual_balance=float(balance))

    def user_save(self, login: str, password: str) -> None:
        self._exec('insert into "user" (login, password) values (?, ?)', (login, password))

    def withdrawal_get_all(self, user_login: str) -> list[Withdrawal]:
        rows = self._fetch_all(
            "select w.id, w.order_number, w.user_login, w.sum, w.processed_at "
            "from withdrawal w where w.user_login = ?",
            (user_login,),
        )
        return [_withdrawal(row) for row in rows]

    def withdrawal_save(self, order_number: str, user_login: str, amount: float) -> None:
        self._exec(
            "insert into withdrawal (order_number, user_login, sum) values (?, ?, ?)",
            (order_number, user_login, amount),
        )


class Database(Queries):
    """Queries that serialise access to the connection and run transactions."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__(conn)
        self._lock = threading.RLock()

    def _guard(self) -> contextlib.AbstractContextManager:
        return self._lock

    def do_in_tx(self, fn: Callable[[Queries], T]) -> T:
        """Run ``fn`` in a transaction; commit on success, roll back on error."""
        with self._lock:
            self._conn.execute("begin")
            try:
                result = fn(Queries(self._conn))
                self._conn.execute("commit")
            except BaseException:
                if self._conn.in_transaction:
                    self._conn.execute("rollback")
                raise
            return result