import pytest

from loyaltymart.models import InsufficientFundsError, RecordNotFoundError
from loyaltymart.store import Database, connect, run_migrations
from loyaltymart.withdraw import WithdrawService


@pytest.fixture
def db():
    conn = connect(":memory:")
    run_migrations(conn)
    database = Database(conn)
    yield database
    conn.close()


def _user(db, login, balance):
    db.user_save(login, "password")
    db.user_add_accrual_balance(balance, login)


def test_withdraw_records_and_debits(db):
    _user(db, "alice", 100.0)
    service = WithdrawService(db, db)

    service.withdraw_balance("alice", "2377225624", 40.0)

    row = db.balance_get("alice")
    assert row.withdrawn == 40.0
    assert row.current + row.withdrawn == 100.0
    withdrawals = db.withdrawal_get_all("alice")
    assert [(w.order_number, w.amount) for w in withdrawals] == [("2377225624", 40.0)]


def test_withdraw_whole_balance_is_allowed(db):
    _user(db, "alice", 25.0)
    WithdrawService(db, db).withdraw_balance("alice", "12345674", 25.0)
    assert db.user_get("alice").accrual_balance == 0.0


def test_insufficient_funds_changes_nothing(db):
    _user(db, "alice", 10.0)
    service = WithdrawService(db, db)

    with pytest.raises(InsufficientFundsError, match="insufficient funds"):
        service.withdraw_balance("alice", "12345674", 10.5)

    assert db.user_get("alice").accrual_balance == 10.0
    assert db.withdrawal_get_all("alice") == []


def test_unknown_user_raises(db):
    with pytest.raises(RecordNotFoundError):
        WithdrawService(db, db).withdraw_balance("nobody", "12345674", 1.0)


def test_failure_inside_transaction_rolls_back(db):
    _user(db, "alice", 50.0)

    class FailingQuerier:
        def do_in_tx(self, fn):
            def wrapped(qtx):
                fn(qtx)
                raise RuntimeError("boom")

            return db.do_in_tx(wrapped)

    with pytest.raises(RuntimeError, match="boom"):
        WithdrawService(db, FailingQuerier()).withdraw_balance("alice", "12345674", 20.0)

    assert db.user_get("alice").accrual_balance == 50.0
    assert db.withdrawal_get_all("alice") == []