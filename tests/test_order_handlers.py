import sqlite3
from datetime import datetime, timedelta, timezone

import pytest
from flask import Flask

from loyaltymart.httperrors import HTTPError
from loyaltymart.models import AccrualStatus, Claims, Order
from loyaltymart.order_handlers import OrderHandler
from loyaltymart.security import require_auth
from loyaltymart.store import Database, connect, run_migrations

AUTH = {"Authorization": "Bearer token"}


class FakeAuth:
    def __init__(self):
        self.login = "alice"

    def new_jwt(self, login):
        return "token"

    def get_claims(self, token):
        if token != "token":
            raise ValueError("bad token")
        return Claims(subject=self.login)


class FixedOrders:
    def __init__(self, orders=(), fail=False):
        self.orders = list(orders)
        self.fail = fail

    def order_get(self, order_id):
        raise AssertionError("not used")

    def order_get_all(self, user_login):
        return list(self.orders)

    def order_save(self, order_id, user_login):
        if self.fail:
            raise sqlite3.OperationalError("database is locked")


@pytest.fixture
def db():
    conn = connect(":memory:")
    run_migrations(conn)
    database = Database(conn)
    database.user_save("alice", "password")
    database.user_save("bob", "password")
    yield database
    conn.close()


def make_client(order_service, auth):
    handler = OrderHandler(order_service)
    secured = require_auth(auth)
    app = Flask(__name__)
    app.testing = True
    app.add_url_rule("/orders", "create", secured(handler.create), methods=["POST"])
    app.add_url_rule("/orders", "get_all", secured(handler.get_all), methods=["GET"])

    @app.errorhandler(HTTPError)
    def _http_error(err):
        return {"message": err.message}, err.status

    return app.test_client()


def test_new_order_is_accepted(db):
    client = make_client(db, FakeAuth())
    response = client.post("/orders", data="12345674", headers=AUTH)
    assert response.status_code == 202
    stored = db.order_get("12345674")
    assert stored.user_login == "alice"
    assert stored.accrual_status is AccrualStatus.NEW


def test_same_order_from_same_user_is_ok(db):
    client = make_client(db, FakeAuth())
    client.post("/orders", data="12345674", headers=AUTH)
    response = client.post("/orders", data="12345674", headers=AUTH)
    assert response.status_code == 200


def test_same_order_from_other_user_conflicts(db):
    auth = FakeAuth()
    client = make_client(db, auth)
    client.post("/orders", data="12345674", headers=AUTH)
    auth.login = "bob"
    response = client.post("/orders", data="12345674", headers=AUTH)
    assert response.status_code == 409
    assert response.get_json()["message"] == "order has been created by another user"
    assert db.order_get("12345674").user_login == "alice"


@pytest.mark.parametrize("number", ["6291911", "62333", "qwe", ""])
def test_invalid_order_number(db, number):
    client = make_client(db, FakeAuth())
    response = client.post("/orders", data=number, headers=AUTH)
    assert response.status_code == 422
    assert response.get_json()["message"] == "invalid order id"


def test_create_requires_auth(db):
    client = make_client(db, FakeAuth())
    response = client.post("/orders", data="12345674")
    assert response.status_code == 401
    assert db.order_get_all("alice") == []


def test_storage_error_propagates():
    client = make_client(FixedOrders(fail=True), FakeAuth())
    with pytest.raises(sqlite3.OperationalError):
        client.post("/orders", data="12345674", headers=AUTH)


def test_no_orders_gives_no_content(db):
    client = make_client(db, FakeAuth())
    response = client.get("/orders", headers=AUTH)
    assert response.status_code == 204
    assert response.data == b""


def test_orders_are_listed_latest_first():
    orders = [
        Order("8532", "alice", datetime(2024, 1, 1), AccrualStatus.NEW),
        Order("518191", "alice", datetime(2024, 2, 1), AccrualStatus.PROCESSED, 50.0),
        Order(
            "12345674",
            "alice",
            datetime(2024, 1, 15, tzinfo=timezone(timedelta(hours=3))),
            AccrualStatus.INVALID,
        ),
    ]
    client = make_client(FixedOrders(orders), FakeAuth())
    response = client.get("/orders", headers=AUTH)
    assert response.status_code == 200
    body = response.get_json()
    assert [item["number"] for item in body] == ["518191", "12345674", "8532"]
    assert body[0]["status"] == "PROCESSED"
    assert body[0]["accrual"] == 50.0
    assert "accrual" not in body[1]
    assert "accrual" not in body[2]
    assert body[0]["uploaded_at"] == "2024-02-01T00:00:00Z"
    assert body[1]["uploaded_at"] == "2024-01-15T00:00:00+03:00"