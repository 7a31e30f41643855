# loyaltymart

A loyalty points service. Users register, upload order numbers, and
receive bonus points once an external accrual system has calculated
them. Points can then be spent (withdrawn) against new orders.

The package is a library: it provides the storage, the services, the
accrual system client and a Flask application. You assemble and start
them from your own code (see "Putting it together" below).

## HTTP API

All routes live under `/api/user`. Everything except registration and
login requires a token, sent either in the `Authorization` header
(a leading `Bearer ` is stripped) or in the `jwt` cookie. Registration
and login set that cookie (path `/`, HTTP-only, one hour lifetime).

| Method | Path                | Purpose                                   |
|--------|---------------------|-------------------------------------------|
| POST   | `/register`         | Create a user and log in (JSON `login`, `password`) |
| POST   | `/login`            | Log in with login and password (JSON)     |
| POST   | `/orders`           | Upload an order number (plain-text body)  |
| GET    | `/orders`           | List the user's orders, newest first      |
| GET    | `/balance`          | `{"current": ..., "withdrawn": ...}`      |
| POST   | `/balance/withdraw` | Spend points: JSON `order`, `sum`         |
| GET    | `/withdrawals`      | List withdrawals, newest first            |

Status codes:

- `400` for a malformed request body;
- `401` for missing or invalid credentials;
- `402` when the balance is too low for a withdrawal;
- `409` when a login is taken, or an order was uploaded by another user;
- `422` when an order number fails the Luhn check;
- `202` when a new order is accepted, `200` when it was already uploaded
  by the same user;
- `204` when a list has nothing in it.

Errors are answered with a JSON body `{"message": ...}`; unexpected
failures are logged and answered with `500`. Passwords are stored as
bcrypt hashes. Timestamps in responses are RFC 3339 strings.

## Modules

- `loyaltymart.models` – records (`Order`, `User`, `Withdrawal`,
  `BalanceRow`, `AccrualOrder`, `Claims`), the `AccrualStatus` enum, the
  errors `InsufficientFundsError`, `RecordNotFoundError` and
  `RetryAfterError`, and the `AuthService` and `Querier` protocols.
- `loyaltymart.store` – SQLite storage: `connect(path)` opens a
  connection, `run_migrations(conn)` creates the schema, `Queries` holds
  the individual queries, `Database` adds locking and `do_in_tx(fn)`,
  which commits on success and rolls back on any error.
  `is_unique_violation(err)` recognises unique-key conflicts.
- `loyaltymart.accrual` – `AccrualClient(base_url, session=None)`;
  `get_order(number)` asks `GET /api/orders/<number>` of the accrual
  system. It raises `LookupError` for `204`, `RetryAfterError` for `429`
  (from the `Retry-After` header). A bare `host:port` gets `http://`.
- `loyaltymart.orders` – `OrderService`: order storage calls,
  `process_order(order)` and `start_accrual_fetching(stop_event)`.
- `loyaltymart.withdraw` – `WithdrawService.withdraw_balance`, which
  raises `InsufficientFundsError` when the balance is too low and
  otherwise records the withdrawal and lowers the balance in one
  transaction.
- `loyaltymart.security` – `require_auth(auth_service)` view decorator
  and `retrieve_user_login()` for the current request.
- `loyaltymart.auth_handlers`, `loyaltymart.balance_handlers`,
  `loyaltymart.order_handlers` – the request handlers.
- `loyaltymart.httperrors` – `HTTPError` and its helpers.
- `loyaltymart.server` – `Server`, which wires everything to routes.

## Accrual processing

`OrderService.start_accrual_fetching(stop_event)` starts five worker
threads and one fetcher thread and returns them. Every `fetch_tick`
seconds (5 by default) the fetcher reads up to five orders whose accrual
status is not yet final, unless earlier ones are still queued. A worker
asks the accrual system about each order, maps `REGISTERED` and
`PROCESSING` to `PROCESSING`, records `INVALID` and `PROCESSED`, and once
an order is `PROCESSED` credits its points to the owner's balance in the
same transaction. When the accrual system answers "too many requests",
the worker waits the interval it asks for and queues the order again;
any other client error is logged and ends that worker. Setting
`stop_event` stops all threads.

## Putting it together

```python
import threading

from loyaltymart.accrual import AccrualClient
from loyaltymart.orders import OrderService
from loyaltymart.server import Server
from loyaltymart.store import Database, connect, run_migrations
from loyaltymart.withdraw import WithdrawService

conn = connect("loyalty.db")
run_migrations(conn)
db = Database(conn)

orders = OrderService(db, AccrualClient("localhost:8081"))
stop = threading.Event()
orders.start_accrual_fetching(stop)

server = Server(
    address="localhost:8080",
    querier=db,
    auth_service=my_auth_service,   # your AuthService implementation
    order_service=orders,
    withdraw_service=WithdrawService(db, db),
)
server.start()   # or server.create_app() to serve it yourself
```

Smaller pieces work on their own:

```python
from loyaltymart.validation import luhn
from loyaltymart.sequences import transform

luhn("12345674")   # True
luhn("62333")      # False
luhn("abc")        # False

transform([1, 2, 3], str)   # ["1", "2", "3"]
```

## What the package does not do

- It has no command and no configuration loading; you start it from
  Python as shown above.
- It ships no token implementation. `AuthService` is a protocol: supply
  an object with `new_jwt(login)` and `get_claims(token)` returning
  `Claims`.
- Storage is SQLite only.
- `Server.start` uses Flask's built-in server and has no graceful
  shutdown.

## Tests

The test suite uses pytest and responses, available through the `test`
extra.