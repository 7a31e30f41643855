import pytest

from loyaltymart.models import (
    AccrualOrder,
    AccrualStatus,
    Claims,
    InsufficientFundsError,
    RetryAfterError,
)


@pytest.mark.parametrize("name", ["NEW", "PROCESSING", "INVALID", "PROCESSED"])
def test_parse_status_from_text(name):
    assert AccrualStatus.parse(name).value == name


def test_parse_status_from_bytes():
    assert AccrualStatus.parse(b"PROCESSED") is AccrualStatus.PROCESSED


def test_parse_status_rejects_other_types():
    with pytest.raises(TypeError):
        AccrualStatus.parse(5)


def test_parse_status_rejects_unknown_value():
    with pytest.raises(ValueError):
        AccrualStatus.parse("UNKNOWN")


def test_accrual_order_from_json_with_accrual():
    order = AccrualOrder.from_json({"order": "12345674", "status": "PROCESSED", "accrual": 500})
    assert order == AccrualOrder(order="12345674", status="PROCESSED", accrual=500.0)


def test_accrual_order_from_json_without_accrual():
    order = AccrualOrder.from_json({"order": "8532", "status": "REGISTERED"})
    assert order.accrual is None
    assert order.status == "REGISTERED"


def test_accrual_order_from_json_rejects_non_object():
    with pytest.raises(TypeError):
        AccrualOrder.from_json(["8532"])


def test_retry_after_error_message():
    err = RetryAfterError(60)
    assert err.interval == 60
    assert str(err) == "can not handle requests in 60 seconds"


def test_insufficient_funds_message():
    assert str(InsufficientFundsError()) == "insufficient funds"


def test_claims_subject():
    assert Claims(subject="alice").get_subject() == "alice"