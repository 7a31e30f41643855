import pytest
import responses

from loyaltymart.accrual import AccrualClient
from loyaltymart.models import AccrualOrder, RetryAfterError

BASE = "http://accrual.example.com"


def test_processed_order_is_decoded():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/api/orders/12345674",
            json={"order": "12345674", "status": "PROCESSED", "accrual": 500},
        )
        result = AccrualClient(BASE).get_order("12345674")
    assert result == AccrualOrder(order="12345674", status="PROCESSED", accrual=500.0)


def test_order_without_accrual():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/api/orders/8532",
            json={"order": "8532", "status": "REGISTERED"},
        )
        result = AccrualClient(BASE).get_order("8532")
    assert result.status == "REGISTERED"
    assert result.accrual is None


def test_scheme_defaults_to_http():
    client = AccrualClient("localhost:8081")
    assert client.base_url == "http://localhost:8081"
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            "http://localhost:8081/api/orders/518191",
            json={"order": "518191", "status": "INVALID"},
        )
        assert client.get_order("518191").status == "INVALID"


def test_no_content_means_not_registered():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/api/orders/8532", status=204)
        with pytest.raises(LookupError, match="order has not been registered"):
            AccrualClient(BASE).get_order("8532")


def test_too_many_requests_carries_interval():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/api/orders/8532",
            status=429,
            headers={"Retry-After": "60"},
        )
        with pytest.raises(RetryAfterError) as info:
            AccrualClient(BASE).get_order("8532")
    assert info.value.interval == 60
    assert str(info.value) == "can not handle requests in 60 seconds"


@pytest.mark.parametrize("header", ["", "soon", "1.5"])
def test_bad_retry_after_header(header):
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/api/orders/8532",
            status=429,
            headers={"Retry-After": header},
        )
        with pytest.raises(ValueError):
            AccrualClient(BASE).get_order("8532")


def test_server_error_gives_empty_order():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/api/orders/8532", status=500, body="oops")
        result = AccrualClient(BASE).get_order("8532")
    assert result == AccrualOrder(order="", status="")