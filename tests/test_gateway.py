import json
from decimal import Decimal

import httpx
import pytest

from venue_booking.errors import PaymentGatewayError
from venue_booking.gateway import HttpPaymentGateway, SimulatedPaymentGateway, to_minor_units


def _gateway(handler):
    return HttpPaymentGateway(
        "https://payments.test/v1/",
        "sk_test",
        transport=httpx.MockTransport(handler),
    )


def test_to_minor_units():
    assert to_minor_units(Decimal("188.00")) == 18800
    assert to_minor_units(Decimal("0.5")) == 50


async def test_create_intent_posts_minor_units():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "pi_123", "client_secret": "secret_abc"})

    intent = await _gateway(handler).create_intent(7, Decimal("188.00"), "USD")

    assert intent.reference == "pi_123"
    assert intent.client_secret == "secret_abc"
    assert intent.amount == Decimal("188.00")

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://payments.test/v1/payment_intents"
    assert request.headers["Authorization"] == "Bearer sk_test"
    assert json.loads(request.content) == {
        "amount": 18800,
        "currency": "usd",
        "metadata": {"booking_id": "7"},
    }


async def test_confirm_reads_intent_status():
    statuses = {"pi_ok": "succeeded", "pi_pending": "processing"}

    def handler(request):
        reference = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(
            200,
            json={
                "id": reference,
                "status": statuses[reference],
                "amount_received": 18800,
                "metadata": {"booking_id": "7"},
            },
        )

    gateway = _gateway(handler)

    assert await gateway.confirm("pi_ok", 7, Decimal("188.00")) is True
    assert await gateway.confirm("pi_pending", 7, Decimal("188.00")) is False


async def test_confirm_rejects_charge_for_other_booking_or_amount():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "id": "pi_ok",
                "status": "succeeded",
                "amount_received": 18800,
                "metadata": {"booking_id": "7"},
            },
        )

    gateway = _gateway(handler)

    assert await gateway.confirm("pi_ok", 8, Decimal("188.00")) is False
    assert await gateway.confirm("pi_ok", 7, Decimal("187.00")) is False


async def test_refund_returns_refund_reference():
    def handler(request):
        assert json.loads(request.content) == {"payment_intent": "pi_123", "amount": 7500}
        return httpx.Response(200, json={"id": "re_456"})

    assert await _gateway(handler).refund("pi_123", Decimal("75.00")) == "re_456"


async def test_error_status_raises_gateway_error():
    def handler(request):
        return httpx.Response(402, json={"error": "card_declined"})

    with pytest.raises(PaymentGatewayError) as exc_info:
        await _gateway(handler).confirm("pi_123", 7, Decimal("10.00"))

    assert "402" in exc_info.value.message


async def test_timeout_raises_gateway_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(PaymentGatewayError):
        await _gateway(handler).create_intent(7, Decimal("10.00"), "USD")


async def test_simulated_gateway():
    gateway = SimulatedPaymentGateway()
    gateway.declined.add("sim_bad")

    intent = await gateway.create_intent(3, Decimal("50.00"), "USD")

    assert intent.reference.startswith("sim_")
    assert await gateway.confirm(intent.reference, 3, Decimal("50.00")) is True
    assert await gateway.confirm(intent.reference, 4, Decimal("50.00")) is False
    assert await gateway.confirm(intent.reference, 3, Decimal("25.00")) is False
    assert await gateway.confirm("sim_bad", 3, Decimal("50.00")) is False
    assert (await gateway.refund(intent.reference, Decimal("5.00"))).startswith("sim_")
    assert gateway.refunds == [(intent.reference, Decimal("5.00"))]
