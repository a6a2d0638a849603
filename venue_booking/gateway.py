"""Payment gateway clients."""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import httpx

from venue_booking.config import get_settings
from venue_booking.errors import PaymentGatewayError

logger = logging.getLogger(__name__)

settings = get_settings()

SIMULATED_PREFIX = "sim_"


@dataclass(frozen=True)
class PaymentIntent:
    """Intent handed back by the gateway for the customer to pay."""

    reference: str
    amount: Decimal
    currency: str
    client_secret: str | None = None


class PaymentGateway(Protocol):
    async def create_intent(
        self,
        booking_id: int,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent: ...

    async def confirm(self, reference: str, booking_id: int, amount: Decimal) -> bool: ...

    async def refund(self, reference: str, amount: Decimal) -> str: ...


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents."""
    return int((amount * 100).to_integral_value())


class SimulatedPaymentGateway:
    """
    Gateway used when no real provider is configured.

    Intents get ``sim_`` references. A confirmation succeeds when the
    reference is an intent this gateway issued for the same booking and
    amount, unless it was registered as declined.
    """

    def __init__(self):
        self.declined: set[str] = set()
        self.refunds: list[tuple[str, Decimal]] = []
        self.intents: dict[str, tuple[int, Decimal]] = {}
        self._counter = 0

    def _next_id(self, suffix: object) -> str:
        self._counter += 1
        return f"{SIMULATED_PREFIX}{int(time.time() * 1000)}_{self._counter}_{suffix}"

    async def create_intent(
        self,
        booking_id: int,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        reference = self._next_id(booking_id)
        self.intents[reference] = (booking_id, amount)
        return PaymentIntent(reference=reference, amount=amount, currency=currency)

    async def confirm(self, reference: str, booking_id: int, amount: Decimal) -> bool:
        if reference in self.declined:
            return False
        return self.intents.get(reference) == (booking_id, amount)

    async def refund(self, reference: str, amount: Decimal) -> str:
        self.refunds.append((reference, amount))
        return self._next_id("refund")


class HttpPaymentGateway:
    """Payment provider reached over its REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout or settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS
        self.transport = transport

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method=method, url=url, json=payload, headers=headers)
                resp.raise_for_status()
                if resp.content:
                    return resp.json()
                return {}
        except httpx.TimeoutException:
            logger.error(f"Timeout calling payment gateway: {url}")
            raise PaymentGatewayError(f"Timeout calling payment gateway: {path}")
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Payment gateway returned {e.response.status_code} for {url}: {e.response.text}"
            )
            raise PaymentGatewayError(
                f"Payment gateway rejected request ({e.response.status_code})"
            )
        except httpx.HTTPError as e:
            logger.error(f"Payment gateway request failed: {url} -> {e}")
            raise PaymentGatewayError("Bad gateway calling payment provider")

    async def create_intent(
        self,
        booking_id: int,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str] | None = None,
    ) -> PaymentIntent:
        data = await self._request(
            "POST",
            "/payment_intents",
            {
                "amount": to_minor_units(amount),
                "currency": currency.lower(),
                "metadata": {"booking_id": str(booking_id), **(metadata or {})},
            },
        )
        return PaymentIntent(
            reference=data["id"],
            amount=amount,
            currency=currency,
            client_secret=data.get("client_secret"),
        )

    async def confirm(self, reference: str, booking_id: int, amount: Decimal) -> bool:
        """
        Whether the provider settled this intent for this booking and amount.

        A succeeded intent charged for another booking or another amount
        does not count as a confirmation.
        """
        data = await self._request("GET", f"/payment_intents/{reference}")
        if data.get("status") != "succeeded":
            return False

        received = data.get("amount_received", data.get("amount"))
        charged_booking = (data.get("metadata") or {}).get("booking_id")
        if received != to_minor_units(amount) or charged_booking != str(booking_id):
            logger.warning(
                f"Payment intent {reference} settled {received} for booking "
                f"{charged_booking}, expected {to_minor_units(amount)} for {booking_id}"
            )
            return False
        return True

    async def refund(self, reference: str, amount: Decimal) -> str:
        data = await self._request(
            "POST",
            "/refunds",
            {"payment_intent": reference, "amount": to_minor_units(amount)},
        )
        return data["id"]


_gateway: PaymentGateway | None = None


def get_payment_gateway() -> PaymentGateway:
    """Get the configured payment gateway instance."""
    global _gateway
    if _gateway is None:
        if settings.payment_gateway_enabled:
            _gateway = HttpPaymentGateway(
                settings.PAYMENT_GATEWAY_URL, settings.PAYMENT_GATEWAY_KEY
            )
        else:
            logger.warning("No payment gateway configured, using simulated payments")
            _gateway = SimulatedPaymentGateway()
    return _gateway
