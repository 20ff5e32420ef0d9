import asyncio
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import stripe
import structlog

from salon_booking.core.config import settings
from salon_booking.core.exceptions import TaxCalculationFailedError
from salon_booking.schemas.booking import PriceBreakdown
from salon_booking.services.policy import CENTS, to_money

logger = structlog.get_logger(__name__)


class TaxCalculator(Protocol):
    """Quotes the tax owed on a service price at a branch address."""

    async def calculate(
        self,
        amount: Decimal,
        address: Dict[str, Any],
        tax_code: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Decimal:
        ...


def to_cents(amount: Decimal) -> int:
    return int((Decimal(str(amount)) / CENTS).to_integral_value())


def from_cents(cents: int) -> Decimal:
    return to_money(Decimal(cents) * CENTS)


def price_breakdown(service_fee: Decimal, tax: Decimal) -> PriceBreakdown:
    """Full price of an appointment; ``tax_rate`` is a percentage."""
    service_fee = to_money(service_fee)
    tax = to_money(tax)
    rate = to_money(tax / service_fee * 100) if service_fee else Decimal("0.00")
    return PriceBreakdown(
        service_fee=service_fee,
        tax=tax,
        tax_rate=rate,
        total=to_money(service_fee + tax),
    )


class StripeTaxCalculator:
    """Tax quotes through Stripe Tax.

    The Stripe SDK is synchronous, so the call runs in a worker thread and is
    bounded by ``timeout_seconds``. Any Stripe failure or timeout surfaces as
    ``TaxCalculationFailedError``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        currency: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.currency = currency or settings.TAX_CURRENCY
        self.timeout_seconds = timeout_seconds or settings.TAX_TIMEOUT_SECONDS

    def _create_calculation(
        self,
        amount: Decimal,
        address: Dict[str, Any],
        tax_code: Optional[str],
        reference: Optional[str],
    ):
        line_item = {"amount": to_cents(amount), "reference": reference or "service"}
        if tax_code:
            line_item["tax_code"] = tax_code
        return stripe.tax.Calculation.create(
            api_key=self.api_key,
            currency=self.currency,
            line_items=[line_item],
            customer_details={"address": address, "address_source": "shipping"},
        )

    async def calculate(
        self,
        amount: Decimal,
        address: Dict[str, Any],
        tax_code: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Decimal:
        if not self.api_key:
            raise TaxCalculationFailedError("Stripe is not configured")
        try:
            calculation = await asyncio.wait_for(
                asyncio.to_thread(
                    self._create_calculation, amount, address, tax_code, reference
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Tax calculation timed out", timeout=self.timeout_seconds)
            raise TaxCalculationFailedError(
                "Tax calculation timed out, please try again"
            ) from e
        except stripe.StripeError as e:
            logger.error("Tax calculation failed", error=str(e))
            raise TaxCalculationFailedError(
                "Tax calculation failed, please try again",
                details={"stripe_error": getattr(e, "code", None)},
            ) from e

        tax = from_cents(calculation.tax_amount_exclusive)
        logger.info("Tax calculated", amount=str(amount), tax=str(tax))
        return tax
