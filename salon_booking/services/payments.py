import asyncio
from decimal import Decimal
from typing import Dict, Optional, Protocol

import stripe
import structlog

from salon_booking.core.config import settings
from salon_booking.core.exceptions import PaymentFailedError, PaymentMethodRequiredError
from salon_booking.models.customer_info import CustomerInfo
from salon_booking.services.tax import to_cents

logger = structlog.get_logger(__name__)


class PaymentGateway(Protocol):
    """Charges a customer's stored payment method."""

    async def charge(
        self,
        customer: CustomerInfo,
        amount: Decimal,
        description: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Return the payment reference, or raise ``PaymentFailedError``."""
        ...


class StripePaymentGateway:
    """Off-session charges through Stripe PaymentIntents."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        currency: Optional[str] = None,
        return_url: Optional[str] = None,
    ):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.currency = currency or settings.TAX_CURRENCY
        self.return_url = return_url or settings.PAYMENT_RETURN_URL

    def _create_intent(self, customer, amount, description, metadata):
        return stripe.PaymentIntent.create(
            api_key=self.api_key,
            amount=to_cents(amount),
            currency=self.currency,
            customer=customer.stripe_customer_id,
            payment_method=customer.stripe_payment_method_id,
            description=description,
            metadata=metadata or {},
            confirm=True,
            return_url=self.return_url,
        )

    async def charge(
        self,
        customer: CustomerInfo,
        amount: Decimal,
        description: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        if not customer.has_stored_payment_method:
            raise PaymentMethodRequiredError(
                "Customer has no stored payment method",
                details={"customer_id": customer.customer_id},
            )
        if not self.api_key:
            raise PaymentFailedError("Stripe is not configured")

        try:
            intent = await asyncio.to_thread(
                self._create_intent, customer, amount, description, metadata
            )
        except stripe.StripeError as e:
            logger.error(
                "Payment failed", customer_id=customer.customer_id, error=str(e)
            )
            raise PaymentFailedError(
                "Payment was not successful",
                details={"stripe_error": getattr(e, "code", None)},
            ) from e

        if intent.status != "succeeded":
            logger.warning(
                "Payment not completed",
                customer_id=customer.customer_id,
                payment_intent=intent.id,
                status=intent.status,
            )
            raise PaymentFailedError(
                "Payment was not successful",
                details={"payment_intent": intent.id, "status": intent.status},
            )

        logger.info(
            "Payment succeeded",
            customer_id=customer.customer_id,
            payment_intent=intent.id,
            amount=str(amount),
        )
        return intent.id
