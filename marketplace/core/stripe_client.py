"""Stripe integration for payment verification and refunds"""

import asyncio
import logging
from typing import Dict, Optional

import stripe
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from marketplace.config import settings
from marketplace.core.errors import ExternalServiceFailure, ValidationError
from marketplace.models.order import Order

logger = logging.getLogger(__name__)

# Initialize Stripe
stripe.api_key = settings.stripe_secret_key

# Errors worth another attempt; anything else is a permanent refusal
TRANSIENT_STRIPE_ERRORS = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
    asyncio.TimeoutError,
)


async def retrieve_payment_intent(payment_intent_id: str) -> stripe.PaymentIntent:
    """
    Retrieve a Stripe Payment Intent

    Args:
        payment_intent_id: Stripe payment intent ID

    Returns:
        Stripe PaymentIntent object

    Raises:
        ExternalServiceFailure: If Stripe cannot be reached or refuses
    """
    try:
        return await asyncio.to_thread(stripe.PaymentIntent.retrieve, payment_intent_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe error retrieving payment intent: {str(e)}")
        raise ExternalServiceFailure("Payment provider", str(e)) from e


async def create_refund(
    payment_intent_id: str,
    amount: int,
    idempotency_key: str,
    metadata: Optional[Dict] = None,
    timeout: Optional[float] = None,
) -> stripe.Refund:
    """
    Create a Stripe Refund

    Args:
        payment_intent_id: Payment to refund
        amount: Amount in the smallest currency unit (whole won for KRW)
        idempotency_key: Key that makes a retried call a no-op at Stripe
        metadata: Optional metadata to attach to the refund
        timeout: Seconds to wait for Stripe before giving up on this attempt

    Returns:
        Stripe Refund object
    """
    call = asyncio.to_thread(
        stripe.Refund.create,
        payment_intent=payment_intent_id,
        amount=amount,
        reason="requested_by_customer",
        metadata=metadata or {},
        idempotency_key=idempotency_key,
    )
    refund = await asyncio.wait_for(call, timeout=timeout)
    logger.info(f"Created refund {refund.id} for {payment_intent_id}: {amount} (key={idempotency_key})")
    return refund


class StripeRefundGateway:
    """
    Payment-refund collaborator.

    Retries transient failures with exponential backoff. The same
    idempotency key is sent on every attempt so Stripe applies the refund
    at most once.
    """

    def __init__(
        self,
        max_attempts: int = settings.refund_max_attempts,
        backoff_seconds: float = settings.refund_backoff_seconds,
        timeout_seconds: float = settings.refund_timeout_seconds,
    ):
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds

    async def refund(self, order: Order, amount: int, idempotency_key: str) -> str:
        """
        Refund `amount` of the order's payment

        Returns:
            Refund transaction id

        Raises:
            ValidationError: If the order has no captured payment
            ExternalServiceFailure: If Stripe refuses or retries are exhausted
        """
        if not order.payment_intent_id:
            raise ValidationError("Order has no payment to refund")

        metadata = {"order_id": order.id, "order_number": order.order_number}

        def log_retry(retry_state: RetryCallState):
            logger.warning(
                f"Refund attempt {retry_state.attempt_number}/{self.max_attempts} failed for order "
                f"{order.order_number}: {retry_state.outcome.exception()!r}"
            )

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_STRIPE_ERRORS),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_seconds),
                before_sleep=log_retry,
            ):
                with attempt:
                    refund = await create_refund(
                        order.payment_intent_id,
                        amount,
                        idempotency_key,
                        metadata=metadata,
                        timeout=self.timeout_seconds,
                    )
        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(f"Refund retries exhausted for order {order.order_number}: {last_error!r}")
            raise ExternalServiceFailure("Payment provider", "refund retries exhausted") from last_error
        except stripe.StripeError as e:
            logger.error(f"Stripe refused refund for order {order.order_number}: {str(e)}")
            raise ExternalServiceFailure("Payment provider", str(e)) from e

        if refund.status in ("failed", "canceled"):
            logger.error(f"Refund {refund.id} for order {order.order_number} ended as {refund.status}")
            raise ExternalServiceFailure("Payment provider", f"refund {refund.status}")

        return refund.id
