"""
Refund gateway retry behaviour against a stubbed Stripe call
"""
import asyncio
from types import SimpleNamespace

import pytest
import stripe
from bson import ObjectId

from marketplace.core import stripe_client
from marketplace.core.errors import ExternalServiceFailure, ValidationError
from marketplace.core.stripe_client import StripeRefundGateway
from marketplace.models.order import Order, OrderItem, OrderStatus


def paid_order(**overrides) -> Order:
    data = {
        "_id": str(ObjectId()),
        "order_number": "ORD-20261001-0000000B",
        "user_id": "user-1",
        "items": [OrderItem(item_id="line-a", product_id="p-a", name="Jeju Tangerines 3kg",
                            quantity=1, unit_price=10000, subtotal=10000)],
        "subtotal": 10000,
        "final_amount": 10000,
        "status": OrderStatus.PAID,
        "payment_intent_id": "pi_test_gateway",
    }
    data.update(overrides)
    return Order(**data)


@pytest.fixture
def stripe_refunds(monkeypatch):
    """Queue of outcomes for successive create_refund calls"""
    outcomes = []
    calls = []

    async def fake_create_refund(payment_intent_id, amount, idempotency_key, metadata=None, timeout=None):
        calls.append(idempotency_key)
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(stripe_client, "create_refund", fake_create_refund)
    return SimpleNamespace(outcomes=outcomes, calls=calls)


@pytest.mark.asyncio
async def test_transient_error_is_retried_with_same_key(stripe_refunds):
    stripe_refunds.outcomes.extend([
        stripe.APIConnectionError("connection reset"),
        SimpleNamespace(id="re_123", status="succeeded"),
    ])
    gateway = StripeRefundGateway(max_attempts=3, backoff_seconds=0)

    refund_id = await gateway.refund(paid_order(), 10000, idempotency_key="return-abc")

    assert refund_id == "re_123"
    assert stripe_refunds.calls == ["return-abc", "return-abc"]


@pytest.mark.asyncio
async def test_retries_exhausted(stripe_refunds):
    stripe_refunds.outcomes.extend([stripe.RateLimitError("slow down")] * 2)
    gateway = StripeRefundGateway(max_attempts=2, backoff_seconds=0)

    with pytest.raises(ExternalServiceFailure):
        await gateway.refund(paid_order(), 10000, idempotency_key="return-abc")
    assert len(stripe_refunds.calls) == 2


@pytest.mark.asyncio
async def test_permanent_refusal_is_not_retried(stripe_refunds):
    stripe_refunds.outcomes.append(stripe.InvalidRequestError("amount exceeds charge", "amount"))
    gateway = StripeRefundGateway(max_attempts=3, backoff_seconds=0)

    with pytest.raises(ExternalServiceFailure):
        await gateway.refund(paid_order(), 99000, idempotency_key="return-abc")
    assert len(stripe_refunds.calls) == 1


@pytest.mark.asyncio
async def test_failed_refund_status(stripe_refunds):
    stripe_refunds.outcomes.append(SimpleNamespace(id="re_456", status="failed"))
    gateway = StripeRefundGateway(max_attempts=3, backoff_seconds=0)

    with pytest.raises(ExternalServiceFailure):
        await gateway.refund(paid_order(), 10000, idempotency_key="return-abc")


@pytest.mark.asyncio
async def test_unpaid_order_cannot_be_refunded(stripe_refunds):
    gateway = StripeRefundGateway()

    with pytest.raises(ValidationError):
        await gateway.refund(paid_order(payment_intent_id=None), 10000, idempotency_key="return-abc")
    assert stripe_refunds.calls == []


@pytest.mark.asyncio
async def test_timeout_is_retried(stripe_refunds):
    stripe_refunds.outcomes.extend([
        asyncio.TimeoutError(),
        stripe.APIError("bad gateway"),
        SimpleNamespace(id="re_789", status="succeeded"),
    ])
    gateway = StripeRefundGateway(max_attempts=3, backoff_seconds=0)

    refund_id = await gateway.refund(paid_order(), 10000, idempotency_key="order-cancel-abc")

    assert refund_id == "re_789"
    assert len(stripe_refunds.calls) == 3
