"""
Pytest configuration and fixtures
"""
import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_marketplace")

import asyncio
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from marketplace.core.errors import ExternalServiceFailure
from marketplace.core.inventory import InventoryService
from marketplace.database import ensure_indexes
from marketplace.models.order import OrderStatus
from marketplace.schemas.order import OrderItemInput
from marketplace.services import orders as order_service
from marketplace.services.notifications import ReturnNotifier
from marketplace.services.returns import ReturnWorkflow


class FakeRefundGateway:
    """
    Stands in for Stripe. Refunds are keyed by idempotency key the way
    Stripe keys them, so a repeated key returns the original refund.
    """

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.calls = []
        self.refunds = {}

    async def refund(self, order, amount, idempotency_key):
        self.calls.append((order.id, amount, idempotency_key))
        # Yield so concurrent callers interleave here
        await asyncio.sleep(0)

        if self.fail_times > 0:
            self.fail_times -= 1
            raise ExternalServiceFailure("Payment provider", "connection reset")

        if idempotency_key not in self.refunds:
            self.refunds[idempotency_key] = {
                "id": f"re_test_{len(self.refunds) + 1}",
                "amount": amount,
                "payment_intent": order.payment_intent_id,
            }
        return self.refunds[idempotency_key]["id"]

    @property
    def refunded_total(self) -> int:
        return sum(refund["amount"] for refund in self.refunds.values())


class FakeMailer:
    """Records emails instead of talking to an SMTP server"""

    def __init__(self, error: Exception = None):
        self.error = error
        self.sent = []

    async def __call__(self, to_email, subject, html_content, text_content=None):
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to_email, "subject": subject, "text": text_content})

    def to(self, email):
        return [mail for mail in self.sent if mail["to"] == email]


@pytest_asyncio.fixture
async def db():
    """In-memory Motor database"""
    client = AsyncMongoMockClient()
    database = client["marketplace_test"]
    await ensure_indexes(database)
    return database


@pytest.fixture
def inventory(db):
    return InventoryService(db)


@pytest.fixture
def refund_gateway():
    return FakeRefundGateway()


@pytest.fixture
def flaky_refund_gateway():
    """Fails the first refund attempt, then behaves"""
    return FakeRefundGateway(fail_times=1)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def notifier(db, mailer):
    return ReturnNotifier(db, send=mailer)


@pytest.fixture
def workflow(db, inventory, refund_gateway, notifier):
    return ReturnWorkflow(db, inventory, refund_gateway, window_days=7, notifier=notifier)


@pytest.fixture
def customer():
    return {
        "_id": str(ObjectId()),
        "name": "Kim Minji",
        "email": "minji@example.com",
        "role": "customer",
    }


@pytest.fixture
def other_customer():
    return {
        "_id": str(ObjectId()),
        "name": "Lee Seojun",
        "email": "seojun@example.com",
        "role": "customer",
    }


@pytest.fixture
def admin():
    return {"_id": str(ObjectId()), "name": "Store Admin", "role": "admin"}


@pytest_asyncio.fixture
async def products(db):
    """
    Product A: 10,000 won, 3,000 won shipping per box of up to 10
    Product B: 5,000 won, ships free with A
    """
    tangerines = {
        "_id": ObjectId(),
        "name": "Jeju Tangerines 3kg",
        "price": 12000,
        "discount_price": 10000,
        "stock": 50,
        "category": "fruit",
        "shipping_fee": 3000,
        "can_combine_shipping": True,
        "combine_shipping_unit": 10,
        "active": True,
    }
    spinach = {
        "_id": ObjectId(),
        "name": "Pohang Spinach 500g",
        "price": 5000,
        "stock": 30,
        "category": "vegetable",
        "shipping_fee": 0,
        "active": True,
    }
    await db.products.insert_many([tangerines, spinach])
    return {"A": str(tangerines["_id"]), "B": str(spinach["_id"])}


@pytest_asyncio.fixture
async def fixed_coupon(db):
    now = datetime.utcnow()
    doc = {
        "code": "WELCOME5000",
        "name": "Welcome discount",
        "discount_type": "fixed_amount",
        "discount_value": 5000,
        "min_order_amount": 20000,
        "max_discount_amount": None,
        "start_date": now - timedelta(days=1),
        "end_date": now + timedelta(days=30),
        "total_quantity": 100,
        "used_quantity": 0,
        "usage_type": "single_use",
        "is_active": True,
        "applicable_category": None,
        "created_at": now,
        "updated_at": now,
    }
    result = await db.coupons.insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


@pytest.fixture
def basket(products):
    """2 x A + 1 x B: subtotal 25,000, shipping 3,000"""
    return [
        OrderItemInput(product_id=products["A"], quantity=2),
        OrderItemInput(product_id=products["B"], quantity=1),
    ]


@pytest.fixture
def place_paid_order(db, inventory, customer, basket):
    """Factory: place an order for the customer and confirm its payment"""

    async def _place(coupon_code=None, user=None):
        user = user or customer
        order = await order_service.place_order(db, inventory, user, basket, coupon_code=coupon_code)
        return await order_service.confirm_payment(
            db, inventory, order.id, user, f"pi_test_{order.id}", True, amount_received=order.final_amount
        )

    return _place


@pytest.fixture
def place_delivered_order(db, place_paid_order):
    """Factory: a paid order pushed through fulfillment to DELIVERED"""

    async def _place(coupon_code=None, user=None):
        order = await place_paid_order(coupon_code=coupon_code, user=user)
        for target in (OrderStatus.PREPARING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            order = await order_service.advance_fulfillment(db, order.id, target)
        return order

    return _place


def item_id_of(order, product_id):
    """Order item id of the line for `product_id`"""
    for item in order.items:
        if item.product_id == product_id:
            return item.item_id
    raise KeyError(product_id)


@pytest.fixture
def line_of():
    return item_id_of


async def stock_of(db, product_id):
    doc = await db.products.find_one({"_id": ObjectId(product_id)})
    return doc["stock"]


@pytest.fixture
def stock():
    return stock_of
