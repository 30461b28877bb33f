"""Return eligibility rules"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from marketplace.models.order import Order, OrderStatus

DEFAULT_RETURN_WINDOW_DAYS = 7

# A partially returned order can still have its remaining items returned
RETURNABLE_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.PARTIALLY_RETURNED)


@dataclass
class ReturnEligibility:
    """Outcome of an eligibility check"""
    eligible: bool
    reason: str
    delivered_at: Optional[datetime] = None
    return_deadline: Optional[datetime] = None


def check_return_eligibility(
    order: Order,
    now: Optional[datetime] = None,
    window_days: int = DEFAULT_RETURN_WINDOW_DAYS,
) -> ReturnEligibility:
    """
    Decide whether a delivered order may still be returned.

    The result is advisory; submission re-runs the check because time
    passes between the two calls.
    """
    now = now or datetime.utcnow()

    if order.status not in RETURNABLE_ORDER_STATUSES:
        return ReturnEligibility(eligible=False, reason="order not delivered")

    if order.delivered_at is None:
        return ReturnEligibility(eligible=False, reason="delivery date is unknown")

    return_deadline = order.delivered_at + timedelta(days=window_days)

    if now > return_deadline:
        return ReturnEligibility(
            eligible=False,
            reason="return window expired",
            delivered_at=order.delivered_at,
            return_deadline=return_deadline,
        )

    return ReturnEligibility(
        eligible=True,
        reason="order can be returned",
        delivered_at=order.delivered_at,
        return_deadline=return_deadline,
    )
