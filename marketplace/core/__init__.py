"""Core utilities for the application"""

from marketplace.core.security import issue_access_token, bearer_token, token_subject
from marketplace.core.inventory import InventoryService
from marketplace.core.stripe_client import StripeRefundGateway, retrieve_payment_intent

__all__ = [
    "issue_access_token",
    "bearer_token",
    "token_subject",
    "InventoryService",
    "StripeRefundGateway",
    "retrieve_payment_intent",
]
