"""Pydantic schemas for request/response validation"""

from marketplace.schemas.common import SuccessResponse, PaginatedResponse
from marketplace.schemas.order import (
    OrderItemInput,
    OrderCreate,
    OrderResponse,
    PaymentConfirmRequest,
    OrderCancelRequest,
    OrderStatusUpdate,
)
from marketplace.schemas.coupon_schema import (
    CouponCreate,
    CouponResponse,
    CouponValidationRequest,
    CouponValidationResponse,
)
from marketplace.schemas.return_schema import (
    ReturnCreate,
    ReturnResponse,
    ReturnApproveRequest,
    ReturnRejectRequest,
    RefundPreviewRequest,
    RefundPreviewResponse,
    EligibilityResponse,
    PendingCountResponse,
)

__all__ = [
    "SuccessResponse",
    "PaginatedResponse",
    "OrderItemInput",
    "OrderCreate",
    "OrderResponse",
    "PaymentConfirmRequest",
    "OrderCancelRequest",
    "OrderStatusUpdate",
    "CouponCreate",
    "CouponResponse",
    "CouponValidationRequest",
    "CouponValidationResponse",
    "ReturnCreate",
    "ReturnResponse",
    "ReturnApproveRequest",
    "ReturnRejectRequest",
    "RefundPreviewRequest",
    "RefundPreviewResponse",
    "EligibilityResponse",
    "PendingCountResponse",
]
