"""Coupon endpoints"""

from fastapi import APIRouter, Depends, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List

from marketplace.database import get_database
from marketplace.api.deps import get_current_user, require_admin
from marketplace.schemas.coupon_schema import (
    CouponCreate,
    CouponResponse,
    CouponValidationRequest,
    CouponValidationResponse,
)
from marketplace.services import coupons as coupon_service

# Customer endpoints, mounted under /api
router = APIRouter()

# Admin endpoints, mounted under /api/admin
admin_router = APIRouter()


@router.post("/coupons/validate", response_model=CouponValidationResponse)
async def validate_coupon(
    validation_data: CouponValidationRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Check a coupon against an order amount before placing the order.
    Nothing is redeemed.
    """
    coupon, discount = await coupon_service.price_coupon(
        db,
        validation_data.code,
        validation_data.order_amount,
        user_id=current_user["_id"],
        categories=validation_data.categories,
    )
    return CouponValidationResponse(
        code=coupon.code,
        name=coupon.name,
        discount_amount=discount,
        discounted_subtotal=validation_data.order_amount - discount,
    )


@admin_router.post("/coupons", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
async def create_coupon(
    coupon_data: CouponCreate,
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Create a coupon (Admin only).
    """
    coupon = await coupon_service.create_coupon(db, coupon_data.model_dump())
    return CouponResponse.from_model(coupon)


@admin_router.get("/coupons", response_model=List[CouponResponse])
async def list_coupons(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(require_admin),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    List coupons, newest first (Admin only).
    """
    coupons = await coupon_service.list_coupons(db, page=page, limit=limit)
    return [CouponResponse.from_model(coupon) for coupon in coupons]
