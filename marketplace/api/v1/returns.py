"""Returns management endpoints"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from marketplace.api.deps import get_current_user, require_admin, get_return_workflow
from marketplace.schemas.common import PaginatedResponse, SuccessResponse
from marketplace.schemas.return_schema import (
    ReturnCreate,
    ReturnResponse,
    ReturnItemResponse,
    ReturnApproveRequest,
    ReturnRejectRequest,
    RefundPreviewRequest,
    RefundPreviewResponse,
    EligibilityResponse,
    PendingCountResponse,
)
from marketplace.models.return_model import ReturnReason, ReturnStatus
from marketplace.services.returns import ReturnWorkflow

# Admin endpoints, mounted under /api/admin
router = APIRouter()

# Customer endpoints, mounted under /api
customer_router = APIRouter()


@router.get("/returns", response_model=PaginatedResponse[ReturnResponse])
async def list_returns(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[ReturnStatus] = None,
    reason_category: Optional[ReturnReason] = None,
    keyword: Optional[str] = Query(None, max_length=100, description="Order number or customer name"),
    current_user: dict = Depends(require_admin),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    List all returns, newest first (Admin only).
    """
    returns, total = await workflow.list_returns(
        status=status,
        reason_category=reason_category,
        keyword=keyword,
        page=page,
        limit=limit,
    )
    return PaginatedResponse.of([ReturnResponse.from_model(ret) for ret in returns], total, page, limit)


@router.get("/returns/pending-count", response_model=PendingCountResponse)
async def pending_return_count(
    current_user: dict = Depends(require_admin),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Number of returns waiting for review (Admin only).
    """
    return PendingCountResponse(pending_count=await workflow.pending_count())


@router.get("/returns/{return_id}", response_model=ReturnResponse)
async def get_return(
    return_id: str,
    current_user: dict = Depends(require_admin),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Get return details (Admin only).
    """
    return ReturnResponse.from_model(await workflow.get_return(return_id))


@router.patch("/returns/{return_id}/approve", response_model=ReturnResponse)
async def approve_return(
    return_id: str,
    approve_data: ReturnApproveRequest,
    current_user: dict = Depends(require_admin),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Approve a return (Admin only). The customer may now send the goods back.
    """
    ret = await workflow.approve(return_id, admin_note=approve_data.admin_note)
    return ReturnResponse.from_model(ret)


@router.patch("/returns/{return_id}/reject", response_model=ReturnResponse)
async def reject_return(
    return_id: str,
    reject_data: ReturnRejectRequest,
    current_user: dict = Depends(require_admin),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Reject a return (Admin only). A rejection reason is required.
    """
    ret = await workflow.reject(return_id, reject_data.rejection_reason)
    return ReturnResponse.from_model(ret)


@router.post("/returns/{return_id}/complete", response_model=ReturnResponse)
async def complete_return(
    return_id: str,
    current_user: dict = Depends(require_admin),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Complete an approved return (Admin only).

    Refunds the customer and restores stock. Safe to retry after a refund
    failure: the return stays approved and the refund is never paid twice.
    """
    ret = await workflow.complete(return_id)
    return ReturnResponse.from_model(ret)


# Customer endpoints

@customer_router.get("/orders/{order_id}/return-eligibility", response_model=EligibilityResponse)
async def check_return_eligibility(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Check whether an order can still be returned.
    """
    order, eligibility = await workflow.check_eligibility(order_id, current_user)
    return EligibilityResponse(
        order_id=order_id,
        order_status=order.status,
        eligible=eligibility.eligible,
        reason=eligibility.reason,
        delivered_at=eligibility.delivered_at,
        return_deadline=eligibility.return_deadline,
    )


@customer_router.post("/returns/preview", response_model=RefundPreviewResponse)
async def preview_refund(
    preview_data: RefundPreviewRequest,
    current_user: dict = Depends(get_current_user),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Show the refund a return would produce, without submitting it.
    """
    order, breakdown = await workflow.preview(
        preview_data.order_id,
        current_user,
        preview_data.items,
        preview_data.reason_category,
    )
    return RefundPreviewResponse(
        order_id=order.id,
        reason_category=preview_data.reason_category,
        items=[ReturnItemResponse(**item.model_dump()) for item in breakdown.items],
        items_refund_amount=breakdown.items_refund_amount,
        shipping_refund_amount=breakdown.shipping_refund_amount,
        total_refund_amount=breakdown.total_refund_amount,
    )


@customer_router.post("/returns", response_model=ReturnResponse, status_code=status.HTTP_201_CREATED)
async def create_return(
    return_data: ReturnCreate,
    current_user: dict = Depends(get_current_user),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Submit a return request for a delivered order.
    """
    ret = await workflow.submit(
        current_user,
        return_data.order_id,
        return_data.reason_category,
        return_data.detailed_reason,
        return_data.items,
        proof_image_urls=return_data.proof_image_urls,
    )
    return ReturnResponse.from_model(ret)


@customer_router.get("/returns", response_model=List[ReturnResponse])
async def list_my_returns(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    List the current user's returns.
    """
    returns = await workflow.list_user_returns(current_user, page=page, limit=limit)
    return [ReturnResponse.from_model(ret) for ret in returns]


@customer_router.get("/returns/{return_id}", response_model=ReturnResponse)
async def get_my_return(
    return_id: str,
    current_user: dict = Depends(get_current_user),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Get one of the current user's returns.
    """
    return ReturnResponse.from_model(await workflow.get_return(return_id, user=current_user))


@customer_router.delete("/returns/{return_id}", response_model=SuccessResponse)
async def cancel_my_return(
    return_id: str,
    current_user: dict = Depends(get_current_user),
    workflow: ReturnWorkflow = Depends(get_return_workflow)
):
    """
    Withdraw a return request that has not been reviewed yet.
    """
    await workflow.cancel(return_id, current_user)
    return SuccessResponse(message="Return request cancelled")
