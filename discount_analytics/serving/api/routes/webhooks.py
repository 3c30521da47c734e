"""
Order Lifecycle Webhooks

Ingress for the host platform's order events. Status changes trigger
discount capture; refunds supersede captured facts. Both require the
capture capability.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from discount_analytics.context import AppContext
from discount_analytics.serving.api.dependencies import get_context, require_capture_access

logger = structlog.get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_capture_access)])


class OrderEventType(str, Enum):
    STATUS_CHANGED = "status_changed"
    CREATED = "created"


class OrderStatusEvent(BaseModel):
    """Order status transition reported by the host"""
    order_id: int = Field(..., gt=0)
    event: OrderEventType = OrderEventType.STATUS_CHANGED
    old_status: Optional[str] = None
    new_status: Optional[str] = None


class CaptureResponse(BaseModel):
    order_id: int
    captured: bool
    facts_captured: int = 0
    discounted_items: int = 0
    skipped_item_ids: List[int] = Field(default_factory=list)


class RefundEvent(BaseModel):
    """Refund of one or more order line items"""
    refund_id: int = Field(..., gt=0)
    order_item_ids: List[int] = Field(..., min_length=1)
    refunded_at: Optional[datetime] = None


class RefundResponse(BaseModel):
    refund_id: int
    items_changed: int


@router.post("/orders/status", response_model=CaptureResponse)
async def order_status_changed(
    event: OrderStatusEvent,
    context: AppContext = Depends(get_context),
) -> CaptureResponse:
    """Capture discounts when an order becomes fulfilling"""
    order = await context.commerce.get_order(event.order_id)
    if order is None:
        logger.info("Webhook for unknown order", order_id=event.order_id)
        return CaptureResponse(order_id=event.order_id, captured=False)
    
    if event.event == OrderEventType.CREATED:
        result = await context.orchestrator.on_order_created(order)
    else:
        result = await context.orchestrator.on_order_status_changed(
            order,
            event.old_status,
            event.new_status or order.status,
        )
    
    if result is None:
        return CaptureResponse(order_id=order.id, captured=False)
    
    if result.failed:
        # Host retries the event; the order is still unmarked
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Discount capture failed for item {result.failed_item_id}",
        )
    
    return CaptureResponse(
        order_id=order.id,
        captured=result.captured,
        facts_captured=len(result.facts),
        discounted_items=sum(1 for f in result.facts if f.was_on_sale.value == "yes"),
        skipped_item_ids=result.skipped_item_ids,
    )


@router.post("/orders/refunds", response_model=RefundResponse)
async def order_refunded(
    event: RefundEvent,
    context: AppContext = Depends(get_context),
) -> RefundResponse:
    """Mark the refunded items' facts inactive"""
    refunded_at = event.refunded_at
    if refunded_at is not None and refunded_at.tzinfo is not None:
        refunded_at = refunded_at.astimezone(timezone.utc).replace(tzinfo=None)
    
    changed = await context.orchestrator.record_refund(event.refund_id, event.order_item_ids, refunded_at)
    return RefundResponse(refund_id=event.refund_id, items_changed=changed)
