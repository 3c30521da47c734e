"""
Discount Report Endpoints

Current discounts, discount history, summary and CSV exports. All routes
require the reports capability.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from discount_analytics.context import AppContext
from discount_analytics.exceptions import InvalidReportError
from discount_analytics.serving.api.dependencies import get_context, require_reports_access

router = APIRouter(dependencies=[Depends(require_reports_access)])


class CurrentDiscountItem(BaseModel):
    id: int
    parent_id: int
    name: str
    type: str
    sku: Optional[str] = None
    regular_price: float
    sale_price: float
    discount_amount: float
    discount_pct: float
    sale_start: Optional[str] = None
    sale_end: Optional[str] = None
    sale_status: str
    stock_status: str
    stock_quantity: Optional[int] = None


class CurrentDiscountsResponse(BaseModel):
    """Paginated current discounts"""
    items: List[CurrentDiscountItem]
    total: int
    total_pages: int
    page: int
    per_page: int


class HistoryResponse(BaseModel):
    """
    Paginated history.
    
    Items are line rows, or group rows when group_by is set.
    """
    items: List[Dict[str, Any]]
    total: int
    total_pages: int
    page: int
    per_page: int


class TopProduct(BaseModel):
    product_id: int
    product_name: str
    total_discount: float
    units_sold: float


class SummaryResponse(BaseModel):
    total_discount: float
    total_revenue: float
    discount_pct_of_revenue: float
    discounted_units: float
    orders_count: int
    top_discounted_products: List[TopProduct]


@router.get("/current-discounts", response_model=CurrentDiscountsResponse)
async def get_current_discounts(
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1),
    category: int = Query(0, ge=0),
    product_type: str = "",
    discount_min: float = Query(0, ge=0, le=100),
    discount_max: float = Query(100, ge=0, le=100),
    sale_status: str = "all",
    orderby: str = "discount_pct",
    order: str = "DESC",
    context: AppContext = Depends(get_context),
) -> CurrentDiscountsResponse:
    """Catalog items currently on sale"""
    try:
        report = await context.reports.current_discounts(
            page=page,
            per_page=per_page,
            category=category,
            product_type=product_type,
            discount_min=discount_min,
            discount_max=discount_max,
            sale_status=sale_status,
            orderby=orderby,
            order=order,
        )
    except InvalidReportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CurrentDiscountsResponse(**report.to_dict())


@router.get("/discount-history", response_model=HistoryResponse)
async def get_discount_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(25, ge=1),
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    product_id: int = Query(0, ge=0),
    category: int = Query(0, ge=0),
    group_by: str = "",
    context: AppContext = Depends(get_context),
) -> HistoryResponse:
    """Discounted line items of fulfilled orders, optionally grouped"""
    try:
        report = await context.reports.discount_history(
            page=page,
            per_page=per_page,
            date_from=date_from,
            date_to=date_to,
            product_id=product_id,
            category=category,
            group_by=group_by,
        )
    except InvalidReportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return HistoryResponse(**report.to_dict())


@router.get("/discount-summary", response_model=SummaryResponse)
async def get_discount_summary(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    context: AppContext = Depends(get_context),
) -> SummaryResponse:
    """Period totals and top discounted products"""
    summary = await context.reports.discount_summary(date_from=date_from, date_to=date_to)
    return SummaryResponse(**summary.to_dict())


@router.get("/export/{export_type}")
async def export_report(
    export_type: str,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    product_id: int = Query(0, ge=0),
    category: int = Query(0, ge=0),
    product_type: str = "",
    discount_min: float = Query(0, ge=0, le=100),
    discount_max: float = Query(100, ge=0, le=100),
    sale_status: str = "all",
    orderby: str = "discount_pct",
    order: str = "DESC",
    context: AppContext = Depends(get_context),
) -> Response:
    """Whole report as a CSV download"""
    if export_type == "current-discounts":
        filters = dict(
            category=category,
            product_type=product_type,
            discount_min=discount_min,
            discount_max=discount_max,
            sale_status=sale_status,
            orderby=orderby,
            order=order,
        )
    elif export_type == "discount-history":
        filters = dict(date_from=date_from, date_to=date_to, product_id=product_id, category=category)
    else:
        filters = dict(date_from=date_from, date_to=date_to)
    
    try:
        export = await context.reports.export_csv(export_type, **filters)
    except InvalidReportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    
    return Response(
        content=export.content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename={export.filename}",
            "Pragma": "no-cache",
            "Expires": "0",
        },
    )
