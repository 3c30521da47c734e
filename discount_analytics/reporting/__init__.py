"""
Discount Reporting Module
"""
from .aggregation import DiscountSummary, group_history, summarize
from .current_discounts import CurrentDiscountRow, SaleStatus, current_discounts, sort_current_discounts
from .export import CsvExport
from .filters import DateRange, GroupBy, ReportPage, SortOrder, paginate, parse_date_filter
from .rows import HistoryRow, history_row
from .service import DiscountReportService, ExportType, HistorySource

__all__ = [
    "DiscountSummary",
    "group_history",
    "summarize",
    "CurrentDiscountRow",
    "SaleStatus",
    "current_discounts",
    "sort_current_discounts",
    "CsvExport",
    "DateRange",
    "GroupBy",
    "ReportPage",
    "SortOrder",
    "paginate",
    "parse_date_filter",
    "HistoryRow",
    "history_row",
    "DiscountReportService",
    "ExportType",
    "HistorySource",
]
