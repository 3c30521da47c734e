"""
Report Filters

Parsing of the loosely typed query parameters reports accept. Malformed
values never fail a report: a bad date is logged and ignored.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, List, Optional, Sequence

import structlog

from discount_analytics.exceptions import InvalidReportError

logger = structlog.get_logger(__name__)


class GroupBy(str, Enum):
    """History grouping keys"""
    NONE = ""
    PRODUCT = "product"
    CATEGORY = "category"
    DATE = "date"
    
    @classmethod
    def parse(cls, value: Optional[str]) -> "GroupBy":
        value = (value or "").strip().lower()
        if value == "none":
            return cls.NONE
        try:
            return cls(value)
        except ValueError:
            raise InvalidReportError(f"Invalid group_by: {value!r}") from None


class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"
    
    @classmethod
    def parse(cls, value: Optional[str]) -> "SortOrder":
        try:
            return cls((value or "DESC").upper())
        except ValueError:
            raise InvalidReportError(f"Invalid order: {value!r}") from None


def parse_date_filter(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a date or datetime query value into a naive UTC datetime.
    
    A bare date used as an upper bound covers the whole day. Empty or
    malformed values return None.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed date filter", value=value)
        return None
    
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass
class DateRange:
    """Inclusive created_at bounds"""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    
    @classmethod
    def parse(cls, date_from: Optional[str], date_to: Optional[str]) -> "DateRange":
        return cls(
            start=parse_date_filter(date_from),
            end=parse_date_filter(date_to, end_of_day=True),
        )


@dataclass
class ReportPage:
    """One page of report items"""
    items: List[Any]
    total: int
    total_pages: int
    page: int
    per_page: int
    
    def to_dict(self) -> dict:
        return {
            "items": self.items,
            "total": self.total,
            "total_pages": self.total_pages,
            "page": self.page,
            "per_page": self.per_page,
        }


def clamp_per_page(per_page: Optional[int], default: int, maximum: int) -> int:
    if not per_page or per_page < 1:
        return default
    return min(per_page, maximum)


def paginate(items: Sequence[Any], page: int, per_page: int) -> ReportPage:
    """Slice an already filtered and sorted result set"""
    page = max(page or 1, 1)
    total = len(items)
    offset = (page - 1) * per_page
    return ReportPage(
        items=list(items[offset:offset + per_page]),
        total=total,
        total_pages=math.ceil(total / per_page) if per_page else 0,
        page=page,
        per_page=per_page,
    )

