"""
Exception hierarchy for the discount analytics core.

Single-record failures are skipped and counted by callers; only
InvalidReportError is meant to reach an API client.
"""


class DiscountAnalyticsError(Exception):
    """Base class for all discount analytics errors"""


class InvalidQuantityError(DiscountAnalyticsError, ValueError):
    """A line item quantity was zero or negative"""

    def __init__(self, quantity):
        super().__init__(f"Quantity must be positive, got {quantity!r}")
        self.quantity = quantity


class StoreUnavailableError(DiscountAnalyticsError):
    """The discount fact table has not been provisioned"""


class InvalidReportError(DiscountAnalyticsError, ValueError):
    """Unknown export type or invalid report parameter"""


class CaptureStorageError(DiscountAnalyticsError):
    """A provisioned fact store did not accept a captured fact"""

    def __init__(self, order_id: int, order_item_id: int):
        super().__init__(f"Fact for order {order_id} item {order_item_id} was not stored")
        self.order_id = order_id
        self.order_item_id = order_item_id
