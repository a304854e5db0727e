"""Typed exceptions raised by the stock count core.

Every exception carries a machine-readable ``code`` and the structured fields
needed to report it, so callers catch by type instead of parsing messages.

    StockCountError
    +-- InvalidQuantityError      invalid_quantity
    +-- NotFoundError             not_found
    +-- NothingToExportError      nothing_to_export
    +-- DownstreamWriteFailureError  downstream_write_failure
    +-- UnknownProductGroupError  unknown_product_group

The reconciliation engine and the exporter catch these at their boundary and
hand back a success/failure result; nothing is retried automatically.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class StockCountError(Exception):
    """Base exception for all stock count errors."""

    code: str = "stock_count_error"


class InvalidQuantityError(StockCountError):
    """Quantity or unit input is negative, non-integral, or not a number."""

    code: str = "invalid_quantity"

    def __init__(self, message: str, *, value: Any = None, field: str | None = None):
        self.value = value
        self.field = field
        super().__init__(message)


class NotFoundError(StockCountError):
    """An update-only operation referenced an unknown material code or barcode."""

    code: str = "not_found"

    def __init__(self, key: str, *, kind: str = "material_code"):
        self.key = key
        self.kind = kind
        super().__init__(f"No record for {kind}: {key}")


class NothingToExportError(StockCountError):
    """Export was requested while the store holds no records."""

    code: str = "nothing_to_export"

    def __init__(self) -> None:
        super().__init__("No inventory records to export")


class DownstreamWriteFailureError(StockCountError):
    """The serialized report could not be delivered to its sink."""

    code: str = "downstream_write_failure"

    def __init__(self, target: str | Path, reason: str):
        self.target = str(target)
        self.reason = reason
        super().__init__(f"Could not write report to {target}: {reason}")


class UnknownProductGroupError(StockCountError):
    """A new product named a product group the catalog does not know."""

    code: str = "unknown_product_group"

    def __init__(self, product_group: str):
        self.product_group = product_group
        super().__init__(f"Unknown product group: {product_group}")
