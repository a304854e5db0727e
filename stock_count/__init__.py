"""Public API exports for multi-unit stock counting, reconciliation and export."""

from .catalog import ProductCatalog, ProductLookup, parse_catalog
from .errors import (
    DownstreamWriteFailureError,
    InvalidQuantityError,
    NotFoundError,
    NothingToExportError,
    StockCountError,
    UnknownProductGroupError,
)
from .export import ExportResult, ExportRow, aggregate_export_rows, export_inventory, render_report
from .models import (
    CatalogMatch,
    CatalogProduct,
    DataIssue,
    EmployeeContext,
    InventoryRecord,
    InventorySummary,
    QuantityDetail,
    RecordPatch,
)
from .parser import parse_scan_log
from .quantity import BareCount, DetailQuantity, UnitQuantity, resolve_quantity
from .reconcile import ReconcileResult, ReconciliationEngine, ScanEvent
from .session import CountingSession, ScanInput
from .store import InventoryStore
from .units import UnitKind

__all__ = [
    "BareCount",
    "CatalogMatch",
    "CatalogProduct",
    "CountingSession",
    "DataIssue",
    "DetailQuantity",
    "DownstreamWriteFailureError",
    "EmployeeContext",
    "ExportResult",
    "ExportRow",
    "InvalidQuantityError",
    "InventoryRecord",
    "InventoryStore",
    "InventorySummary",
    "NotFoundError",
    "NothingToExportError",
    "ProductCatalog",
    "ProductLookup",
    "QuantityDetail",
    "ReconcileResult",
    "ReconciliationEngine",
    "RecordPatch",
    "ScanEvent",
    "ScanInput",
    "StockCountError",
    "UnitKind",
    "UnitQuantity",
    "UnknownProductGroupError",
    "aggregate_export_rows",
    "export_inventory",
    "parse_catalog",
    "parse_scan_log",
    "render_report",
    "resolve_quantity",
]
