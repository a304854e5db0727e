"""Core typed models shared by the store, engine, exporter and parsers."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .units import UnitKind


@dataclass(frozen=True, slots=True)
class DataIssue:
    """Structured data-quality issue emitted during parsing."""

    code: str
    message: str
    field: str | None = None


@dataclass(frozen=True, slots=True)
class QuantityDetail:
    """Per-unit quantity breakdown plus provenance of the last mutation."""

    cs: int
    dsp: int
    ea: int
    scanned_type: UnitKind
    is_manual_edit: bool = False
    last_modified: str = ""

    def count_for(self, unit: UnitKind) -> int:
        """Return the count held in the slot for `unit`."""

        if unit is UnitKind.CS:
            return self.cs
        if unit is UnitKind.DSP:
            return self.dsp
        return self.ea

    @property
    def total(self) -> int:
        """Raw sum across units; a display figure, not a converted stock count."""

        return self.cs + self.dsp + self.ea

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    @property
    def has_multiple_units(self) -> bool:
        return sum(1 for count in (self.cs, self.dsp, self.ea) if count > 0) > 1

    def as_dict(self) -> dict[str, int | str | bool]:
        return {
            "cs": self.cs,
            "dsp": self.dsp,
            "ea": self.ea,
            "scannedType": self.scanned_type.value,
            "isManualEdit": self.is_manual_edit,
            "lastModified": self.last_modified,
        }


@dataclass(slots=True)
class InventoryRecord:
    """One tracked product; the store holds exactly one per material code."""

    material_code: str
    barcode: str
    product_name: str
    thai_description: str
    product_group: str
    category: str
    brand: str
    quantity: int
    barcode_type: UnitKind
    last_updated: str
    quantity_detail: QuantityDetail | None = None

    @property
    def description(self) -> str:
        """Report description: Thai description when present, else product name."""

        return self.thai_description or self.product_name

    def as_dict(self) -> dict[str, object]:
        return {
            "materialCode": self.material_code,
            "barcode": self.barcode,
            "productName": self.product_name,
            "thaiDescription": self.thai_description,
            "productGroup": self.product_group,
            "category": self.category,
            "brand": self.brand,
            "quantity": self.quantity,
            "quantityDetail": None if self.quantity_detail is None else self.quantity_detail.as_dict(),
            "barcodeType": self.barcode_type.value,
            "lastUpdated": self.last_updated,
        }


@dataclass(frozen=True, slots=True)
class RecordPatch:
    """Incoming values for one upsert.

    ``quantity_detail`` selects the multi-unit path; when it is ``None`` the flat
    ``quantity`` is applied through the legacy path instead.
    """

    barcode: str
    barcode_type: UnitKind
    product_name: str = ""
    thai_description: str = ""
    product_group: str = ""
    category: str = ""
    brand: str = ""
    quantity_detail: QuantityDetail | None = None
    quantity: int = 0


@dataclass(frozen=True, slots=True)
class EmployeeContext:
    """Who counted and where; attached to exports, never mutated by the core."""

    employee_name: str
    branch_code: str
    branch_name: str


@dataclass(frozen=True, slots=True)
class CatalogProduct:
    """Canonical product master entry shared by up to three unit barcodes."""

    material_code: str
    name: str
    description: str
    thai_description: str
    pack_size: str
    product_group: str
    category: str
    brand: str
    shelf_life_months: int | None
    barcodes: dict[UnitKind, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CatalogMatch:
    """A catalog hit together with the unit the scanned barcode belongs to."""

    product: CatalogProduct
    unit: UnitKind
    matched_barcode: str


@dataclass(frozen=True, slots=True)
class QuantityBreakdown:
    total_cs: int = 0
    total_dsp: int = 0
    total_ea: int = 0
    items_with_multiple_units: int = 0


@dataclass(frozen=True, slots=True)
class InventorySummary:
    """Aggregate figures for the current store contents."""

    total_products: int
    total_items: int
    categories: dict[str, int]
    quantity_breakdown: QuantityBreakdown
    last_updated: str | None = None


@dataclass(slots=True)
class CatalogParseResult:
    """Parsed product master file."""

    file_path: Path
    products: list[CatalogProduct]
    file_issues: list[DataIssue] = field(default_factory=list)

    @property
    def total_products(self) -> int:
        return len(self.products)


@dataclass(slots=True)
class ScanLogRow:
    """One scan read from a scan log file after normalization."""

    source_row: int
    barcode: str | None
    quantity: int | None
    unit: UnitKind | None
    raw: dict[str, str | None]
    issues: list[DataIssue] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        """Return whether the row has one or more associated issues."""

        return bool(self.issues)

    @property
    def is_usable(self) -> bool:
        """Rows need a barcode and a non-negative quantity to be reconciled."""

        return self.barcode is not None and self.quantity is not None and self.quantity >= 0


@dataclass(slots=True)
class ScanLogParseResult:
    """Parsed output for one scan log file."""

    file_path: Path
    schema_name: str
    rows: list[ScanLogRow]
    file_issues: list[DataIssue] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        """Return the total number of parsed, non-skipped rows."""

        return len(self.rows)

    @property
    def rows_with_issues(self) -> int:
        """Return the number of parsed rows that contain one or more issues."""

        return sum(1 for row in self.rows if row.has_issues)
