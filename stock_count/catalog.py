"""Product master loading and barcode-to-product lookup.

Each catalog row describes one material with up to three barcodes, one per
packaging unit. Looking a barcode up therefore yields both the product and
the unit that was scanned.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol

from .logging_config import get_logger
from .models import CatalogMatch, CatalogParseResult, CatalogProduct, DataIssue
from .normalize import barcode_digits, normalize_barcode, normalize_text, parse_shelf_life
from .parser import SchemaDefinition, SchemaRow, read_schema_rows
from .units import UnitKind

logger = get_logger(__name__)

CATALOG_SCHEMA = SchemaDefinition(
    name="product_master",
    fields=frozenset(
        {"material", "description", "thai desc.", "product group", "bar code ea", "bar code dsp", "bar code cs"}
    ),
    column_map={
        "material_code": "material",
        "description": "description",
        "thai_description": "thai desc.",
        "pack_size": "pack size",
        "product_group": "product group",
        "shelf_life_months": "shelflife (months)",
        "barcode_ea": "bar code ea",
        "barcode_dsp": "bar code dsp",
        "barcode_cs": "bar code cs",
    },
    allow_extra=True,
)

PRODUCT_GROUP_CATEGORIES = {
    "STM": "beverages",
    "BB Gold": "beverages",
    "EVAP": "dairy",
    "SBC": "dairy",
    "SCM": "dairy",
    "Magnolia UHT": "beverages",
    "NUTRISOY": "beverages",
    "Gummy": "confectionery",
}
DEFAULT_CATEGORY = "other"

# (brand, English markers, Thai markers), checked in order.
_BRAND_MARKERS: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("Bear Brand", ("BEAR BRAND", "BRBR"), ("หมี",)),
    ("Carnation", ("CARNATION",), ("คาร์เนชัน",)),
    ("Teapot", ("TEAPOT",), ("ทีพอท",)),
    ("Magnolia", ("MAGNOLIA",), ("แมกโนเลีย",)),
    ("Nutriwell", ("NUTRIWELL",), ("นิวทริเวล",)),
    ("Hayoco", ("HAYOCO",), ("ฮาโยโก้",)),
)
DEFAULT_BRAND = "F&N"

_NAME_CLEANUPS = (
    re.compile(r"^\d+[xX]\(.*?\)\s*"),
    re.compile(r"\s+\d+[xX].*$"),
    re.compile(r"\s*(TH|FS|P12|10B\.)\s*$"),
    re.compile(r"\s*\(.*?\)\s*$"),
)

_UNIT_COLUMNS = (
    (UnitKind.EA, "barcode_ea"),
    (UnitKind.DSP, "barcode_dsp"),
    (UnitKind.CS, "barcode_cs"),
)


def extract_brand(description: str, thai_description: str) -> str:
    """Infer the brand from English markers first, then Thai ones."""

    upper = description.upper()
    for brand, english, _ in _BRAND_MARKERS:
        if any(marker in upper for marker in english):
            return brand
    for brand, _, thai in _BRAND_MARKERS:
        if any(marker in thai_description for marker in thai):
            return brand
    return DEFAULT_BRAND


def format_product_name(thai_description: str, description: str) -> str:
    """Display name without pack-size prefixes and trailing market codes."""

    name = thai_description or description
    for pattern in _NAME_CLEANUPS:
        name = pattern.sub("", name)
    return name.strip() or description


def category_for_group(product_group: str) -> str:
    return PRODUCT_GROUP_CATEGORIES.get(product_group, DEFAULT_CATEGORY)


def _to_product(row: SchemaRow, issues: list[DataIssue]) -> CatalogProduct | None:
    values = row.values
    material, _ = normalize_text(values.get("material_code"), field="material_code")
    description, _ = normalize_text(values.get("description"), field="description")
    thai_description, _ = normalize_text(values.get("thai_description"), field="thai_description")
    pack_size, _ = normalize_text(values.get("pack_size"), field="pack_size")
    product_group, _ = normalize_text(values.get("product_group"), field="product_group")
    shelf_life, shelf_life_issues = parse_shelf_life(values.get("shelf_life_months"))

    barcodes: dict[UnitKind, str] = {}
    for unit, column in _UNIT_COLUMNS:
        barcode, _ = normalize_barcode(values.get(column), field=column)
        if barcode:
            barcodes[unit] = barcode

    if not material or not description or not barcodes:
        issues.append(
            DataIssue(
                code="incomplete_product_skipped",
                message=f"Row {row.line_number} lacks a material code, description or barcode",
            )
        )
        return None

    issues.extend(shelf_life_issues)
    thai = thai_description or ""
    return CatalogProduct(
        material_code=material,
        name=format_product_name(thai, description),
        description=description,
        thai_description=thai,
        pack_size=pack_size or "",
        product_group=product_group or "",
        category=category_for_group(product_group or ""),
        brand=extract_brand(description, thai),
        shelf_life_months=shelf_life,
        barcodes=barcodes,
    )


def parse_catalog(csv_path: str | Path) -> CatalogParseResult:
    """Parse a product master CSV into catalog products and file-level issues."""

    path = Path(csv_path)
    file_issues: list[DataIssue] = []
    _, rows = read_schema_rows(path, (CATALOG_SCHEMA,), file_issues)
    products: list[CatalogProduct] = []
    for row in rows:
        product = _to_product(row, file_issues)
        if product is not None:
            products.append(product)
    return CatalogParseResult(file_path=path, products=products, file_issues=file_issues)


class ProductLookup(Protocol):
    """Anything able to resolve a scanned barcode to a catalog product."""

    def lookup(self, barcode: str) -> CatalogMatch | None: ...


class ProductCatalog:
    """Barcode index over catalog products with tolerant matching.

    Lookups try, in order: exact digits, the last 12 digits, the first 12
    digits, then equality ignoring leading zeros.
    """

    def __init__(self, products: Iterable[CatalogProduct]) -> None:
        self._products: dict[str, CatalogProduct] = {}
        self._by_barcode: dict[str, tuple[CatalogProduct, UnitKind]] = {}
        self.issues: list[DataIssue] = []

        for product in products:
            self._products.setdefault(product.material_code, product)
            for unit, barcode in product.barcodes.items():
                if barcode in self._by_barcode:
                    owner, _ = self._by_barcode[barcode]
                    self.issues.append(
                        DataIssue(
                            code="duplicate_barcode",
                            message=f"Barcode {barcode} of {product.material_code} already belongs to "
                            f"{owner.material_code}",
                            field="barcode",
                        )
                    )
                    continue
                self._by_barcode[barcode] = (product, unit)

    @classmethod
    def from_csv(cls, csv_path: str | Path) -> ProductCatalog:
        result = parse_catalog(csv_path)
        catalog = cls(result.products)
        catalog.issues[:0] = result.file_issues
        logger.info(
            "Loaded product catalog",
            extra={"products": len(catalog), "issues": len(catalog.issues), "path": str(result.file_path)},
        )
        return catalog

    def __len__(self) -> int:
        return len(self._products)

    def products(self) -> list[CatalogProduct]:
        return list(self._products.values())

    def get(self, material_code: str) -> CatalogProduct | None:
        return self._products.get(material_code)

    def _match(self, barcode: str) -> CatalogMatch:
        product, unit = self._by_barcode[barcode]
        return CatalogMatch(product=product, unit=unit, matched_barcode=barcode)

    def _find(self, predicate: Callable[[str], bool]) -> CatalogMatch | None:
        for candidate in self._by_barcode:
            if predicate(candidate):
                return self._match(candidate)
        return None

    def lookup(self, barcode: str) -> CatalogMatch | None:
        """Resolve a scanned barcode, or return None when no product matches."""

        digits = barcode_digits(barcode)
        if not digits:
            return None
        if digits in self._by_barcode:
            return self._match(digits)

        match: CatalogMatch | None = None
        if len(digits) >= 12:
            match = self._find(lambda candidate: candidate[-12:] == digits[-12:])
            if match is None:
                match = self._find(lambda candidate: candidate[:12] == digits[:12])
        if match is None:
            stripped = digits.lstrip("0")
            match = self._find(lambda candidate: candidate.lstrip("0") == stripped)

        if match is None:
            logger.info("Barcode not in catalog", extra={"barcode": digits})
        return match
