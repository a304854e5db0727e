"""Field-level normalization helpers used by catalog and scan-log parsing."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from .errors import InvalidQuantityError
from .models import DataIssue
from .units import UnitKind, parse_unit

_NON_DIGIT_RE = re.compile(r"[^0-9]")
_PLACEHOLDER_BARCODES = frozenset({"-", "nan", "none", "n/a"})


def normalize_text(value: str | None, *, field: str) -> tuple[str | None, list[DataIssue]]:
    """Trim text, collapse empty values to None, and emit quality issues."""

    if value is None:
        return None, [DataIssue(code="missing_value", message=f"{field} is missing", field=field)]

    stripped = value.strip()
    issues: list[DataIssue] = []

    if stripped == "":
        issues.append(DataIssue(code="missing_value", message=f"{field} is empty", field=field))
        return None, issues

    if stripped != value:
        issues.append(
            DataIssue(
                code="whitespace_trimmed",
                message=f"{field} had leading/trailing whitespace",
                field=field,
            )
        )

    return stripped, issues


def barcode_digits(value: str) -> str:
    """Strip everything but digits from a barcode string."""

    return _NON_DIGIT_RE.sub("", value.strip())


def normalize_barcode(value: str | None, *, field: str = "barcode") -> tuple[str | None, list[DataIssue]]:
    """Reduce a barcode to its digits, treating spreadsheet placeholders as missing."""

    cleaned, issues = normalize_text(value, field=field)
    if cleaned is None:
        return None, issues

    if cleaned.casefold() in _PLACEHOLDER_BARCODES:
        issues.append(DataIssue(code="missing_value", message=f"{field} is a placeholder: {cleaned}", field=field))
        return None, issues

    digits = barcode_digits(cleaned)
    if digits == "":
        issues.append(
            DataIssue(
                code="invalid_barcode",
                message=f"Barcode has no digits: {cleaned}",
                field=field,
            )
        )
        return None, issues

    if digits != cleaned:
        issues.append(
            DataIssue(
                code="barcode_format_normalized",
                message="Barcode separators were removed",
                field=field,
            )
        )
    return digits, issues


def parse_quantity(value: str | None) -> tuple[int | None, list[DataIssue]]:
    """Parse quantity as int and emit issues for invalid or unusual formats."""

    cleaned, issues = normalize_text(value, field="quantity")
    if cleaned is None:
        return None, issues

    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        issues.append(
            DataIssue(
                code="invalid_quantity",
                message=f"Quantity is not numeric: {cleaned}",
                field="quantity",
            )
        )
        return None, issues

    if not parsed.is_finite() or parsed != parsed.to_integral_value():
        issues.append(
            DataIssue(
                code="non_integral_quantity",
                message=f"Quantity is not an integer: {cleaned}",
                field="quantity",
            )
        )
        return None, issues

    if "." in cleaned:
        issues.append(
            DataIssue(
                code="decimal_quantity_format",
                message=f"Quantity uses decimal formatting: {cleaned}",
                field="quantity",
            )
        )

    quantity = int(parsed)
    if quantity < 0:
        issues.append(
            DataIssue(
                code="negative_quantity",
                message=f"Quantity is negative: {quantity}",
                field="quantity",
            )
        )
    return quantity, issues


def parse_unit_field(value: str | None) -> tuple[UnitKind | None, list[DataIssue]]:
    """Parse an optional unit column; blank means "use the barcode's unit"."""

    if value is None or value.strip() == "":
        return None, []

    try:
        return parse_unit(value), []
    except InvalidQuantityError:
        return None, [DataIssue(code="invalid_unit", message=f"Unknown unit: {value.strip()}", field="unit")]


def parse_shelf_life(value: str | None) -> tuple[int | None, list[DataIssue]]:
    """Parse shelf life in months; unparseable values are flagged and dropped."""

    if value is None or value.strip() == "":
        return None, []

    cleaned = value.strip()
    if cleaned.isdigit():
        return int(cleaned), []
    return None, [
        DataIssue(
            code="invalid_shelf_life",
            message=f"Shelf life is not a whole number of months: {cleaned}",
            field="shelf_life_months",
        )
    ]
