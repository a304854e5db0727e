"""Schema-aware CSV ingestion for scan logs and the product catalog."""

from __future__ import annotations

import csv
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .models import DataIssue, ScanLogParseResult, ScanLogRow
from .normalize import normalize_barcode, parse_quantity, parse_unit_field


@dataclass(frozen=True, slots=True)
class SchemaDefinition:
    """Defines how an input schema maps to canonical row fields.

    Exact schemas must match the normalized header set exactly; open schemas
    only require their fields to be present and ignore additional columns.
    """

    name: str
    fields: frozenset[str]
    column_map: dict[str, str]
    allow_extra: bool = False

    def matches(self, normalized_fields: frozenset[str]) -> bool:
        if self.allow_extra:
            return self.fields <= normalized_fields
        return self.fields == normalized_fields


SCAN_LOG_SCHEMAS = (
    SchemaDefinition(
        name="scan_log_with_unit",
        fields=frozenset({"barcode", "quantity", "unit"}),
        column_map={"barcode": "barcode", "quantity": "quantity", "unit": "unit"},
    ),
    SchemaDefinition(
        name="scan_log",
        fields=frozenset({"barcode", "quantity"}),
        column_map={"barcode": "barcode", "quantity": "quantity"},
    ),
)


def normalize_header(header: str | None) -> str:
    """Normalize header names so schema matching is resilient to formatting."""

    if header is None:
        return ""
    return header.strip().lower()


def detect_schema(headers: Sequence[str] | None, schemas: Sequence[SchemaDefinition]) -> SchemaDefinition:
    """Return the first schema definition matching a header row.

    Unknown header sets fail fast instead of silently mis-mapping columns.
    """

    if not headers:
        raise ValueError("CSV file has no header row")

    normalized_fields = frozenset(normalize_header(header) for header in headers if header is not None)
    for schema in schemas:
        if schema.matches(normalized_fields):
            return schema

    sorted_fields = ", ".join(sorted(normalized_fields))
    raise ValueError(f"Unrecognized CSV schema fields: {sorted_fields}")


def _is_blank_row(raw_row: dict[str | None, str | None], headers: Sequence[str]) -> bool:
    """Return True when all declared columns in a row are empty."""

    for header in headers:
        value = raw_row.get(header)
        if value is None:
            continue
        if value.strip() != "":
            return False
    return True


@dataclass(frozen=True, slots=True)
class SchemaRow:
    """One non-blank CSV row with values keyed by canonical field name."""

    line_number: int
    values: dict[str, str | None]


def read_schema_rows(
    csv_path: str | Path,
    schemas: Sequence[SchemaDefinition],
    file_issues: list[DataIssue],
) -> tuple[SchemaDefinition, list[SchemaRow]]:
    """Detect the file's schema and return it with the mapped, non-blank rows.

    Blank rows and rows with surplus columns are reported into `file_issues`.
    """

    path = Path(csv_path)
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        headers = list(reader.fieldnames or [])
        schema = detect_schema(headers, schemas)
        header_by_field = {normalize_header(header): header for header in headers}
        rows: list[SchemaRow] = []

        for line_number, raw_row in enumerate(reader, start=2):
            if None in raw_row:
                # DictReader uses `None` for extra unnamed columns.
                file_issues.append(
                    DataIssue(
                        code="row_has_extra_columns",
                        message=f"Row {line_number} has more columns than the header",
                    )
                )

            if _is_blank_row(raw_row, headers):
                file_issues.append(
                    DataIssue(
                        code="blank_row_skipped",
                        message=f"Row {line_number} is blank and was skipped",
                    )
                )
                continue

            values = {
                canonical: raw_row.get(header_by_field[column])
                for canonical, column in schema.column_map.items()
                if column in header_by_field
            }
            rows.append(SchemaRow(line_number=line_number, values=values))

    return schema, rows


def _to_scan_row(row: SchemaRow) -> ScanLogRow:
    """Convert one mapped scan-log row into a canonical row with issue metadata."""

    barcode_raw = row.values.get("barcode")
    quantity_raw = row.values.get("quantity")
    unit_raw = row.values.get("unit")

    barcode, barcode_issues = normalize_barcode(barcode_raw)
    quantity, quantity_issues = parse_quantity(quantity_raw)
    unit, unit_issues = parse_unit_field(unit_raw)

    return ScanLogRow(
        source_row=row.line_number,
        barcode=barcode,
        quantity=quantity,
        unit=unit,
        raw={"barcode": barcode_raw, "quantity": quantity_raw, "unit": unit_raw},
        issues=[*barcode_issues, *quantity_issues, *unit_issues],
    )


def parse_scan_log(csv_path: str | Path) -> ScanLogParseResult:
    """Parse one scan log CSV into canonical rows and file-level issues."""

    path = Path(csv_path)
    file_issues: list[DataIssue] = []
    schema, rows = read_schema_rows(path, SCAN_LOG_SCHEMAS, file_issues)
    return ScanLogParseResult(
        file_path=path,
        schema_name=schema.name,
        rows=[_to_scan_row(row) for row in rows],
        file_issues=file_issues,
    )
