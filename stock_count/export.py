"""Collapse inventory records into the spreadsheet count report.

The report has exactly two quantity columns per ``(material code, product
group)`` group: a case column fed by CS and DSP counts, and a piece column fed
by EA counts. The identity column prints the material code that supplied the
largest unit, in CS > DSP > EA order.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .config import Settings, settings as default_settings
from .errors import DownstreamWriteFailureError, NothingToExportError, StockCountError
from .logging_config import get_logger
from .models import EmployeeContext, InventoryRecord
from .quantity import Clock
from .units import UNITS_BY_PRIORITY, UnitKind

logger = get_logger(__name__)

REPORT_HEADERS = ("F/FG", "Prod. Gr.", "รายละเอียด", "นับจริง (cs)", "นับจริง (ชิ้น)")


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True, slots=True)
class ExportRow:
    """One aggregated report line."""

    material_code: str
    product_group: str
    description: str
    case_count: int
    piece_count: int

    def as_fields(self) -> list[str]:
        return [
            self.material_code,
            self.product_group,
            self.description,
            str(self.case_count) if self.case_count > 0 else "",
            str(self.piece_count) if self.piece_count > 0 else "",
        ]


@dataclass(slots=True)
class _Group:
    material_code: str
    product_group: str
    description: str
    case_count: int = 0
    piece_count: int = 0
    sources: dict[UnitKind, str] = field(default_factory=dict)

    def add(self, record: InventoryRecord) -> None:
        for unit, count in _contributions(record):
            if count <= 0:
                continue
            if unit.bucket == "case":
                self.case_count += count
            else:
                self.piece_count += count
            self.sources[unit] = record.material_code

    def display_code(self) -> str:
        """Code of the largest contributing unit; equals `material_code` while it is part of the key."""

        for unit in UNITS_BY_PRIORITY:
            if unit in self.sources:
                return self.sources[unit]
        return self.material_code


def _contributions(record: InventoryRecord) -> list[tuple[UnitKind, int]]:
    """Per-unit counts a record adds to the report."""

    detail = record.quantity_detail
    if detail is None:
        # Legacy records only know the unit of their last scan.
        return [(record.barcode_type, record.quantity)]
    return [(unit, detail.count_for(unit)) for unit in UNITS_BY_PRIORITY]


def aggregate_export_rows(records: Iterable[InventoryRecord]) -> list[ExportRow]:
    """Group records by material code and product group, in first-seen order."""

    groups: dict[tuple[str, str], _Group] = {}
    for record in records:
        key = (record.material_code, record.product_group)
        group = groups.get(key)
        if group is None:
            group = _Group(
                material_code=record.material_code,
                product_group=record.product_group,
                description=record.description,
            )
            groups[key] = group
        group.add(record)

    return [
        ExportRow(
            material_code=group.display_code(),
            product_group=group.product_group,
            description=group.description,
            case_count=group.case_count,
            piece_count=group.piece_count,
        )
        for group in groups.values()
    ]


def _escape_field(value: str, delimiter: str) -> str:
    """Quote a field holding the delimiter, a quote or any line break."""

    if any(char in value for char in (delimiter, '"', "\r", "\n")):
        return '"' + value.replace('"', '""') + '"'
    return value


def _format_line(fields: Iterable[str], delimiter: str) -> str:
    return delimiter.join(_escape_field(value, delimiter) for value in fields)


def render_report(
    records: Sequence[InventoryRecord],
    employee: EmployeeContext | None,
    *,
    captured_at: datetime,
    config: Settings | None = None,
) -> str:
    """Serialize records to the delimited report text (without BOM).

    Lines end with ``\\n``. Raises `NothingToExportError` when there are no
    records.
    """

    config = config or default_settings
    if not records:
        raise NothingToExportError()

    branch_code = employee.branch_code if employee and employee.branch_code else config.unknown_branch_code
    branch_name = employee.branch_name if employee and employee.branch_name else config.unknown_branch_name
    delimiter = config.delimiter

    lines: list[str] = []
    if config.include_timestamp:
        stamp = captured_at.strftime("%Y-%m-%d %H:%M:%S")
        lines.append(_format_line([f"Inventory status as of {stamp} for {branch_code} - {branch_name}"], delimiter))
    if config.include_employee_info and employee is not None:
        lines.append(_format_line(["Counted by", employee.employee_name], delimiter))
    lines.append("")
    lines.append(_format_line(REPORT_HEADERS, delimiter))
    for row in aggregate_export_rows(records):
        lines.append(_format_line(row.as_fields(), delimiter))
    return "\n".join(lines) + "\n"


def generate_file_name(
    captured_at: datetime,
    employee: EmployeeContext | None = None,
    *,
    suffix: str = ".csv",
    config: Settings | None = None,
) -> str:
    """Build ``<prefix>_<YYYY-MM-DD>_<HH-MM-SS>[_<branch>]<suffix>``."""

    config = config or default_settings
    name = f"{config.file_prefix}_{captured_at:%Y-%m-%d}_{captured_at:%H-%M-%S}"
    if employee is not None and employee.branch_code:
        name += f"_{employee.branch_code}"
    return f"{name}{suffix}"


def write_report(content: str, *, output_path: Path) -> Path:
    """Write report text as UTF-8 with a byte-order mark."""

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8-sig", newline="")
    except OSError as exc:
        raise DownstreamWriteFailureError(output_path, str(exc)) from exc
    return output_path


def build_json_payload(
    records: Sequence[InventoryRecord],
    employee: EmployeeContext | None,
    *,
    exported_at: datetime,
    config: Settings | None = None,
) -> dict[str, Any]:
    """Full-fidelity backup of the store, per-unit breakdowns included."""

    config = config or default_settings
    if not records:
        raise NothingToExportError()
    return {
        "metadata": {
            "exportedAt": exported_at.isoformat(),
            "exportedBy": employee.employee_name if employee else None,
            "branchCode": employee.branch_code if employee else None,
            "branchName": employee.branch_name if employee else None,
            "totalItems": len(records),
            "version": config.json_format_version,
        },
        "inventory": [record.as_dict() for record in records],
    }


def write_json(payload: dict[str, Any], *, output_path: Path) -> Path:
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as exc:
        raise DownstreamWriteFailureError(output_path, str(exc)) from exc
    return output_path


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Outcome of one export attempt; failures carry the typed error."""

    success: bool
    path: Path | None = None
    row_count: int = 0
    error: StockCountError | None = None

    def __bool__(self) -> bool:
        return self.success


@dataclass(frozen=True, slots=True)
class ExportPreview:
    total_rows: int
    preview_rows: list[str]
    estimated_size: int
    file_name: str


def export_inventory(
    records: Sequence[InventoryRecord],
    employee: EmployeeContext | None,
    *,
    output_dir: str | Path | None = None,
    clock: Clock = local_now,
    config: Settings | None = None,
) -> ExportResult:
    """Render and write the CSV report, reporting failure instead of raising."""

    config = config or default_settings
    captured_at = clock()
    target_dir = Path(output_dir if output_dir is not None else config.output_dir)
    try:
        content = render_report(records, employee, captured_at=captured_at, config=config)
        path = write_report(content, output_path=target_dir / generate_file_name(captured_at, employee, config=config))
    except StockCountError as exc:
        logger.warning("Export failed: %s", exc, extra={"error_code": exc.code})
        return ExportResult(success=False, error=exc)

    logger.info(
        "Exported inventory report",
        extra={
            "records": len(records),
            "employee": employee.employee_name if employee else None,
            "output": str(path),
        },
    )
    return ExportResult(success=True, path=path, row_count=len(aggregate_export_rows(records)))


def export_json(
    records: Sequence[InventoryRecord],
    employee: EmployeeContext | None,
    *,
    output_dir: str | Path | None = None,
    clock: Clock = local_now,
    config: Settings | None = None,
) -> ExportResult:
    """Write the JSON backup next to where the CSV report would go."""

    config = config or default_settings
    exported_at = clock()
    target_dir = Path(output_dir if output_dir is not None else config.output_dir)
    try:
        payload = build_json_payload(records, employee, exported_at=exported_at, config=config)
        file_name = generate_file_name(exported_at, employee, suffix=".json", config=config)
        path = write_json(payload, output_path=target_dir / file_name)
    except StockCountError as exc:
        logger.warning("JSON export failed: %s", exc, extra={"error_code": exc.code})
        return ExportResult(success=False, error=exc)

    logger.info("Exported inventory JSON", extra={"records": len(records), "output": str(path)})
    return ExportResult(success=True, path=path, row_count=len(records))


def preview_export(
    records: Sequence[InventoryRecord],
    employee: EmployeeContext | None,
    *,
    max_rows: int = 10,
    clock: Clock = local_now,
    config: Settings | None = None,
) -> ExportPreview:
    """Return the first lines of the report and its size without writing it."""

    captured_at = clock()
    content = render_report(records, employee, captured_at=captured_at, config=config)
    lines = content.splitlines()
    return ExportPreview(
        total_rows=len(lines),
        preview_rows=lines[:max_rows],
        estimated_size=len(content.encode("utf-8-sig")),
        file_name=generate_file_name(captured_at, employee, config=config),
    )
