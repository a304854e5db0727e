"""Batch runner for a stock count.

This script loads the product master, replays a scan log through a counting
session, and writes the spreadsheet report (plus an optional JSON backup)
under `output/` by default.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any

from stock_count import CountingSession, EmployeeContext, ProductCatalog, ScanInput, parse_scan_log
from stock_count.config import settings
from stock_count.logging_config import configure_logging, get_logger
from stock_count.models import DataIssue, ScanLogParseResult

DEFAULT_CATALOG = Path("data/product_master.csv")
DEFAULT_SCANS = Path("data/scans.csv")

logger = get_logger("count_export")


def _issue_to_dict(issue: DataIssue) -> dict[str, str | None]:
    """Serialize a `DataIssue` into a JSON-friendly dictionary."""

    return {
        "code": issue.code,
        "field": issue.field,
        "message": issue.message,
    }


def _usable_scans(parsed: ScanLogParseResult) -> list[ScanInput]:
    """Keep scan-log rows that can be reconciled; flagged rows are logged."""

    scans: list[ScanInput] = []
    for row in parsed.rows:
        if not row.is_usable:
            logger.warning(
                "Skipping scan log row %s",
                row.source_row,
                extra={"issues": ",".join(issue.code for issue in row.issues)},
            )
            continue
        scans.append(ScanInput(barcode=row.barcode or "", quantity=row.quantity or 0, unit=row.unit))
    return scans


def run_count(
    *,
    catalog_path: Path,
    scans_path: Path,
    employee: EmployeeContext,
    output_dir: Path,
    write_json_backup: bool = False,
) -> dict[str, Any]:
    """Replay a scan log and export it; returns a run summary payload."""

    catalog = ProductCatalog.from_csv(catalog_path)
    parsed = parse_scan_log(scans_path)
    session = CountingSession(catalog, employee)
    try:
        results = session.feed(_usable_scans(parsed))
        export = session.export(output_dir)
        backup = session.export_json(output_dir) if write_json_backup else None
        summary = session.summary()
    finally:
        session.teardown()

    rejected = [result.error.code for result in results if not result.success and result.error is not None]
    return {
        "report_path": str(export.path) if export.path else None,
        "json_path": str(backup.path) if backup is not None and backup.path else None,
        "export_error": export.error.code if export.error else None,
        "scans_applied": sum(1 for result in results if result.success),
        "scans_degraded": sum(1 for result in results if result.degraded),
        "scans_rejected": rejected,
        "total_products": summary.total_products,
        "catalog_issues": [_issue_to_dict(issue) for issue in catalog.issues],
        "scan_log_issues": [
            {"source_row": row.source_row, "issue": _issue_to_dict(issue)} for row in parsed.rows for issue in row.issues
        ]
        + [_issue_to_dict(issue) for issue in parsed.file_issues],
    }


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments for report generation."""

    parser = argparse.ArgumentParser(description="Replay a scan log and emit the stock count report.")
    parser.add_argument("--catalog", type=Path, default=DEFAULT_CATALOG, help="Path to the product master CSV")
    parser.add_argument("--scans", type=Path, default=DEFAULT_SCANS, help="Path to the scan log CSV")
    parser.add_argument("--employee-name", required=True, help="Name of the counting employee")
    parser.add_argument("--branch-code", required=True, help="Branch code embedded in the file name")
    parser.add_argument("--branch-name", default="", help="Branch display name")
    parser.add_argument("--output-dir", type=Path, default=Path(settings.output_dir), help="Output directory")
    parser.add_argument("--json", action="store_true", help="Also write a JSON backup of the counted stock")
    return parser.parse_args()


def main() -> int:
    """Entrypoint for command-line execution."""

    args = _parse_args()
    configure_logging(level=settings.log_level)
    outcome = run_count(
        catalog_path=args.catalog,
        scans_path=args.scans,
        employee=EmployeeContext(
            employee_name=args.employee_name,
            branch_code=args.branch_code,
            branch_name=args.branch_name,
        ),
        output_dir=args.output_dir,
        write_json_backup=args.json,
    )
    if outcome["report_path"] is None:
        print(f"Nothing written: {outcome['export_error']}")
        return 1
    print(f"Wrote stock count report: {outcome['report_path']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
