"""One counting session: a catalog, a store and an engine for one employee."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .catalog import PRODUCT_GROUP_CATEGORIES, ProductLookup, category_for_group
from .config import Settings, settings as default_settings
from .errors import InvalidQuantityError, NotFoundError, UnknownProductGroupError
from .export import ExportPreview, ExportResult, export_inventory, export_json, local_now, preview_export
from .logging_config import get_logger
from .models import EmployeeContext, InventoryRecord, InventorySummary, QuantityDetail
from .quantity import Clock, QuantityInput, UnitQuantity, utc_now, validate_count
from .reconcile import ReconcileResult, ReconciliationEngine, ScanEvent
from .store import InventoryStore
from .units import UnitKind

logger = get_logger(__name__)

NEW_PRODUCT_PREFIX = "NEW_"
NEW_PRODUCT_BRAND = "New product"


@dataclass(frozen=True, slots=True)
class ScanInput:
    """Raw capture output: a decoded barcode, a quantity and an optional unit."""

    barcode: str
    quantity: QuantityInput | int | Mapping[str, Any] | QuantityDetail = 1
    unit: UnitKind | None = None


class CountingSession:
    """Owns the inventory state for one employee at one branch.

    Scans are processed one at a time, in the order they are fed. The store is
    discarded by `teardown`; nothing outlives the session.
    """

    def __init__(
        self,
        catalog: ProductLookup,
        employee: EmployeeContext | None = None,
        *,
        config: Settings | None = None,
        clock: Clock = utc_now,
        export_clock: Clock = local_now,
    ) -> None:
        self.config = config or default_settings
        self.catalog = catalog
        self.employee = employee
        self.store = InventoryStore(clock=clock)
        self.engine = ReconciliationEngine(self.store, clock=clock, config=self.config)
        self._clock = clock
        self._export_clock = export_clock
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Counting session has been torn down")

    def scan(
        self,
        barcode: str,
        quantity: QuantityInput | int | Mapping[str, Any] | QuantityDetail = 1,
        *,
        unit: UnitKind | None = None,
    ) -> ReconcileResult:
        """Look the barcode up and reconcile the counted quantity."""

        self._ensure_open()
        match = self.catalog.lookup(barcode)
        if match is None:
            logger.warning("Scanned barcode not in catalog", extra={"barcode": barcode})
            return ReconcileResult(success=False, error=NotFoundError(barcode, kind="barcode"))
        return self.engine.reconcile(ScanEvent.from_match(match, quantity, unit=unit))

    def feed(self, scans: Iterable[ScanInput]) -> list[ReconcileResult]:
        """Process scans sequentially; each one is applied fully or not at all."""

        results: list[ReconcileResult] = []
        for item in scans:
            results.append(self.scan(item.barcode, item.quantity, unit=item.unit))
        accepted = sum(1 for result in results if result.success)
        logger.info("Processed scan batch", extra={"scans": len(results), "accepted": accepted})
        return results

    def current_quantity(self, barcode: str) -> int:
        """Count already recorded for the unit a barcode belongs to.

        Falls back to the flat quantity of a record found by barcode when the
        catalog does not know the barcode.
        """

        match = self.catalog.lookup(barcode)
        if match is not None:
            record = self.store.find_by_material_code(match.product.material_code)
            if record is not None and record.quantity_detail is not None:
                return record.quantity_detail.count_for(match.unit)
        record = self.store.find_by_barcode(barcode)
        return record.quantity if record is not None else 0

    def _new_material_code(self) -> str:
        stamp = int(self._clock().timestamp() * 1000)
        while f"{NEW_PRODUCT_PREFIX}{stamp}" in self.store:
            stamp += 1
        return f"{NEW_PRODUCT_PREFIX}{stamp}"

    def add_new_product(
        self,
        barcode: str,
        name: str,
        product_group: str,
        description: str = "",
        *,
        cs: int = 0,
        dsp: int = 0,
        ea: int = 0,
    ) -> ReconcileResult:
        """Count a product the catalog does not know.

        The product gets a generated ``NEW_<epoch millis>`` material code and each
        non-zero unit count is reconciled as its own scan, largest unit first.
        """

        self._ensure_open()
        log_fields = {"barcode": barcode, "product_group": product_group}
        if product_group not in PRODUCT_GROUP_CATEGORIES:
            logger.warning("Rejected new product", extra=log_fields)
            return ReconcileResult(success=False, error=UnknownProductGroupError(product_group))

        counts = {UnitKind.CS: cs, UnitKind.DSP: dsp, UnitKind.EA: ea}
        try:
            for unit, count in counts.items():
                validate_count(count, field=unit.value)
        except InvalidQuantityError as exc:
            logger.warning("Rejected new product: %s", exc, extra=log_fields)
            return ReconcileResult(success=False, error=exc)
        if not any(counts.values()):
            error = InvalidQuantityError("New product has no counted quantity", value=0)
            logger.warning("Rejected new product: %s", error, extra=log_fields)
            return ReconcileResult(success=False, error=error)

        material_code = self._new_material_code()
        result = ReconcileResult(success=False)
        for unit, count in counts.items():
            if count == 0:
                continue
            result = self.engine.reconcile(
                ScanEvent(
                    material_code=material_code,
                    barcode=barcode,
                    quantity=UnitQuantity(quantity=count, unit=unit),
                    unit=unit,
                    product_name=name,
                    thai_description=description,
                    product_group=product_group,
                    category=category_for_group(product_group),
                    brand=NEW_PRODUCT_BRAND,
                )
            )
            if not result.success:
                break
        if result.success:
            logger.info("Added new product", extra={**log_fields, "material_code": material_code})
        return result

    def manual_edit(self, material_code: str, detail: QuantityDetail) -> ReconcileResult:
        self._ensure_open()
        return self.engine.apply_manual_edit(material_code, detail)

    def set_quantity(self, material_code: str, new_total: int) -> ReconcileResult:
        self._ensure_open()
        return self.engine.set_quantity(material_code, new_total)

    def remove(self, material_code: str) -> bool:
        self._ensure_open()
        return self.store.remove(material_code)

    def clear(self) -> None:
        self._ensure_open()
        self.store.clear()

    def records(self) -> list[InventoryRecord]:
        return self.store.records()

    def search(self, term: str) -> list[InventoryRecord]:
        return self.store.search(term)

    def summary(self) -> InventorySummary:
        return self.store.summary()

    def export(self, output_dir: str | Path | None = None) -> ExportResult:
        return export_inventory(
            self.store.records(),
            self.employee,
            output_dir=output_dir,
            clock=self._export_clock,
            config=self.config,
        )

    def export_json(self, output_dir: str | Path | None = None) -> ExportResult:
        return export_json(
            self.store.records(),
            self.employee,
            output_dir=output_dir,
            clock=self._export_clock,
            config=self.config,
        )

    def preview(self, max_rows: int = 10) -> ExportPreview:
        return preview_export(
            self.store.records(),
            self.employee,
            max_rows=max_rows,
            clock=self._export_clock,
            config=self.config,
        )

    def teardown(self) -> None:
        """Discard all counted stock, as on logout or session reset."""

        if self._closed:
            return
        discarded = len(self.store)
        self.store.reset()
        self._closed = True
        logger.info("Session torn down", extra={"discarded_records": discarded})
