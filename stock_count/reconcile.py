"""Reconciliation engine merging scans and manual edits into the store.

Scans run through an ordered chain of strategies sharing one result
contract. The multi-unit strategy accumulates per unit; when it reports
itself unavailable the engine falls through to the legacy strategy, which
collapses the scan to one integer and writes the flat quantity instead.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from .config import Settings, settings as default_settings
from .errors import InvalidQuantityError, NotFoundError, StockCountError
from .logging_config import get_logger
from .models import CatalogMatch, InventoryRecord, QuantityDetail, RecordPatch
from .quantity import (
    Clock,
    QuantityInput,
    accumulate_detail,
    coerce_quantity_input,
    legacy_amount,
    resolve_quantity,
    utc_now,
)
from .store import InventoryStore, has_legacy_quantity
from .units import UnitKind

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ScanEvent:
    """One scan (or typed count) targeting a catalog product."""

    material_code: str
    barcode: str
    quantity: QuantityInput | int | Mapping[str, Any] | QuantityDetail
    unit: UnitKind | None = None
    product_name: str = ""
    thai_description: str = ""
    product_group: str = ""
    category: str = ""
    brand: str = ""

    @classmethod
    def from_match(
        cls,
        match: CatalogMatch,
        quantity: QuantityInput | int | Mapping[str, Any] | QuantityDetail,
        *,
        unit: UnitKind | None = None,
    ) -> ScanEvent:
        """Build a scan from a catalog hit; `unit` overrides the barcode's unit."""

        product = match.product
        return cls(
            material_code=product.material_code,
            barcode=match.matched_barcode,
            quantity=quantity,
            unit=unit or match.unit,
            product_name=product.name,
            thai_description=product.thai_description,
            product_group=product.product_group,
            category=product.category,
            brand=product.brand,
        )

    def to_patch(self, detail: QuantityDetail) -> RecordPatch:
        return RecordPatch(
            barcode=self.barcode,
            barcode_type=detail.scanned_type,
            product_name=self.product_name,
            thai_description=self.thai_description,
            product_group=self.product_group,
            category=self.category,
            brand=self.brand,
            quantity_detail=detail,
        )


class StrategyStatus(str, Enum):
    APPLIED = "applied"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class StrategyOutcome:
    status: StrategyStatus
    record: InventoryRecord | None = None
    created: bool = False
    reason: str = ""

    @classmethod
    def unavailable(cls, reason: str) -> StrategyOutcome:
        return cls(status=StrategyStatus.UNAVAILABLE, reason=reason)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Definitive outcome of one reconciliation, manual edit or legacy update."""

    success: bool
    strategy: str | None = None
    created: bool = False
    record: InventoryRecord | None = None
    error: StockCountError | None = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def degraded(self) -> bool:
        return self.success and self.strategy == LegacyStrategy.name


class ReconcileStrategy(Protocol):
    name: str

    def apply(
        self,
        store: InventoryStore,
        scan: ScanEvent,
        detail: QuantityDetail,
    ) -> StrategyOutcome: ...


class MultiUnitStrategy:
    """Per-unit accumulation into the record's `QuantityDetail`."""

    name = "multi_unit"

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled

    def apply(self, store: InventoryStore, scan: ScanEvent, detail: QuantityDetail) -> StrategyOutcome:
        if not self.enabled:
            return StrategyOutcome.unavailable("multi-unit path is disabled")
        existing = store.find_by_material_code(scan.material_code)
        if existing is not None and has_legacy_quantity(existing):
            return StrategyOutcome.unavailable("record holds a flat legacy quantity")

        record, created = store.upsert(scan.material_code, scan.to_patch(detail), merge=accumulate_detail)
        return StrategyOutcome(status=StrategyStatus.APPLIED, record=record, created=created)


class LegacyStrategy:
    """Flat-quantity write that loses per-unit separation for this scan."""

    name = "legacy"

    def apply(self, store: InventoryStore, scan: ScanEvent, detail: QuantityDetail) -> StrategyOutcome:
        amount = legacy_amount(detail)
        patch = replace(scan.to_patch(detail), quantity_detail=None, quantity=amount)
        record, created = store.upsert(scan.material_code, patch)
        return StrategyOutcome(status=StrategyStatus.APPLIED, record=record, created=created)


class ReconciliationEngine:
    """Decides whether a scan creates, accumulates into, or overwrites a record."""

    def __init__(
        self,
        store: InventoryStore,
        *,
        strategies: Sequence[ReconcileStrategy] | None = None,
        clock: Clock = utc_now,
        config: Settings | None = None,
    ) -> None:
        config = config or default_settings
        self.store = store
        self.strategies: tuple[ReconcileStrategy, ...] = tuple(
            strategies
            if strategies is not None
            else (MultiUnitStrategy(enabled=config.multi_unit_enabled), LegacyStrategy())
        )
        self._clock = clock

    def reconcile(self, scan: ScanEvent) -> ReconcileResult:
        """Merge one scan into the store and report success or failure."""

        log_fields = {"material_code": scan.material_code, "barcode": scan.barcode}
        if not scan.material_code:
            error = NotFoundError(scan.barcode, kind="barcode")
            logger.warning("Rejected scan without material code", extra=log_fields)
            return ReconcileResult(success=False, error=error)

        try:
            detail = resolve_quantity(coerce_quantity_input(scan.quantity), unit=scan.unit, clock=self._clock)
        except InvalidQuantityError as exc:
            logger.warning("Rejected scan: %s", exc, extra=log_fields)
            return ReconcileResult(success=False, error=exc)

        log_fields["unit"] = detail.scanned_type.value
        for strategy in self.strategies:
            outcome = strategy.apply(self.store, scan, detail)
            if outcome.status is StrategyStatus.UNAVAILABLE:
                logger.info(
                    "Strategy %s unavailable: %s",
                    strategy.name,
                    outcome.reason,
                    extra={**log_fields, "strategy": strategy.name},
                )
                continue

            if strategy.name == LegacyStrategy.name:
                logger.warning(
                    "Degraded write: per-unit breakdown not updated",
                    extra={**log_fields, "strategy": strategy.name},
                )
            else:
                logger.debug("Reconciled scan", extra={**log_fields, "strategy": strategy.name})
            return ReconcileResult(
                success=True,
                strategy=strategy.name,
                created=outcome.created,
                record=outcome.record,
            )

        logger.error("No reconciliation strategy accepted the scan", extra=log_fields)
        return ReconcileResult(success=False)

    def apply_manual_edit(self, material_code: str, detail: QuantityDetail) -> ReconcileResult:
        """Replace a record's breakdown outright, bypassing accumulation."""

        try:
            record = self.store.update_quantity_detail(material_code, detail)
        except StockCountError as exc:
            logger.warning("Rejected manual edit: %s", exc, extra={"material_code": material_code})
            return ReconcileResult(success=False, strategy="manual_edit", error=exc)
        logger.info("Applied manual edit", extra={"material_code": material_code, "quantity": record.quantity})
        return ReconcileResult(success=True, strategy="manual_edit", record=record)

    def set_quantity(self, material_code: str, new_total: int) -> ReconcileResult:
        """Legacy flat overwrite for callers without per-unit breakdowns."""

        try:
            record = self.store.update_quantity(material_code, new_total)
        except StockCountError as exc:
            logger.warning("Rejected quantity update: %s", exc, extra={"material_code": material_code})
            return ReconcileResult(success=False, strategy=LegacyStrategy.name, error=exc)
        return ReconcileResult(success=True, strategy=LegacyStrategy.name, record=record)
