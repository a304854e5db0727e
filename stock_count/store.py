"""In-memory inventory record store keyed by material code."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator
from dataclasses import replace
from typing import TypeAlias

from .errors import NotFoundError
from .logging_config import get_logger
from .models import InventoryRecord, InventorySummary, QuantityBreakdown, QuantityDetail, RecordPatch
from .quantity import Clock, accumulate_detail, utc_now, validate_count, validate_detail
from .units import UnitKind

logger = get_logger(__name__)

MergeFn: TypeAlias = Callable[[QuantityDetail, QuantityDetail], QuantityDetail]

_DESCRIPTIVE_FIELDS = ("product_name", "thai_description", "product_group", "category", "brand")


def has_legacy_quantity(record: InventoryRecord) -> bool:
    """True when the record only carries a flat quantity and no breakdown."""

    return record.quantity_detail is None and record.quantity > 0


class InventoryStore:
    """Exclusively owned collection of inventory records, one per material code.

    Every operation validates its input before touching a record, so a failed
    call leaves the store exactly as it was.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._records: dict[str, InventoryRecord] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, material_code: object) -> bool:
        return material_code in self._records

    def __iter__(self) -> Iterator[InventoryRecord]:
        return iter(list(self._records.values()))

    def records(self) -> list[InventoryRecord]:
        """Return all records in insertion order."""

        return list(self._records.values())

    def _now(self) -> str:
        return self._clock().isoformat()

    def upsert(
        self,
        material_code: str,
        patch: RecordPatch,
        *,
        merge: MergeFn = accumulate_detail,
    ) -> tuple[InventoryRecord, bool]:
        """Create or update the record for `material_code`.

        Returns the record and whether it was newly created. A patch carrying a
        `QuantityDetail` is merged with `merge`; a patch without one adds its
        flat ``quantity`` to the legacy total and leaves any breakdown alone.
        """

        if not material_code:
            raise ValueError("material_code is required")

        incoming = patch.quantity_detail
        if incoming is not None:
            validate_detail(incoming)
        else:
            validate_count(patch.quantity)

        now = self._now()
        existing = self._records.get(material_code)
        if existing is None:
            record = InventoryRecord(
                material_code=material_code,
                barcode=patch.barcode,
                product_name=patch.product_name,
                thai_description=patch.thai_description,
                product_group=patch.product_group,
                category=patch.category,
                brand=patch.brand,
                quantity=incoming.total if incoming is not None else patch.quantity,
                barcode_type=patch.barcode_type,
                last_updated=now,
                quantity_detail=incoming,
            )
            self._records[material_code] = record
            logger.debug("Created record", extra={"material_code": material_code})
            return record, True

        if incoming is not None:
            if has_legacy_quantity(existing):
                raise ValueError(f"Record {material_code} holds a flat legacy quantity and no breakdown")
            base = existing.quantity_detail or replace(incoming, cs=0, dsp=0, ea=0)
            detail: QuantityDetail | None = merge(base, incoming)
            quantity = detail.total
        else:
            detail = existing.quantity_detail
            quantity = existing.quantity + patch.quantity

        # Catalog values win over what was stored, blanks never erase.
        refreshed = {name: getattr(patch, name) for name in _DESCRIPTIVE_FIELDS if getattr(patch, name)}
        for name, value in refreshed.items():
            setattr(existing, name, value)
        existing.barcode = patch.barcode or existing.barcode
        existing.barcode_type = patch.barcode_type
        existing.quantity_detail = detail
        existing.quantity = quantity
        existing.last_updated = now
        return existing, False

    def find_by_material_code(self, material_code: str) -> InventoryRecord | None:
        return self._records.get(material_code)

    def find_by_barcode(self, barcode: str) -> InventoryRecord | None:
        """Linear fallback lookup by the most recently scanned barcode."""

        for record in self._records.values():
            if record.barcode == barcode:
                return record
        return None

    def _require(self, material_code: str) -> InventoryRecord:
        record = self._records.get(material_code)
        if record is None:
            raise NotFoundError(material_code)
        return record

    def update_quantity(self, material_code: str, new_total: int) -> InventoryRecord:
        """Legacy overwrite of the flat quantity; the breakdown is not touched."""

        validate_count(new_total)
        record = self._require(material_code)
        record.quantity = new_total
        record.last_updated = self._now()
        return record

    def update_quantity_detail(self, material_code: str, detail: QuantityDetail) -> InventoryRecord:
        """Replace the whole breakdown, as done by manual correction."""

        validate_detail(detail)
        record = self._require(material_code)
        now = self._now()
        replaced = replace(detail, is_manual_edit=True, last_modified=now)
        record.quantity_detail = replaced
        record.quantity = replaced.total
        record.barcode_type = replaced.scanned_type
        record.last_updated = now
        return record

    def remove(self, material_code: str) -> bool:
        """Delete one record; returns False when there was nothing to delete."""

        return self._records.pop(material_code, None) is not None

    def clear(self) -> None:
        self._records.clear()

    reset = clear

    def search(self, term: str) -> list[InventoryRecord]:
        """Case-insensitive substring search over name, brand and description."""

        needle = term.strip().casefold()
        if not needle:
            return self.records()
        return [
            record
            for record in self._records.values()
            if any(
                needle in value.casefold()
                for value in (record.product_name, record.brand, record.thai_description)
            )
        ]

    def filter_by_category(self, category: str) -> list[InventoryRecord]:
        return [record for record in self._records.values() if record.category == category]

    def summary(self) -> InventorySummary:
        """Summarize record counts, raw item totals and per-unit totals."""

        totals: Counter[UnitKind] = Counter()
        multi_unit = 0
        for record in self._records.values():
            detail = record.quantity_detail
            if detail is None:
                totals[record.barcode_type] += record.quantity
                continue
            for unit in UnitKind:
                totals[unit] += detail.count_for(unit)
            if detail.has_multiple_units:
                multi_unit += 1

        last_updated = max((record.last_updated for record in self._records.values()), default=None)
        return InventorySummary(
            total_products=len(self._records),
            total_items=sum(record.quantity for record in self._records.values()),
            categories=dict(Counter(record.category for record in self._records.values())),
            quantity_breakdown=QuantityBreakdown(
                total_cs=totals[UnitKind.CS],
                total_dsp=totals[UnitKind.DSP],
                total_ea=totals[UnitKind.EA],
                items_with_multiple_units=multi_unit,
            ),
            last_updated=last_updated,
        )
