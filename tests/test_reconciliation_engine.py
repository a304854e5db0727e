"""Tests for the reconciliation engine and its strategy chain.

Scans are built directly as `ScanEvent` values so the engine is exercised
without a catalog; catalog-driven flows are covered by the session tests.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from stock_count.config import Settings
from stock_count.errors import InvalidQuantityError, NotFoundError
from stock_count.models import QuantityDetail, RecordPatch
from stock_count.quantity import BareCount, DetailQuantity, UnitQuantity
from stock_count.reconcile import (
    LegacyStrategy,
    MultiUnitStrategy,
    ReconciliationEngine,
    ScanEvent,
    StrategyStatus,
)
from stock_count.store import InventoryStore
from stock_count.units import UnitKind

FIXED_NOW = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)


def _clock() -> datetime:
    return FIXED_NOW


def _engine(*, multi_unit_enabled: bool = True) -> ReconciliationEngine:
    config = Settings(multi_unit_enabled=multi_unit_enabled)
    return ReconciliationEngine(InventoryStore(clock=_clock), clock=_clock, config=config)


def _scan(quantity: object, unit: UnitKind | None = None, material_code: str = "M1") -> ScanEvent:
    return ScanEvent(
        material_code=material_code,
        barcode="8850124003591",
        quantity=quantity,  # type: ignore[arg-type]
        unit=unit,
        product_name="Bear Brand Sterilized",
        product_group="STM",
        category="beverages",
        brand="Bear Brand",
    )


def _counts(engine: ReconciliationEngine, material_code: str = "M1") -> tuple[int, int, int]:
    record = engine.store.find_by_material_code(material_code)
    assert record is not None and record.quantity_detail is not None
    detail = record.quantity_detail
    return detail.cs, detail.dsp, detail.ea


def test_cases_then_pieces_accumulate_per_unit() -> None:
    """2 CS followed by 5 EA gives cs=2, ea=5 and a raw total of 7."""
    engine = _engine()

    first = engine.reconcile(_scan(BareCount(2), UnitKind.CS))
    assert first.success and first.created
    assert first.strategy == "multi_unit"
    assert _counts(engine) == (2, 0, 0)
    assert first.record is not None and first.record.quantity == 2

    second = engine.reconcile(_scan(BareCount(5), UnitKind.EA))
    assert second.success and not second.created
    assert _counts(engine) == (2, 0, 5)
    assert second.record is not None and second.record.quantity == 7
    assert len(engine.store) == 1


def test_repeated_scans_of_one_unit_add_up() -> None:
    engine = _engine()
    for _ in range(3):
        engine.reconcile(_scan(UnitQuantity(quantity=2, unit=UnitKind.DSP)))

    assert _counts(engine) == (0, 6, 0)


def test_plain_int_and_mapping_quantities_are_accepted() -> None:
    engine = _engine()

    assert engine.reconcile(_scan(3)).success
    assert engine.reconcile(_scan({"quantity": 1, "unit": "cs"})).success
    assert _counts(engine) == (1, 0, 3)


def test_detail_quantity_input_contributes_only_its_scanned_unit() -> None:
    engine = _engine()
    detail = QuantityDetail(cs=4, dsp=0, ea=9, scanned_type=UnitKind.CS)

    assert engine.reconcile(_scan(DetailQuantity(detail))).success
    assert _counts(engine) == (4, 0, 0)


def test_invalid_quantity_is_rejected_without_touching_the_store() -> None:
    engine = _engine()
    engine.reconcile(_scan(BareCount(2), UnitKind.CS))
    before = engine.store.find_by_material_code("M1")
    assert before is not None
    stamp = before.last_updated

    result = engine.reconcile(_scan(BareCount(-1), UnitKind.CS))

    assert not result
    assert isinstance(result.error, InvalidQuantityError)
    assert result.record is None
    assert _counts(engine) == (2, 0, 0)
    assert before.quantity == 2
    assert before.last_updated == stamp


def test_unparseable_raw_quantity_fails_cleanly() -> None:
    engine = _engine()
    result = engine.reconcile(_scan("lots"))

    assert result.success is False
    assert isinstance(result.error, InvalidQuantityError)
    assert len(engine.store) == 0


def test_scan_without_material_code_is_not_found() -> None:
    engine = _engine()
    result = engine.reconcile(_scan(1, material_code=""))

    assert result.success is False
    assert isinstance(result.error, NotFoundError)
    assert result.error.kind == "barcode"
    assert len(engine.store) == 0


def test_disabled_multi_unit_path_falls_back_to_legacy(caplog: pytest.LogCaptureFixture) -> None:
    """The fallback write succeeds but is logged as degraded."""
    caplog.set_level(logging.INFO, logger="stock_count")
    engine = _engine(multi_unit_enabled=False)

    result = engine.reconcile(_scan(BareCount(2), UnitKind.CS))

    assert result.success
    assert result.strategy == "legacy"
    assert result.degraded is True
    record = engine.store.find_by_material_code("M1")
    assert record is not None
    assert record.quantity == 2
    assert record.quantity_detail is None
    assert record.barcode_type is UnitKind.CS

    degraded = [
        entry for entry in caplog.records if entry.getMessage() == "Degraded write: per-unit breakdown not updated"
    ]
    assert len(degraded) == 1
    assert degraded[0].levelno == logging.WARNING
    assert degraded[0].strategy == "legacy"
    assert degraded[0].material_code == "M1"
    assert any(entry.getMessage().startswith("Strategy multi_unit unavailable") for entry in caplog.records)


def test_legacy_only_record_keeps_using_the_flat_path() -> None:
    """A record without a breakdown cannot be merged per unit."""
    engine = _engine()
    engine.store.upsert("M1", RecordPatch(barcode="8850124003591", barcode_type=UnitKind.EA, quantity=4))

    result = engine.reconcile(_scan(BareCount(3), UnitKind.EA))

    assert result.strategy == "legacy"
    record = engine.store.find_by_material_code("M1")
    assert record is not None
    assert record.quantity == 7
    assert record.quantity_detail is None


def test_multi_unit_strategy_reports_unavailability_instead_of_raising() -> None:
    store = InventoryStore(clock=_clock)
    detail = QuantityDetail(cs=0, dsp=0, ea=1, scanned_type=UnitKind.EA)

    outcome = MultiUnitStrategy(enabled=False).apply(store, _scan(1), detail)

    assert outcome.status is StrategyStatus.UNAVAILABLE
    assert outcome.reason == "multi-unit path is disabled"
    assert len(store) == 0


def test_legacy_strategy_writes_the_scanned_unit_amount() -> None:
    store = InventoryStore(clock=_clock)
    detail = QuantityDetail(cs=0, dsp=3, ea=0, scanned_type=UnitKind.DSP)

    outcome = LegacyStrategy().apply(store, _scan(3, UnitKind.DSP), detail)

    assert outcome.status is StrategyStatus.APPLIED
    assert outcome.created is True
    assert outcome.record is not None
    assert outcome.record.quantity == 3
    assert outcome.record.barcode_type is UnitKind.DSP


def test_custom_strategy_chain_is_respected() -> None:
    store = InventoryStore(clock=_clock)
    engine = ReconciliationEngine(store, strategies=[LegacyStrategy()], clock=_clock)

    result = engine.reconcile(_scan(BareCount(1)))

    assert result.strategy == "legacy"


def test_empty_strategy_chain_reports_failure() -> None:
    engine = ReconciliationEngine(InventoryStore(clock=_clock), strategies=[], clock=_clock)
    result = engine.reconcile(_scan(1))

    assert result.success is False
    assert result.error is None


def test_manual_edit_replaces_breakdown() -> None:
    engine = _engine()
    engine.reconcile(_scan(BareCount(2), UnitKind.CS))
    engine.reconcile(_scan(BareCount(5), UnitKind.EA))

    result = engine.apply_manual_edit("M1", QuantityDetail(cs=1, dsp=0, ea=0, scanned_type=UnitKind.CS))

    assert result.success
    assert result.strategy == "manual_edit"
    assert _counts(engine) == (1, 0, 0)
    assert result.record is not None
    assert result.record.quantity == 1
    assert result.record.quantity_detail is not None
    assert result.record.quantity_detail.is_manual_edit is True


def test_scan_after_manual_edit_accumulates_on_edited_values() -> None:
    engine = _engine()
    engine.reconcile(_scan(BareCount(5)))
    engine.apply_manual_edit("M1", QuantityDetail(cs=0, dsp=0, ea=2, scanned_type=UnitKind.EA))

    result = engine.reconcile(_scan(BareCount(1)))

    assert _counts(engine) == (0, 0, 3)
    assert result.record is not None
    assert result.record.quantity_detail is not None
    assert result.record.quantity_detail.is_manual_edit is False


def test_manual_edit_failures_are_reported() -> None:
    engine = _engine()
    missing = engine.apply_manual_edit("M9", QuantityDetail(cs=0, dsp=0, ea=1, scanned_type=UnitKind.EA))
    assert missing.success is False
    assert isinstance(missing.error, NotFoundError)

    engine.reconcile(_scan(1))
    negative = engine.apply_manual_edit("M1", QuantityDetail(cs=-1, dsp=0, ea=0, scanned_type=UnitKind.CS))
    assert negative.success is False
    assert isinstance(negative.error, InvalidQuantityError)
    assert _counts(engine) == (0, 0, 1)


def test_set_quantity_is_a_flat_legacy_overwrite() -> None:
    engine = _engine()
    engine.reconcile(_scan(BareCount(2), UnitKind.CS))

    result = engine.set_quantity("M1", 9)

    assert result.success
    assert result.strategy == "legacy"
    assert result.record is not None
    assert result.record.quantity == 9
    assert _counts(engine) == (2, 0, 0)

    assert engine.set_quantity("M9", 1).error is not None


def test_non_text_unit_in_quantity_mapping_fails_cleanly() -> None:
    engine = _engine()
    result = engine.reconcile(_scan({"quantity": 1, "unit": 5}))

    assert result.success is False
    assert isinstance(result.error, InvalidQuantityError)
    assert len(engine.store) == 0


def test_unit_override_given_as_text_is_parsed() -> None:
    engine = _engine()
    result = engine.reconcile(_scan(3, unit="cs"))  # type: ignore[arg-type]

    assert result.success
    assert _counts(engine) == (3, 0, 0)
    assert result.record is not None
    assert result.record.barcode_type is UnitKind.CS


def test_unknown_unit_override_fails_cleanly() -> None:
    engine = _engine()
    result = engine.reconcile(_scan(3, unit="pallet"))  # type: ignore[arg-type]

    assert result.success is False
    assert isinstance(result.error, InvalidQuantityError)
    assert len(engine.store) == 0


def test_legacy_fallback_uses_the_parsed_override_unit() -> None:
    engine = _engine(multi_unit_enabled=False)
    result = engine.reconcile(_scan(3, unit="dsp"))  # type: ignore[arg-type]

    assert result.degraded
    assert result.record is not None
    assert result.record.quantity == 3
    assert result.record.barcode_type is UnitKind.DSP
