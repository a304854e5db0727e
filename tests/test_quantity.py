"""Unit tests for quantity input resolution and per-unit accumulation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from stock_count.errors import InvalidQuantityError
from stock_count.models import QuantityDetail
from stock_count.quantity import (
    BareCount,
    DetailQuantity,
    UnitQuantity,
    accumulate_detail,
    coerce_quantity_input,
    legacy_amount,
    resolve_quantity,
    validate_count,
)
from stock_count.units import UnitKind

FIXED_NOW = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)


def _clock() -> datetime:
    return FIXED_NOW


def _detail(cs: int = 0, dsp: int = 0, ea: int = 0, scanned: UnitKind = UnitKind.EA) -> QuantityDetail:
    return QuantityDetail(cs=cs, dsp=dsp, ea=ea, scanned_type=scanned)


def test_bare_count_defaults_to_pieces() -> None:
    """A bare integer without a unit is a count of EA."""
    detail = resolve_quantity(BareCount(4), clock=_clock)

    assert (detail.cs, detail.dsp, detail.ea) == (0, 0, 4)
    assert detail.scanned_type is UnitKind.EA
    assert detail.is_manual_edit is False
    assert detail.last_modified == FIXED_NOW.isoformat()


def test_bare_count_honors_unit_override() -> None:
    detail = resolve_quantity(BareCount(2), unit=UnitKind.CS, clock=_clock)
    assert (detail.cs, detail.dsp, detail.ea) == (2, 0, 0)
    assert detail.scanned_type is UnitKind.CS


def test_unit_pair_keeps_its_own_unit() -> None:
    """An explicit (quantity, unit) pair is not overridden by the scan unit."""
    detail = resolve_quantity(UnitQuantity(quantity=3, unit=UnitKind.DSP), unit=UnitKind.EA, clock=_clock)
    assert (detail.cs, detail.dsp, detail.ea) == (0, 3, 0)
    assert detail.scanned_type is UnitKind.DSP


def test_detail_input_keeps_only_the_scanned_slot(caplog: pytest.LogCaptureFixture) -> None:
    """Counts outside the scanned unit are dropped and the drop is logged."""
    caplog.set_level(logging.WARNING, logger="stock_count")
    detail = resolve_quantity(DetailQuantity(_detail(cs=1, ea=6, scanned=UnitKind.EA)), clock=_clock)

    assert (detail.cs, detail.dsp, detail.ea) == (0, 0, 6)
    dropped = [record for record in caplog.records if record.getMessage() == "Dropping counts outside the scanned unit"]
    assert len(dropped) == 1
    assert dropped[0].dropped == 1


def test_detail_input_reads_slot_selected_by_unit_override() -> None:
    detail = resolve_quantity(DetailQuantity(_detail(cs=2, ea=6)), unit=UnitKind.CS, clock=_clock)
    assert (detail.cs, detail.dsp, detail.ea) == (2, 0, 0)
    assert detail.scanned_type is UnitKind.CS


@pytest.mark.parametrize("bad", [-1, 2.5, "3", True, None])
def test_validate_count_rejects_anything_but_non_negative_ints(bad: object) -> None:
    with pytest.raises(InvalidQuantityError) as excinfo:
        validate_count(bad)
    assert excinfo.value.code == "invalid_quantity"
    assert excinfo.value.value == bad


def test_resolve_rejects_negative_counts_in_any_shape() -> None:
    with pytest.raises(InvalidQuantityError):
        resolve_quantity(BareCount(-1), clock=_clock)
    with pytest.raises(InvalidQuantityError):
        resolve_quantity(UnitQuantity(quantity=-2, unit=UnitKind.CS), clock=_clock)
    with pytest.raises(InvalidQuantityError, match="dsp is negative"):
        resolve_quantity(DetailQuantity(_detail(dsp=-1, scanned=UnitKind.DSP)), clock=_clock)


def test_coerce_quantity_input_maps_plain_values_onto_variants() -> None:
    assert coerce_quantity_input(5) == BareCount(5)
    assert coerce_quantity_input({"quantity": 2, "unit": "cs"}) == UnitQuantity(quantity=2, unit=UnitKind.CS)
    assert coerce_quantity_input(_detail(ea=1)) == DetailQuantity(_detail(ea=1))
    assert coerce_quantity_input(BareCount(1)) == BareCount(1)


def test_coerce_quantity_input_rejects_unusable_values() -> None:
    with pytest.raises(InvalidQuantityError, match="no 'quantity' key"):
        coerce_quantity_input({"unit": "cs"})
    with pytest.raises(InvalidQuantityError, match="Unknown unit"):
        coerce_quantity_input({"quantity": 1, "unit": "pallet"})
    with pytest.raises(InvalidQuantityError, match="Unsupported quantity input"):
        coerce_quantity_input("7")
    with pytest.raises(InvalidQuantityError):
        coerce_quantity_input(False)


def test_accumulate_touches_only_the_incoming_unit() -> None:
    """CS and EA counts never convert into each other."""
    existing = QuantityDetail(cs=2, dsp=0, ea=0, scanned_type=UnitKind.CS, is_manual_edit=True, last_modified="t0")
    incoming = QuantityDetail(cs=0, dsp=0, ea=5, scanned_type=UnitKind.EA, last_modified="t1")

    merged = accumulate_detail(existing, incoming)

    assert (merged.cs, merged.dsp, merged.ea) == (2, 0, 5)
    assert merged.scanned_type is UnitKind.EA
    assert merged.is_manual_edit is False
    assert merged.last_modified == "t1"
    assert merged.total == 7


def test_accumulate_adds_repeated_scans_of_the_same_unit() -> None:
    merged = accumulate_detail(_detail(dsp=3, scanned=UnitKind.DSP), _detail(dsp=4, scanned=UnitKind.DSP))
    assert (merged.cs, merged.dsp, merged.ea) == (0, 7, 0)


def test_legacy_amount_prefers_the_scanned_slot_and_falls_back_to_the_sum() -> None:
    detail = _detail(cs=2, ea=5, scanned=UnitKind.EA)

    assert legacy_amount(detail) == 5
    assert legacy_amount(detail, UnitKind.CS) == 2
    assert legacy_amount(detail, UnitKind.DSP) == 7


def test_quantity_detail_helpers() -> None:
    detail = _detail(cs=1, ea=3)

    assert detail.total == 4
    assert detail.has_multiple_units is True
    assert _detail().is_empty is True
    assert detail.as_dict() == {
        "cs": 1,
        "dsp": 0,
        "ea": 3,
        "scannedType": "ea",
        "isManualEdit": False,
        "lastModified": "",
    }


def test_text_unit_override_is_parsed() -> None:
    detail = resolve_quantity(BareCount(2), unit="dsp", clock=_clock)  # type: ignore[arg-type]
    assert detail.scanned_type is UnitKind.DSP
    assert detail.dsp == 2

    with pytest.raises(InvalidQuantityError, match="Unknown unit"):
        resolve_quantity(BareCount(2), unit="box", clock=_clock)  # type: ignore[arg-type]
