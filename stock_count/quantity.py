"""Resolve raw scan quantities into canonical per-unit breakdowns.

A scan quantity arrives in one of three shapes, modelled as a tagged union:

- `BareCount` - a plain count, expressed in EA unless a unit override is given.
- `UnitQuantity` - an explicit ``(quantity, unit)`` pair.
- `DetailQuantity` - a pre-built `QuantityDetail`.

`resolve_quantity` turns any of them into a `QuantityDetail` with only the
scanned unit's slot populated. Validation happens here, before anything
touches the store.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, TypeAlias

from .errors import InvalidQuantityError
from .logging_config import get_logger
from .models import QuantityDetail
from .units import UnitKind, parse_unit

logger = get_logger(__name__)

Clock: TypeAlias = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class BareCount:
    count: int


@dataclass(frozen=True, slots=True)
class UnitQuantity:
    quantity: int
    unit: UnitKind


@dataclass(frozen=True, slots=True)
class DetailQuantity:
    detail: QuantityDetail


QuantityInput: TypeAlias = BareCount | UnitQuantity | DetailQuantity


def validate_count(value: Any, *, field: str = "quantity") -> int:
    """Return `value` if it is a non-negative integer, else raise."""

    # bool is an int subclass but never a meaningful count.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(f"{field} is not an integer: {value!r}", value=value, field=field)
    if value < 0:
        raise InvalidQuantityError(f"{field} is negative: {value}", value=value, field=field)
    return value


def validate_detail(detail: QuantityDetail) -> QuantityDetail:
    """Check all three unit counts of a breakdown."""

    validate_count(detail.cs, field="cs")
    validate_count(detail.dsp, field="dsp")
    validate_count(detail.ea, field="ea")
    if not isinstance(detail.scanned_type, UnitKind):
        raise InvalidQuantityError(
            f"scanned_type is not a unit: {detail.scanned_type!r}",
            value=detail.scanned_type,
            field="scanned_type",
        )
    return detail


def coerce_quantity_input(raw: Any) -> QuantityInput:
    """Map a plain Python value onto the quantity input union.

    Accepts an already-tagged variant, an ``int`` (bare count), a mapping with
    ``quantity`` and ``unit`` keys, or a `QuantityDetail`.
    """

    if isinstance(raw, (BareCount, UnitQuantity, DetailQuantity)):
        return raw
    if isinstance(raw, QuantityDetail):
        return DetailQuantity(raw)
    if isinstance(raw, Mapping):
        if "quantity" not in raw:
            raise InvalidQuantityError("Quantity mapping has no 'quantity' key", value=dict(raw))
        return UnitQuantity(quantity=raw["quantity"], unit=parse_unit(raw.get("unit")))
    if isinstance(raw, int) and not isinstance(raw, bool):
        return BareCount(raw)
    raise InvalidQuantityError(f"Unsupported quantity input: {raw!r}", value=raw)


def single_unit_detail(unit: UnitKind, amount: int, *, timestamp: str) -> QuantityDetail:
    """Build a breakdown holding `amount` in `unit` and zero elsewhere."""

    return QuantityDetail(
        cs=amount if unit is UnitKind.CS else 0,
        dsp=amount if unit is UnitKind.DSP else 0,
        ea=amount if unit is UnitKind.EA else 0,
        scanned_type=unit,
        is_manual_edit=False,
        last_modified=timestamp,
    )


def resolve_quantity(
    quantity: QuantityInput,
    *,
    unit: UnitKind | None = None,
    clock: Clock = utc_now,
) -> QuantityDetail:
    """Normalize a scan quantity into a single-unit `QuantityDetail`.

    `unit` overrides the implied unit of a bare count and picks the slot read
    from a pre-built detail. An explicit ``(quantity, unit)`` pair keeps its own
    unit.
    """

    override = parse_unit(unit) if unit is not None else None
    if isinstance(quantity, BareCount):
        scanned = override or UnitKind.EA
        amount = validate_count(quantity.count)
    elif isinstance(quantity, UnitQuantity):
        scanned = parse_unit(quantity.unit)
        amount = validate_count(quantity.quantity)
    elif isinstance(quantity, DetailQuantity):
        detail = validate_detail(quantity.detail)
        scanned = override or detail.scanned_type
        amount = detail.count_for(scanned)
        if amount != detail.total:
            logger.warning(
                "Dropping counts outside the scanned unit",
                extra={"unit": scanned.value, "dropped": detail.total - amount},
            )
    else:
        raise InvalidQuantityError(f"Unsupported quantity input: {quantity!r}", value=quantity)

    return single_unit_detail(scanned, amount, timestamp=clock().isoformat())


def accumulate_detail(existing: QuantityDetail, incoming: QuantityDetail) -> QuantityDetail:
    """Add the incoming scan to the existing breakdown, one unit at a time.

    Only the incoming scanned unit changes; the other two counts are carried
    over untouched and no unit is ever converted into another.
    """

    unit = incoming.scanned_type
    added = incoming.count_for(unit)
    counts = {
        "cs": existing.cs,
        "dsp": existing.dsp,
        "ea": existing.ea,
    }
    counts[unit.value] += added
    return replace(
        existing,
        **counts,
        scanned_type=unit,
        is_manual_edit=False,
        last_modified=incoming.last_modified,
    )


def legacy_amount(detail: QuantityDetail, scanned: UnitKind | None = None) -> int:
    """Collapse a breakdown to one integer for the flat legacy path.

    Uses the scanned unit's count when the unit is known, otherwise sums all
    three slots.
    """

    return detail.count_for(scanned or detail.scanned_type) or detail.total
