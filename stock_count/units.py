"""Packaging unit kinds and their display/priority semantics."""

from __future__ import annotations

from enum import Enum
from typing import Literal, TypeAlias

from .errors import InvalidQuantityError

ExportBucket: TypeAlias = Literal["case", "piece"]


class UnitKind(str, Enum):
    """Packaging unit a barcode (and therefore a scan) is expressed in."""

    EA = "ea"
    DSP = "dsp"
    CS = "cs"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def rank(self) -> int:
        """Physical size rank, larger units rank higher."""

        return _RANKS[self]

    @property
    def bucket(self) -> ExportBucket:
        """Report column this unit folds into."""

        return "piece" if self is UnitKind.EA else "case"


_LABELS = {
    UnitKind.EA: "Piece",
    UnitKind.DSP: "Pack",
    UnitKind.CS: "Case",
}

_RANKS = {
    UnitKind.EA: 1,
    UnitKind.DSP: 2,
    UnitKind.CS: 3,
}

UNITS_BY_PRIORITY: tuple[UnitKind, ...] = tuple(sorted(UnitKind, key=lambda unit: unit.rank, reverse=True))


def parse_unit(value: object, *, default: UnitKind | None = None) -> UnitKind:
    """Parse a unit token such as ``"CS"`` or ``" dsp "`` into a `UnitKind`."""

    if isinstance(value, UnitKind):
        return value
    if value is not None and not isinstance(value, str):
        raise InvalidQuantityError(f"Unit is not a text token: {value!r}", value=value, field="unit")
    if value is None or value.strip() == "":
        if default is None:
            raise InvalidQuantityError("Unit is missing", value=value)
        return default

    token = value.strip().lower()
    try:
        return UnitKind(token)
    except ValueError:
        raise InvalidQuantityError(f"Unknown unit: {value}", value=value) from None
