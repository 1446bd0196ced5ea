"""Render raw column values to fixed-width CSPro field text.

WHY: A CSPro text file has no delimiters; a field is whatever sits
between two character positions. Every value must therefore be turned
into text of exactly its item's width before it can be placed on a line,
and numbers and text are justified differently.

HOW: Two steps. _to_text() turns the Python value produced by the
database driver into unpadded text (the rules depend on the value's
type). fit() then justifies that text into the item's width according to
the item's kind.

RULES:
- None → blank field (spaces); CSPro reads blanks as "not applicable"
- bool → "1"/"0"; int → digits with a leading "-" when negative
- Decimal/float → fixed point with the item's decimals, rounded half away
  from zero (3.25 → 3.3); the point is dropped when the item has no
  decimal character (implied decimals)
- NaN and infinite floats → blank field
- datetime → YYYYMMDDHHMMSS, date → YYYYMMDD, time → HHMMSS, UUID → str
- Anything else (bytes, …) raises UnsupportedFieldKindError
- Numeric fields are right-justified (zero padded when zero_fill); a
  number wider than its field raises FieldWidthError
- Alpha fields are left-justified and truncated; line breaks become spaces
"""

from __future__ import annotations

import datetime
import math
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from cspro_export.dictionary.models import Item, ItemKind
from cspro_export.errors import FieldWidthError, UnsupportedFieldKindError


def blank(item: Item) -> str:
    """A field of the item's width holding no value."""
    return " " * item.length


def render_value(value: Any, item: Item, column: str | None = None) -> str:
    """Render one column value into the item's fixed width.

    Args:
        value: Value as returned by the DB-API driver.
        item: Dictionary item the value is written to.
        column: Source column name, used in error messages (defaults to
                the item label).

    Returns:
        Text of exactly ``item.length`` characters.
    """
    if value is None:
        return blank(item)
    text = _to_text(value, item, column or item.label)
    if text is None:
        return blank(item)
    return fit(text, item)


def fit(text: str, item: Item) -> str:
    """Justify already-formatted text into the item's field."""
    width = item.length
    if item.kind == ItemKind.ALPHA:
        text = text.replace("\r", " ").replace("\n", " ")
        return text[:width].ljust(width)

    text = text.strip()
    if len(text) > width:
        raise FieldWidthError(item.label, text, width)
    if item.zero_fill and text:
        # zfill keeps a leading sign in front of the zeros
        return text.zfill(width)
    return text.rjust(width)


def _to_text(value: Any, item: Item, column: str) -> str | None:
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return _fixed_point(Decimal(repr(value)), item)
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return _fixed_point(value, item)
    if isinstance(value, str):
        return value
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime.datetime):
        return value.strftime("%Y%m%d%H%M%S")
    if isinstance(value, datetime.date):
        return value.strftime("%Y%m%d")
    if isinstance(value, datetime.time):
        return value.strftime("%H%M%S")
    if isinstance(value, uuid.UUID):
        return str(value)
    raise UnsupportedFieldKindError(column, type(value).__name__)


def _fixed_point(value: Decimal, item: Item) -> str:
    if item.kind == ItemKind.ALPHA:
        # Text fields keep the value as the database stored it
        return str(value)
    # ROUND_HALF_UP in decimal rounds ties away from zero
    exponent = Decimal(1).scaleb(-item.decimals)
    text = format(value.quantize(exponent, rounding=ROUND_HALF_UP), "f")
    if item.decimals and not item.decimal_char:
        text = text.replace(".", "")
    return text
