"""In-memory CSPro data dictionary.

WHY: Every stage of the export needs read access to the same layout
facts: levels, their id items, the records in each level, and each
item's position and width. A small typed model keeps those facts
independent of the file format the dictionary was loaded from.

HOW: Frozen dataclasses mirror the CSPro hierarchy:
  Dictionary: record-type tag position plus the ordered levels
  Level: id items shared by the level and every level below it
  Record: one line format (record type tag, length, items)
  Item: one field with label, 1-based start, length, kind

RULES:
- Order is significant everywhere: levels, id items, records, items
- Item.label (not Item.name) is what matches a database column
- Record.label (not Record.name) is what matches a database table
- Nothing here validates overlaps or widths; the dictionary is trusted
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple


class ItemKind(str, enum.Enum):
    """How a raw value is justified inside its field."""

    NUMERIC = "numeric"
    ALPHA = "alpha"


@dataclass(frozen=True)
class Item:
    """One field of a record line.

    Attributes:
        name: CSPro item name (unique in the dictionary, informational).
        label: Column name in the source table.
        start: 1-based character position within the record line.
        length: Field width in characters.
        kind: NUMERIC items are right-justified, ALPHA left-justified.
        decimals: Digits after the decimal point for numeric items.
        decimal_char: True if the decimal point is written out; False
            means implied decimals (the point is dropped).
        zero_fill: Pad numeric values with zeros instead of spaces.
    """

    name: str
    label: str
    start: int
    length: int
    kind: ItemKind = ItemKind.NUMERIC
    decimals: int = 0
    decimal_char: bool = False
    zero_fill: bool = False

    @property
    def end(self) -> int:
        """1-based position of the last character of the field."""
        return self.start + self.length - 1


@dataclass(frozen=True)
class Record:
    """One record type: a fixed-width line format mapped to one table."""

    name: str
    label: str
    record_type: str
    length: int
    items: Tuple[Item, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Level:
    """One tier of the case hierarchy (e.g. household, person)."""

    name: str
    label: str
    id_items: Tuple[Item, ...] = field(default_factory=tuple)
    records: Tuple[Record, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Dictionary:
    """A complete data dictionary: record-type tag position and levels."""

    name: str
    label: str
    levels: Tuple[Level, ...]
    record_type_start: int = 1
    record_type_length: int = 1

    @property
    def level_count(self) -> int:
        return len(self.levels)

    @property
    def record_count(self) -> int:
        return sum(len(level.records) for level in self.levels)

    def id_items_through(self, level_number: int) -> List[Item]:
        """Id items of levels 0..level_number, in dictionary order."""
        items: List[Item] = []
        for level in self.levels[: level_number + 1]:
            items.extend(level.id_items)
        return items

    def all_id_items(self) -> List[Item]:
        return self.id_items_through(len(self.levels) - 1)

    def iter_records(self) -> Iterator[Tuple[int, Level, Record]]:
        """Yield (level_number, level, record) in declaration order."""
        for level_number, level in enumerate(self.levels):
            for record in level.records:
                yield level_number, level, record
