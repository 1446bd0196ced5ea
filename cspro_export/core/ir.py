"""Intermediate representation passed between the export stages.

WHY: Rows come out of the database as bare tuples. The assembler, the
orderer and the serializer all need the same enriched view of a row:
rendered field values, the identifier chain of its level, its position in
read order and the record type it belongs to. The IR is that view.

HOW: Two frozen dataclasses:
  RecordInfo: static facts about one record type (built once per cursor)
  RecordInstance: one rendered row of that record type (built per read)

RULES:
- RecordInstance is immutable once a cursor has produced it
- values are already rendered to their item's exact width
- level_ids has one entry per level 0..L of the record's own level L;
  entry i is level i's rendered id values concatenated in item order
- occurrence counts from zero per record type, in read order
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Tuple

from cspro_export.dictionary.models import Dictionary, Level, Record


@dataclass(frozen=True)
class RecordInfo:
    """Where a record type sits in the dictionary.

    Attributes:
        record: The dictionary record (line layout, type tag, label).
        level: The level that declares the record.
        level_number: Zero-based depth of that level.
        declaration_order: Zero-based position of the record among all
            records of the dictionary, in declaration order.
    """

    record: Record
    level: Level
    level_number: int
    declaration_order: int


def record_infos(dictionary: Dictionary) -> List[RecordInfo]:
    """Describe every record type of the dictionary, in declaration order."""
    return [
        RecordInfo(
            record=record,
            level=level,
            level_number=level_number,
            declaration_order=order,
        )
        for order, (level_number, level, record) in enumerate(dictionary.iter_records())
    ]


@dataclass(frozen=True)
class RecordInstance:
    """One record read from the database, ready to be written.

    Attributes:
        values: Rendered field values keyed by item label.
        level_ids: Identifier chain, one entry per level 0..L.
        occurrence: Read-order sequence number within the record type.
        info: The record type this instance belongs to.
    """

    values: Mapping[str, str]
    level_ids: Tuple[str, ...]
    occurrence: int
    info: RecordInfo

    @property
    def case_id(self) -> str:
        """The level-0 identifier shared by every record of a case."""
        return self.level_ids[0]

    @property
    def level_number(self) -> int:
        return self.info.level_number
