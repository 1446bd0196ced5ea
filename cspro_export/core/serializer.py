"""Fixed-width line serializer for CSPro text data files.

WHY: A CSPro data file is one line per record, each line laid out by the
dictionary: the record-type tag at a fixed position, every level's id
items at their positions, then the record's own items. The serializer is
the only place that knows about character positions.

HOW: For each record a blank buffer of the record's declared length is
filled with the type tag and every item value available for the record,
then written out as one newline-terminated line.

RULES:
- Line length always equals the record's declared Length
- The type tag is left-justified in the dictionary's record-type field
- Id items of every level are placed, then the record's own items
- An item without a value stays blank; a value of the wrong width
  raises FieldWidthError
- Anything past the declared length is clipped
- Lines are written one at a time, in the order given
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, TextIO

from cspro_export.core.ir import RecordInstance
from cspro_export.dictionary.models import Dictionary, Item
from cspro_export.errors import FieldWidthError


class LineSerializer:
    """Render RecordInstances as CSPro text lines for one dictionary."""

    def __init__(self, dictionary: Dictionary) -> None:
        self._dictionary = dictionary
        self._id_items: List[Item] = dictionary.all_id_items()

    def render(self, record: RecordInstance) -> str:
        """Render one record as a line (without the newline)."""
        layout = record.info.record
        line = [" "] * layout.length

        tag_width = self._dictionary.record_type_length
        tag = layout.record_type[:tag_width].ljust(tag_width)
        _place(line, self._dictionary.record_type_start, tag)

        _copy_items(line, self._id_items, record.values)
        _copy_items(line, layout.items, record.values)

        return "".join(line)

    def write(self, record: RecordInstance, stream: TextIO) -> None:
        stream.write(self.render(record))
        stream.write("\n")

    def write_case(self, records: Iterable[RecordInstance], stream: TextIO) -> int:
        """Write already-ordered records; returns the number of lines."""
        count = 0
        for record in records:
            self.write(record, stream)
            count += 1
        return count


def _copy_items(line: List[str], items: Iterable[Item], values: Mapping[str, str]) -> None:
    for item in items:
        value = values.get(item.label)
        if value is None:
            continue
        if len(value) != item.length:
            raise FieldWidthError(item.label, value, item.length)
        _place(line, item.start, value)


def _place(line: List[str], start: int, text: str) -> None:
    """Copy text into the buffer at a 1-based position, clipped to its end."""
    offset = start - 1
    room = len(line) - offset
    if room <= 0:
        return
    text = text[:room]
    line[offset:offset + len(text)] = list(text)
