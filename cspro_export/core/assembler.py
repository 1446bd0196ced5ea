"""Case assembly: merge the heads of all record cursors into cases.

WHY: A CSPro case is spread over one table per record type. Every table
is sorted by the case identifiers, so the next case to write is always
the smallest level-0 identifier found at the head of any table, and all
of its rows sit at the heads of the tables right now.

HOW: next_case() takes the minimum case id over the cursors that still
have rows, then drains each cursor while its current record carries that
id. iter_cases() repeats until every cursor is exhausted.

RULES:
- Cursors must have been advanced to their first row before assembly
- A cursor may contribute zero, one or many records to a case
- Records of a case come out grouped by cursor, in cursor order; the
  orderer decides the final output order
- Rows whose ids match no parent still form a case of their own
- Equal ids rendered with different widths in different records are a
  dictionary defect and are not reconciled here
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Protocol, Sequence

from cspro_export.core.ir import RecordInstance

logger = logging.getLogger(__name__)


class CaseSource(Protocol):
    """What the assembler needs from a cursor."""

    at_end: bool

    @property
    def current(self) -> RecordInstance: ...

    def advance(self) -> bool: ...


def next_case(cursors: Sequence[CaseSource]) -> List[RecordInstance]:
    """Pull every record of the next case off the cursors.

    Args:
        cursors: Cursors in dictionary declaration order, each already
                 advanced to its first row.

    Returns:
        All records sharing the smallest current case id, or an empty
        list when every cursor is exhausted.
    """
    live = [cursor for cursor in cursors if not cursor.at_end]
    if not live:
        return []

    case_id = min(cursor.current.case_id for cursor in live)

    records: List[RecordInstance] = []
    for cursor in live:
        while not cursor.at_end and cursor.current.case_id == case_id:
            records.append(cursor.current)
            cursor.advance()

    logger.debug("Assembled case %r: %d record(s)", case_id, len(records))
    return records


def iter_cases(cursors: Sequence[CaseSource]) -> Iterator[List[RecordInstance]]:
    """Yield cases in ascending case id order until all cursors are done."""
    while not all(cursor.at_end for cursor in cursors):
        yield next_case(cursors)
