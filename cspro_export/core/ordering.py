"""Hierarchical ordering of the records within one case.

WHY: CSPro recognises nesting purely by position: a person's records must
follow their household's records, a person's children must follow that
person, and so on down the hierarchy. Records arrive from the assembler
grouped by table, so they have to be re-sorted before they are written.

HOW: Each record gets a sort key with one element per level from 0 down
to its own level L:
  levels above L:  (ids at that level, 1)
  its own level L: (ids at level L, 0, declaration order, occurrence)
Comparing keys element by element compares the identifier chain level
by level. Where two chains agree up to a level, the record that belongs
to that level (flag 0) sorts before any record nested below it (flag 1);
two records of the same level fall back to declaration order, then to
the order they were read in.

RULES:
- A level record always precedes its descendants (shallower first, strictly)
- Siblings with equal ids keep dictionary declaration order
- Records of one type with equal ids keep read order
- Keys are total: two distinct records never compare equal
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from cspro_export.core.ir import RecordInstance

CaseOrderKey = Tuple[tuple, ...]


def case_order_key(record: RecordInstance) -> CaseOrderKey:
    """Sort key placing a record at its position within its case."""
    own_level = record.level_number
    key: List[tuple] = [(record.level_ids[level], 1) for level in range(own_level)]
    key.append((
        record.level_ids[own_level],
        0,
        record.info.declaration_order,
        record.occurrence,
    ))
    return tuple(key)


def order_case(records: Iterable[RecordInstance]) -> List[RecordInstance]:
    """Return the records of one case in CSPro file order."""
    return sorted(records, key=case_order_key)
