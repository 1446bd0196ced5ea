"""Conversion driver: from a dictionary and a data source to a data file.

WHY: The four stages (read, assemble, order, write) have to be wired
together with strict resource handling: one open connection per record
type, all of them released whatever happens, and no partial success.

HOW: open_cursors() creates one RecordCursor per record in declaration
order inside an ExitStack and advances each to its first row. convert()
then loops over iter_cases(), orders every case and writes it line by
line, counting what it wrote.

RULES:
- Table name = table_prefix + record label
- Cursors are opened, and later listed, in dictionary declaration order
- Any error aborts the whole run; nothing is retried
- Output is written strictly in case order, one line at a time
"""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Dict, List, TextIO

from cspro_export import config
from cspro_export.core.assembler import iter_cases
from cspro_export.core.cursor import RecordCursor
from cspro_export.core.ir import record_infos
from cspro_export.core.ordering import order_case
from cspro_export.core.serializer import LineSerializer
from cspro_export.core.source import DataSource
from cspro_export.dictionary.models import Dictionary

logger = logging.getLogger(__name__)


@dataclass
class ConversionStats:
    """Counts reported at the end of a run."""

    cases: int = 0
    records: int = 0
    records_by_type: Dict[str, int] = field(default_factory=dict)


def open_cursors(
    stack: ExitStack,
    dictionary: Dictionary,
    source: DataSource,
    table_prefix: str = "",
    batch_size: int = config.BATCH_SIZE,
    prefetch: bool = False,
    prefetch_queue_size: int = config.PREFETCH_QUEUE_SIZE,
) -> List[RecordCursor]:
    """Open and prime one cursor per record type.

    Every cursor is registered on ``stack`` as soon as it exists, so a
    failure while opening a later one still closes the earlier ones.
    """
    cursors: List[RecordCursor] = []
    for info in record_infos(dictionary):
        table = table_prefix + info.record.label
        cursor = stack.enter_context(RecordCursor(
            source,
            table,
            info,
            dictionary,
            batch_size=batch_size,
            prefetch=prefetch,
            prefetch_queue_size=prefetch_queue_size,
        ))
        # Move to the first row so the assembler has a valid head
        cursor.advance()
        cursors.append(cursor)
    return cursors


def convert(
    dictionary: Dictionary,
    source: DataSource,
    stream: TextIO,
    table_prefix: str = "",
    batch_size: int = config.BATCH_SIZE,
    prefetch: bool = False,
    prefetch_queue_size: int = config.PREFETCH_QUEUE_SIZE,
) -> ConversionStats:
    """Export every case found in the data source to ``stream``.

    Args:
        dictionary: Layout of the output file.
        source: Where the record tables live.
        stream: Text stream receiving the data lines.
        table_prefix: Prefix added to each record label to name its table.
        batch_size: Rows per fetch.
        prefetch: Read each table on its own worker thread.
        prefetch_queue_size: Batches each worker may read ahead.

    Returns:
        Case and record counts.

    Raises:
        ConversionError: Any failure; the output must then be discarded.
    """
    stats = ConversionStats()
    by_type: Counter = Counter()
    serializer = LineSerializer(dictionary)

    logger.info(
        "Exporting %d record type(s) from %s (prefix %r)",
        dictionary.record_count, source.describe(), table_prefix,
    )

    with ExitStack() as stack:
        cursors = open_cursors(
            stack,
            dictionary,
            source,
            table_prefix=table_prefix,
            batch_size=batch_size,
            prefetch=prefetch,
            prefetch_queue_size=prefetch_queue_size,
        )
        for case in iter_cases(cursors):
            ordered = order_case(case)
            stats.records += serializer.write_case(ordered, stream)
            stats.cases += 1
            for record in ordered:
                by_type[record.info.record.name] += 1

    stats.records_by_type = dict(by_type)
    logger.info("Exported %d case(s), %d record(s)", stats.cases, stats.records)
    for name, count in stats.records_by_type.items():
        logger.debug("  %s: %d", name, count)
    return stats
