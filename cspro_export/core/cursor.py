"""Record cursor: one record type's table as a stream of RecordInstances.

WHY: Each record type of the dictionary lives in its own table. The case
assembler needs to look at the head row of every table at once and pull
rows in case order, which only works if every table is read sorted by the
case identifiers and every row is already rendered into dictionary terms.

HOW: On construction the cursor opens its own connection, matches the
table's columns to dictionary item labels, and runs a query sorted by the
id columns of the record's level and every level above it. advance()
reads the next row, renders each mapped value to its item width, builds
the per-level identifier chain and stamps the occurrence counter.

RULES:
- Columns match item *labels* exactly; unmatched items become blanks
- Mapped items: every id item of levels 0..L plus the record's own items
- ORDER BY uses the id columns present, levels 0..L, in dictionary order,
  text columns with a binary collation
- A case id smaller than the previous row's is a CaseOrderError
- A level 0..L with id items but no matching column is a
  SchemaResolutionError at construction time
- advance() returning False is terminal; the cursor never rewinds
- The connection is owned by the cursor and released by close()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from cspro_export import config
from cspro_export.core.ir import RecordInfo, RecordInstance
from cspro_export.core.render import blank, render_value
from cspro_export.core.source import DataSource, PrefetchedRows, describe_table, fetch_rows
from cspro_export.dictionary.models import Dictionary, Item
from cspro_export.errors import CaseOrderError, SchemaResolutionError, SourceConnectivityError

logger = logging.getLogger(__name__)


class RecordCursor:
    """Forward-only reader of one record type's table.

    Usage::

        with RecordCursor(source, "tbl_PERSON", info, dictionary) as cursor:
            while cursor.advance():
                handle(cursor.current)

    Attributes:
        table: Resolved table name.
        info: Record type metadata.
        at_end: True once advance() has returned False.
    """

    def __init__(
        self,
        source: DataSource,
        table: str,
        info: RecordInfo,
        dictionary: Dictionary,
        batch_size: int = config.BATCH_SIZE,
        prefetch: bool = False,
        prefetch_queue_size: int = config.PREFETCH_QUEUE_SIZE,
    ) -> None:
        self.table = table
        self.info = info
        self.at_end = False
        self._source = source
        self._dictionary = dictionary
        self._current: Optional[RecordInstance] = None
        self._occurrence = 0
        self._connection: Any = None
        self._db_cursor: Any = None
        self._rows: Optional[Iterator[Sequence[Any]]] = None
        self._errors = source.driver_errors(table)

        self._connection = source.connect(table)
        try:
            described = self._read_columns()
            columns = [name for name, _ in described]
            self._column_types = dict(described)
            self._mapping = self._map_items(columns)
            self._level_items = [
                list(level.id_items) for level in dictionary.levels[: info.level_number + 1]
            ]
            order_by = self._order_by_columns(columns)
            self._execute(order_by)
            if prefetch:
                self._rows = PrefetchedRows(
                    self._db_cursor, batch_size, prefetch_queue_size, name=table
                )
            else:
                self._rows = fetch_rows(self._db_cursor, batch_size)
        except BaseException:
            self.close()
            raise

        logger.debug(
            "Opened %s for record %s (level %d): %d of %d items mapped, ORDER BY %s",
            table, info.record.name, info.level_number,
            sum(1 for _, index in self._mapping if index is not None),
            len(self._mapping), ", ".join(order_by),
        )

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _read_columns(self) -> List[Tuple[str, Any]]:
        try:
            return describe_table(self._source, self._connection, self.table)
        except self._errors as e:
            raise SourceConnectivityError(self.table, str(e)) from e

    def _mapped_items(self) -> List[Item]:
        """Id items of levels 0..L followed by the record's own items."""
        items = self._dictionary.id_items_through(self.info.level_number)
        items.extend(self.info.record.items)
        return items

    def _map_items(self, columns: List[str]) -> List[Tuple[Item, Optional[int]]]:
        """Pair each mapped item with its column index (None if absent)."""
        positions = {name: index for index, name in enumerate(columns)}
        mapping = []
        for item in self._mapped_items():
            index = positions.get(item.label)
            if index is None:
                logger.debug("Table %s has no column %s; field left blank", self.table, item.label)
            mapping.append((item, index))
        return mapping

    def _order_by_columns(self, columns: List[str]) -> List[str]:
        present = set(columns)
        order_by: List[str] = []
        for level in self._dictionary.levels[: self.info.level_number + 1]:
            labels = [item.label for item in level.id_items]
            found = [label for label in labels if label in present]
            if labels and not found:
                raise SchemaResolutionError(self.table, level.label or level.name, labels)
            for label in found:
                if label not in order_by:
                    order_by.append(label)
        return order_by

    def _execute(self, order_by: List[str]) -> None:
        sql = "SELECT * FROM {}".format(self._source.quote_table(self.table))
        if order_by:
            sql += " ORDER BY " + ", ".join(
                self._source.order_term(column, self._column_types.get(column))
                for column in order_by
            )
        try:
            self._db_cursor = self._connection.cursor()
            self._db_cursor.execute(sql)
        except self._errors as e:
            raise SourceConnectivityError(self.table, str(e)) from e

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    @property
    def current(self) -> RecordInstance:
        """The record read by the last successful advance()."""
        if self.at_end or self._current is None:
            raise RuntimeError("No current record for table {}".format(self.table))
        return self._current

    def advance(self) -> bool:
        """Read the next row.

        Returns:
            True if a new current record is available, False once the
            table is exhausted (and on every later call).

        Raises:
            SourceConnectivityError: The driver failed while fetching.
            CaseOrderError: The row's case id sorts below the previous one.
        """
        if self.at_end:
            return False
        try:
            row = next(self._rows, None)
        except self._errors as e:
            raise SourceConnectivityError(self.table, str(e)) from e
        if row is None:
            self.at_end = True
            self._current = None
            return False

        record = self._build_instance(row)
        previous = self._current
        if previous is not None and record.case_id < previous.case_id:
            raise CaseOrderError(self.table, previous.case_id, record.case_id)
        self._current = record
        self._occurrence += 1
        return True

    def _build_instance(self, row: Sequence[Any]) -> RecordInstance:
        values: Dict[str, str] = {}
        for item, index in self._mapping:
            if index is None:
                values[item.label] = blank(item)
            else:
                values[item.label] = render_value(row[index], item, column=item.label)

        level_ids = tuple(
            "".join(values[item.label] for item in items) for items in self._level_items
        )
        return RecordInstance(
            values=values,
            level_ids=level_ids,
            occurrence=self._occurrence,
            info=self.info,
        )

    # ------------------------------------------------------------------
    # Resource handling
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the row stream, the DB cursor and the connection."""
        # Both row streams (generator and PrefetchedRows) have close()
        rows, self._rows = self._rows, None
        if rows is not None:
            rows.close()

        db_cursor, self._db_cursor = self._db_cursor, None
        connection, self._connection = self._connection, None
        try:
            if db_cursor is not None:
                db_cursor.close()
        finally:
            if connection is not None:
                connection.close()

    def __enter__(self) -> RecordCursor:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return "RecordCursor(table={!r}, record={!r}, at_end={})".format(
            self.table, self.info.record.name, self.at_end
        )
