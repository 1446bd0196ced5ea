"""Data-source descriptors, DB-API connections and row streams.

WHY: The exporter reads one table per record type from a relational
database. Production data sits in SQL Server (reached through ODBC);
fixtures and small conversions use SQLite files. Both speak DB-API 2.0,
so the cursor only needs a thin layer that knows how to connect, how to
quote names, and how to stream rows without loading a table into memory.

HOW: DataSource.from_descriptor() picks the driver from the descriptor:
"sqlite:///<path>" opens a read-only sqlite3 connection, anything else
is handed to pyodbc as an ODBC connection string. Rows are streamed in
fetchmany() batches, either on the caller's thread (fetch_rows) or on a
dedicated worker thread that reads ahead into a bounded queue
(PrefetchedRows).

RULES:
- Every driver failure surfaces as SourceConnectivityError
- Identifiers are always quoted; dotted table names are quoted per part
- Text id columns are sorted with a binary collation
- A prefetch worker is the only reader of its DB cursor until close()
- Worker errors are re-raised on the consumer's thread, never dropped
- Passwords are masked whenever a descriptor is logged
"""

from __future__ import annotations

import logging
import queue
import re
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Sequence, Tuple, Type

from cspro_export.errors import SourceConnectivityError

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite:///"

_PASSWORD_RE = re.compile(r"(?i)\b(pwd|password)\s*=\s*[^;]*")


def _import_pyodbc(table: str | None = None) -> Any:
    # pyodbc needs the system ODBC driver manager at import time
    try:
        import pyodbc
    except ImportError as e:
        raise SourceConnectivityError(table, "ODBC support unavailable ({})".format(e)) from e
    return pyodbc


@dataclass(frozen=True)
class DataSource:
    """Where the tables live and how to reach them.

    Attributes:
        descriptor: The connection descriptor as given by the user.
        dialect: "sqlite" or "odbc".
    """

    descriptor: str
    dialect: str

    @classmethod
    def from_descriptor(cls, descriptor: str) -> DataSource:
        descriptor = descriptor.strip()
        if not descriptor:
            raise SourceConnectivityError(None, "empty connection descriptor")
        if descriptor.startswith(SQLITE_PREFIX):
            return cls(descriptor=descriptor, dialect="sqlite")
        return cls(descriptor=descriptor, dialect="odbc")

    @property
    def sqlite_path(self) -> Path:
        return Path(self.descriptor[len(SQLITE_PREFIX):])

    def describe(self) -> str:
        """The descriptor with any password masked, for log messages."""
        return _PASSWORD_RE.sub(lambda m: "{}=***".format(m.group(1)), self.descriptor)

    def driver_errors(self, table: str | None = None) -> Tuple[Type[BaseException], ...]:
        """Exception classes the driver raises for database failures."""
        if self.dialect == "sqlite":
            return (sqlite3.Error,)
        pyodbc = _import_pyodbc(table)
        return (pyodbc.Error,)

    def connect(self, table: str | None = None) -> Any:
        """Open a new DB-API connection.

        Args:
            table: Table the connection is opened for (error context only).

        Raises:
            SourceConnectivityError: The database cannot be opened.
        """
        logger.debug("Connecting to %s", self.describe())
        if self.dialect == "sqlite":
            return self._connect_sqlite(table)
        return self._connect_odbc(table)

    def _connect_sqlite(self, table: str | None) -> sqlite3.Connection:
        path = self.sqlite_path
        if not path.is_file():
            raise SourceConnectivityError(table, "database file not found: {}".format(path))
        try:
            # Read-only; check_same_thread=False lets a prefetch worker fetch
            return sqlite3.connect(
                path.resolve().as_uri() + "?mode=ro",
                uri=True,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise SourceConnectivityError(table, str(e)) from e

    def _connect_odbc(self, table: str | None) -> Any:
        pyodbc = _import_pyodbc(table)
        try:
            return pyodbc.connect(self.descriptor, autocommit=True, readonly=True)
        except pyodbc.Error as e:
            raise SourceConnectivityError(table, str(e)) from e

    def quote_identifier(self, name: str) -> str:
        if self.dialect == "sqlite":
            return '"{}"'.format(name.replace('"', '""'))
        return "[{}]".format(name.replace("]", "]]"))

    def quote_table(self, name: str) -> str:
        """Quote a possibly schema-qualified table name ("dbo.person")."""
        return ".".join(self.quote_identifier(part) for part in name.split("."))

    def order_term(self, column: str, type_code: Any = None) -> str:
        """ORDER BY term sorting a column the way case ids are compared.

        Rendered ids are compared by code point, so text columns are
        sorted with a binary collation instead of the database default
        (case-insensitive on most SQL Server installations).
        """
        quoted = self.quote_identifier(column)
        if self.dialect == "sqlite":
            return quoted + " COLLATE BINARY"
        if type_code is str:
            return quoted + " COLLATE Latin1_General_BIN2"
        return quoted


def describe_table(source: DataSource, connection: Any, table: str) -> List[Tuple[str, Any]]:
    """(name, type_code) of every column of a table, in table order.

    Runs a zero-row SELECT and reads cursor.description, which every
    DB-API driver fills in without fetching data. pyodbc reports the
    Python type of each column; sqlite3 reports None.
    """
    cursor = connection.cursor()
    try:
        cursor.execute("SELECT * FROM {} WHERE 1 = 0".format(source.quote_table(table)))
        return [(column[0], column[1]) for column in cursor.description]
    finally:
        cursor.close()


def fetch_rows(cursor: Any, batch_size: int) -> Iterator[Sequence[Any]]:
    """Stream rows from an executed DB-API cursor in fetchmany() batches."""
    while True:
        batch = cursor.fetchmany(batch_size)
        if not batch:
            return
        yield from batch


class _Failure:
    """Carries a worker exception through the queue."""

    def __init__(self, error: Exception) -> None:
        self.error = error


_END = object()


class PrefetchedRows:
    """Rows of one executed cursor, fetched ahead on a worker thread.

    WHY: Each table's query runs independently, so its network round trips
    can overlap with the merge and with the other tables' fetches.

    HOW: A daemon thread calls fetchmany() and puts each batch on a
    bounded queue; iteration takes batches off the queue. The end of the
    stream and any driver error travel through the same queue, so the
    consumer sees them in order after every row fetched before them.

    RULES:
    - The worker is the only thread touching the DB cursor until close()
    - At most ``queue_size`` batches are held in memory
    - close() stops the worker and joins it; it is safe to call twice
    """

    def __init__(self, cursor: Any, batch_size: int, queue_size: int, name: str) -> None:
        self._cursor = cursor
        self._batch_size = batch_size
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._batch: Iterator[Sequence[Any]] = iter(())
        self._done = False
        self._thread = threading.Thread(
            target=self._run, name="prefetch-{}".format(name), daemon=True
        )
        self._thread.start()

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                batch = self._cursor.fetchmany(self._batch_size)
                if not batch:
                    break
                self._put(batch)
        except Exception as e:
            self._put(_Failure(e))
            return
        self._put(_END)

    def _put(self, item: Any) -> None:
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=0.1)
                return
            except queue.Full:
                continue

    def __iter__(self) -> PrefetchedRows:
        return self

    def __next__(self) -> Sequence[Any]:
        while True:
            row = next(self._batch, _END)
            if row is not _END:
                return row
            if self._done:
                raise StopIteration
            item = self._queue.get()
            if item is _END:
                self._done = True
                raise StopIteration
            if isinstance(item, _Failure):
                self._done = True
                raise item.error
            self._batch = iter(item)

    def close(self) -> None:
        self._stop.set()
        self._thread.join()
