"""Error types raised by the exporter.

WHY: Every failure of a conversion run is fatal, but an operator still
needs to know *what* to fix: the dictionary, a table or a column. Distinct
exception types carry that context so the CLI can report it in one line.

HOW: ConversionError is the common base the CLI catches. Subclasses keep
the offending table/column/item as attributes in addition to the message.

RULES:
- Nothing here is retried; a conversion is a one-shot batch run
- Missing non-id columns are NOT errors (they become blank fields)
- Messages name the table, column or item label involved
"""

from __future__ import annotations


class ConversionError(Exception):
    """Base class for all unrecoverable conversion failures."""


class DictionaryLoadError(ConversionError):
    """The data dictionary could not be read or has the wrong shape."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__("Failed to open dictionary {}: {}".format(path, reason))
        self.path = path
        self.reason = reason


class SourceConnectivityError(ConversionError):
    """A table could not be opened or queried."""

    def __init__(self, table: str | None, reason: str) -> None:
        if table:
            message = "Cannot read table {}: {}".format(table, reason)
        else:
            message = "Cannot connect to data source: {}".format(reason)
        super().__init__(message)
        self.table = table
        self.reason = reason


class SchemaResolutionError(ConversionError):
    """A level's id items have no matching columns in a record's table.

    The table cannot be sorted by case without them, so this is raised
    when the cursor is built rather than when rows are read.
    """

    def __init__(self, table: str, level: str, labels: list[str]) -> None:
        super().__init__(
            "Table {} has none of the id columns of level {} ({})".format(
                table, level, ", ".join(labels)
            )
        )
        self.table = table
        self.level = level
        self.labels = labels


class UnsupportedFieldKindError(ConversionError):
    """A column produced a value with no fixed-width rendering rule."""

    def __init__(self, column: str, type_name: str) -> None:
        super().__init__(
            "Type {} is not supported for column {}".format(type_name, column)
        )
        self.column = column
        self.type_name = type_name


class FieldWidthError(ConversionError):
    """A rendered value does not fit the width of its dictionary item."""

    def __init__(self, label: str, value: str, width: int) -> None:
        super().__init__(
            "Value {!r} for item {} does not fit in {} character(s)".format(
                value, label, width
            )
        )
        self.label = label
        self.value = value
        self.width = width


class CaseOrderError(ConversionError):
    """A table returned a case id smaller than the one before it.

    Cases are merged by comparing rendered ids as strings; a table sorted
    any other way would split cases, so the run stops instead.
    """

    def __init__(self, table: str, previous: str, current: str) -> None:
        super().__init__(
            "Table {} returned case id {!r} after {!r}; rows are not in "
            "ascending order of their rendered ids".format(table, current, previous)
        )
        self.table = table
        self.previous = previous
        self.current = current
