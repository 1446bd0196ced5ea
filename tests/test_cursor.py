"""Tests for RecordCursor against SQLite tables.

WHY: The cursor is where database rows become dictionary records. It
decides the sort order every other stage relies on, tolerates sparse
tables, and owns a live connection that must always be released.

HOW: Tables are written to a SQLite file in tmp_path with their rows
out of order; cursors are opened on them and read to the end.

RULES:
- Rows come back sorted by the id columns of levels 0..L
- Missing non-id columns render as blanks of the item width
- Construction failures are raised before any row is read
"""

import pytest

from conftest import create_database
from cspro_export.core.cursor import RecordCursor
from cspro_export.core.ir import record_infos
from cspro_export.core.source import DataSource
from cspro_export.errors import (
    CaseOrderError,
    SchemaResolutionError,
    SourceConnectivityError,
    UnsupportedFieldKindError,
)


def read_all(cursor):
    records = []
    while cursor.advance():
        records.append(cursor.current)
    return records


@pytest.fixture
def infos(dictionary):
    return record_infos(dictionary)


class TestReading:
    """Rows are rendered, chained and counted in sorted order."""

    def test_sorted_by_ids(self, survey_db, dictionary, infos):
        person_info = infos[1]
        with RecordCursor(DataSource.from_descriptor(survey_db), "PERSON", person_info, dictionary) as cursor:
            records = read_all(cursor)
        assert [r.level_ids for r in records] == [
            ("00001", "01"),
            ("00001", "02"),
            ("00002", "01"),
        ]

    def test_values_rendered_to_item_width(self, survey_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(survey_db), "PERSON", infos[1], dictionary) as cursor:
            cursor.advance()
            values = cursor.current.values
        assert values == {"HHID": "00001", "LINE": "01", "AGE": "034"}

    def test_occurrence_counts_in_read_order(self, survey_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(survey_db), "PERSON", infos[1], dictionary) as cursor:
            occurrences = [r.occurrence for r in read_all(cursor)]
        assert occurrences == [0, 1, 2]

    def test_parent_record_maps_only_its_own_levels(self, survey_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(survey_db), "HH", infos[0], dictionary) as cursor:
            cursor.advance()
            record = cursor.current
        assert record.level_ids == ("00001",)
        assert "LINE" not in record.values
        assert record.values["ROOMS"] == " 4"

    def test_missing_column_is_blank(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "sparse.db", {
            "PERSON": (["HHID", "LINE"], [("00001", 1)]),
        })
        with RecordCursor(DataSource.from_descriptor(descriptor), "PERSON", infos[1], dictionary) as cursor:
            cursor.advance()
            assert cursor.current.values["AGE"] == "   "

    def test_null_value_is_blank(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "nulls.db", {
            "PERSON": (["HHID", "LINE", "AGE"], [("00001", 1, None)]),
        })
        with RecordCursor(DataSource.from_descriptor(descriptor), "PERSON", infos[1], dictionary) as cursor:
            cursor.advance()
            assert cursor.current.values["AGE"] == "   "

    def test_extra_columns_are_ignored(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "extra.db", {
            "HH": (["NOTES", "HHID", "ROOMS"], [("big house", "00001", 9)]),
        })
        with RecordCursor(DataSource.from_descriptor(descriptor), "HH", infos[0], dictionary) as cursor:
            cursor.advance()
            assert set(cursor.current.values) == {"HHID", "ROOMS"}

    def test_small_batches_read_every_row(self, survey_db, dictionary, infos):
        source = DataSource.from_descriptor(survey_db)
        with RecordCursor(source, "PERSON", infos[1], dictionary, batch_size=1) as cursor:
            assert len(read_all(cursor)) == 3

    def test_prefetch_reads_the_same_records(self, survey_db, dictionary, infos):
        source = DataSource.from_descriptor(survey_db)
        with RecordCursor(source, "PERSON", infos[1], dictionary) as cursor:
            direct = read_all(cursor)
        with RecordCursor(source, "PERSON", infos[1], dictionary, batch_size=1, prefetch=True,
                          prefetch_queue_size=1) as cursor:
            prefetched = read_all(cursor)
        assert prefetched == direct


class TestEndOfStream:
    """advance() returning False is terminal."""

    def test_end_is_sticky(self, survey_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(survey_db), "HH", infos[0], dictionary) as cursor:
            read_all(cursor)
            assert cursor.at_end
            assert cursor.advance() is False
            assert cursor.at_end

    def test_current_unavailable_before_first_advance(self, survey_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(survey_db), "HH", infos[0], dictionary) as cursor:
            with pytest.raises(RuntimeError):
                cursor.current

    def test_current_unavailable_after_end(self, survey_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(survey_db), "HH", infos[0], dictionary) as cursor:
            read_all(cursor)
            with pytest.raises(RuntimeError):
                cursor.current

    def test_empty_table(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "empty.db", {"HH": (["HHID", "ROOMS"], [])})
        with RecordCursor(DataSource.from_descriptor(descriptor), "HH", infos[0], dictionary) as cursor:
            assert cursor.advance() is False


class TestCaseOrder:
    """Rows come back in the order case ids are compared in."""

    def test_text_ids_sorted_by_code_point(self, nocase_db, dictionary, infos):
        with RecordCursor(DataSource.from_descriptor(nocase_db), "HH", infos[0], dictionary) as cursor:
            case_ids = [r.case_id for r in read_all(cursor)]
        assert case_ids == ["C    ", "b    "]

    def test_decreasing_case_id_is_fatal(self, nocase_db, dictionary, infos, default_collation):
        with RecordCursor(DataSource.from_descriptor(nocase_db), "HH", infos[0], dictionary) as cursor:
            assert cursor.advance()
            assert cursor.current.case_id == "b    "
            with pytest.raises(CaseOrderError) as excinfo:
                cursor.advance()
        assert excinfo.value.table == "HH"
        assert excinfo.value.previous == "b    "
        assert excinfo.value.current == "C    "


class TestConstructionErrors:
    """Configuration problems surface when the cursor is built."""

    def test_missing_table(self, survey_db, dictionary, infos):
        with pytest.raises(SourceConnectivityError) as excinfo:
            RecordCursor(DataSource.from_descriptor(survey_db), "NOPE", infos[0], dictionary)
        assert excinfo.value.table == "NOPE"

    def test_missing_database_file(self, tmp_path, dictionary, infos):
        source = DataSource.from_descriptor("sqlite:///{}".format(tmp_path / "absent.db"))
        with pytest.raises(SourceConnectivityError, match="not found"):
            RecordCursor(source, "HH", infos[0], dictionary)

    def test_no_id_column_for_required_level(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "noids.db", {
            "PERSON": (["HHID", "AGE"], [("00001", 30)]),
        })
        with pytest.raises(SchemaResolutionError) as excinfo:
            RecordCursor(DataSource.from_descriptor(descriptor), "PERSON", infos[1], dictionary)
        assert excinfo.value.table == "PERSON"
        assert excinfo.value.labels == ["LINE"]

    def test_deeper_level_ids_not_required_for_parent(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "parent.db", {"HH": (["HHID"], [("00001",)])})
        with RecordCursor(DataSource.from_descriptor(descriptor), "HH", infos[0], dictionary) as cursor:
            assert cursor.advance()

    def test_unsupported_value_type(self, tmp_path, dictionary, infos):
        descriptor = create_database(tmp_path / "blob.db", {
            "HH": (["HHID", "ROOMS"], [("00001", b"\x01\x02")]),
        })
        with RecordCursor(DataSource.from_descriptor(descriptor), "HH", infos[0], dictionary) as cursor:
            with pytest.raises(UnsupportedFieldKindError) as excinfo:
                cursor.advance()
        assert excinfo.value.column == "ROOMS"


class TestResourceRelease:
    """The connection is released on every path."""

    def test_close_releases_connection(self, survey_db, dictionary, infos):
        cursor = RecordCursor(DataSource.from_descriptor(survey_db), "HH", infos[0], dictionary)
        cursor.close()
        assert cursor._connection is None
        cursor.close()

    def test_context_manager_closes_on_error(self, survey_db, dictionary, infos):
        with pytest.raises(ValueError):
            with RecordCursor(DataSource.from_descriptor(survey_db), "HH", infos[0], dictionary) as cursor:
                raise ValueError("boom")
        assert cursor._connection is None
