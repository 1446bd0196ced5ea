"""Shared test fixtures for the cspro_export test suite.

WHY: Most modules are exercised against the same household/person survey
layout, the smallest dictionary that has a real hierarchy. Building it
and its SQLite tables in one place keeps every test on the same layout.

HOW: household_dictionary() builds the two-level dictionary in code.
create_database() writes SQLite tables into tmp_path and returns the
descriptor the exporter connects with.

RULES:
- Layout: record type in column 1, HHID 2-6 (alpha), LINE 7-8 (numeric,
  zero filled), record items from column 9
- HH lines are 10 characters, PERSON lines 11
- Tables are created with their rows in deliberately unsorted order
  where a test depends on the exporter doing the sorting
"""

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from cspro_export.core.ir import RecordInfo, RecordInstance
from cspro_export.core.source import DataSource
from cspro_export.dictionary.models import Dictionary, Item, ItemKind, Level, Record

HHID = Item(name="HHID", label="HHID", start=2, length=5, kind=ItemKind.ALPHA)
LINE = Item(name="LINE", label="LINE", start=7, length=2, kind=ItemKind.NUMERIC, zero_fill=True)
ROOMS = Item(name="ROOMS", label="ROOMS", start=9, length=2, kind=ItemKind.NUMERIC)
AGE = Item(name="AGE", label="AGE", start=9, length=3, kind=ItemKind.NUMERIC, zero_fill=True)

TableSpec = Tuple[Sequence[str], Sequence[Sequence[Any]]]


def household_dictionary() -> Dictionary:
    household = Level(
        name="HOUSEHOLD_LVL",
        label="HOUSEHOLD",
        id_items=(HHID,),
        records=(Record(name="HH_REC", label="HH", record_type="1", length=10, items=(ROOMS,)),),
    )
    person = Level(
        name="PERSON_LVL",
        label="PERSON",
        id_items=(LINE,),
        records=(Record(name="PERSON_REC", label="PERSON", record_type="2", length=11, items=(AGE,)),),
    )
    return Dictionary(name="SURVEY_DICT", label="Survey", levels=(household, person))


def household_dictionary_document() -> Dict[str, Any]:
    """The same layout as household_dictionary(), as a CSPro JSON document."""
    return {
        "software": "CSPro",
        "fileType": "dictionary",
        "name": "SURVEY_DICT",
        "labels": [{"text": "Survey"}],
        "recordType": {"start": 1, "length": 1},
        "levels": [
            {
                "name": "HOUSEHOLD_LVL",
                "labels": [{"text": "HOUSEHOLD"}],
                "ids": {"items": [
                    {"name": "HHID", "labels": [{"text": "HHID"}], "contentType": "alpha",
                     "start": 2, "length": 5},
                ]},
                "records": [
                    {"name": "HH_REC", "labels": [{"text": "HH"}], "recordType": "1",
                     "items": [
                         {"name": "ROOMS", "labels": [{"text": "ROOMS"}], "contentType": "numeric",
                          "start": 9, "length": 2},
                     ]},
                ],
            },
            {
                "name": "PERSON_LVL",
                "labels": [{"text": "PERSON"}],
                "ids": {"items": [
                    {"name": "LINE", "labels": [{"text": "LINE"}], "contentType": "numeric",
                     "start": 7, "length": 2, "zeroFill": True},
                ]},
                "records": [
                    {"name": "PERSON_REC", "labels": [{"text": "PERSON"}], "recordType": "2",
                     "items": [
                         {"name": "AGE", "labels": [{"text": "AGE"}], "contentType": "numeric",
                          "start": 9, "length": 3, "zeroFill": True},
                     ]},
                ],
            },
        ],
    }


def create_database(
    path: Path,
    tables: Dict[str, TableSpec],
    column_types: Optional[Dict[str, str]] = None,
) -> str:
    """Write tables to a SQLite file and return its sqlite:/// descriptor.

    column_types maps a column name to its declared type, e.g.
    {"HHID": "TEXT COLLATE NOCASE"}; other columns are left untyped.
    """
    column_types = column_types or {}
    connection = sqlite3.connect(str(path))
    try:
        for name, (columns, rows) in tables.items():
            column_sql = ", ".join(
                " ".join(filter(None, ['"{}"'.format(column), column_types.get(column)]))
                for column in columns
            )
            connection.execute('CREATE TABLE "{}" ({})'.format(name, column_sql))
            placeholders = ", ".join("?" for _ in columns)
            connection.executemany(
                'INSERT INTO "{}" VALUES ({})'.format(name, placeholders), rows
            )
        connection.commit()
    finally:
        connection.close()
    return "sqlite:///{}".format(path)


def make_record(
    info: RecordInfo,
    level_ids: Sequence[str],
    occurrence: int = 0,
    values: Dict[str, str] = None,
) -> RecordInstance:
    return RecordInstance(
        values=dict(values or {}),
        level_ids=tuple(level_ids),
        occurrence=occurrence,
        info=info,
    )


@pytest.fixture
def dictionary() -> Dictionary:
    return household_dictionary()


@pytest.fixture
def dictionary_file(tmp_path) -> Path:
    path = tmp_path / "survey.dcf.json"
    path.write_text(json.dumps(household_dictionary_document()), encoding="utf-8")
    return path


@pytest.fixture
def survey_tables() -> Dict[str, TableSpec]:
    """Two households; the PERSON rows are stored out of order."""
    return {
        "HH": (["HHID", "ROOMS"], [("00002", 3), ("00001", 4)]),
        "PERSON": (
            ["HHID", "LINE", "AGE"],
            [("00002", 1, 51), ("00001", 2, 7), ("00001", 1, 34)],
        ),
    }


@pytest.fixture
def survey_db(tmp_path, survey_tables) -> str:
    return create_database(tmp_path / "survey.db", survey_tables)


@pytest.fixture
def nocase_db(tmp_path) -> str:
    """HHID declared NOCASE: SQLite's default ORDER BY puts "b" before "C"."""
    return create_database(
        tmp_path / "nocase.db",
        {
            "HH": (["HHID", "ROOMS"], [("b", 1), ("C", 2)]),
            "PERSON": (["HHID", "LINE", "AGE"], [("C", 1, 30)]),
        },
        column_types={"HHID": "TEXT COLLATE NOCASE"},
    )


@pytest.fixture
def default_collation(monkeypatch):
    """Sort id columns with the database's own collation."""
    monkeypatch.setattr(
        DataSource, "order_term", lambda self, column, type_code=None: self.quote_identifier(column)
    )
