"""Load a CSPro data dictionary from its JSON document.

WHY: The exporter needs the dictionary as an in-memory model before any
table is opened. CSPro 8 stores dictionaries as JSON; this loader reads
the subset of that document the export uses (levels, id items, records,
items, record-type position) and ignores everything else (value sets,
notes, occurrences).

HOW: The raw document is checked against dictionary.schema.json with
jsonschema, then converted to the frozen dataclasses in models.py.
Labels may be given either as a plain "label" string or as CSPro's
"labels" list, in which case the first entry's text is used.

RULES:
- Any read, parse or shape failure raises DictionaryLoadError
- Item kind defaults to numeric, record-type tag to start 1 length 1
- A record without "length" extends to the end of its last field
  (record-type tag, every level's id items, then its own items)
- Overlaps and widths are NOT checked; the dictionary is trusted
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema

from cspro_export.dictionary.models import Dictionary, Item, ItemKind, Level, Record
from cspro_export.errors import DictionaryLoadError

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "dictionary.schema.json"

_schema_cache: Optional[dict] = None


def _load_schema() -> dict:
    global _schema_cache
    if _schema_cache is None:
        with open(SCHEMA_PATH, encoding="utf-8") as f:
            _schema_cache = json.load(f)
    return _schema_cache


def load_dictionary(path: str | Path) -> Dictionary:
    """Read and parse a dictionary file.

    Args:
        path: Path to the JSON dictionary document.

    Returns:
        The parsed Dictionary.

    Raises:
        DictionaryLoadError: The file is missing, unreadable, not JSON, or
            does not have the shape of a dictionary.
    """
    path = Path(path)
    try:
        # utf-8-sig: CSPro writes its files with a byte order mark
        raw = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise DictionaryLoadError(str(path), e.strerror or str(e)) from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DictionaryLoadError(str(path), "invalid JSON ({})".format(e)) from e

    dictionary = parse_dictionary(data, source=str(path))
    logger.info(
        "Loaded dictionary %s: %d level(s), %d record(s)",
        dictionary.name, dictionary.level_count, dictionary.record_count,
    )
    return dictionary


def parse_dictionary(data: Any, source: str = "<memory>") -> Dictionary:
    """Build a Dictionary from an already-decoded JSON document.

    Raises:
        DictionaryLoadError: The document does not match the schema.
    """
    try:
        jsonschema.validate(instance=data, schema=_load_schema())
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise DictionaryLoadError(source, "{} (at {})".format(e.message, location)) from e

    record_type = data.get("recordType", {})
    type_start = record_type.get("start", 1)
    type_length = record_type.get("length", 1)

    levels = []
    for level_number, raw_level in enumerate(data["levels"]):
        label = _label(raw_level, "LEVEL{}".format(level_number + 1))
        id_items = tuple(
            _parse_item(raw_item) for raw_item in raw_level.get("ids", {}).get("items", [])
        )
        levels.append((raw_level, label, id_items))

    # Every record line carries every level's ids, so the default record
    # length depends on all of them.
    ids_end = max(
        [type_start + type_length - 1]
        + [item.end for _, _, id_items in levels for item in id_items]
    )

    parsed_levels: List[Level] = []
    for raw_level, label, id_items in levels:
        records = tuple(
            _parse_record(raw_record, ids_end) for raw_record in raw_level.get("records", [])
        )
        parsed_levels.append(Level(
            name=raw_level.get("name", _make_name(label)),
            label=label,
            id_items=id_items,
            records=records,
        ))

    label = _label(data, "")
    return Dictionary(
        name=data.get("name", _make_name(label) or "DICT"),
        label=label,
        levels=tuple(parsed_levels),
        record_type_start=type_start,
        record_type_length=type_length,
    )


def _parse_record(raw: Dict[str, Any], ids_end: int) -> Record:
    label = _label(raw, "")
    items = tuple(_parse_item(raw_item) for raw_item in raw.get("items", []))
    length = raw.get("length")
    if length is None:
        length = max([ids_end] + [item.end for item in items])
    return Record(
        name=raw.get("name", _make_name(label)),
        label=label,
        record_type=raw["recordType"],
        length=length,
        items=items,
    )


def _parse_item(raw: Dict[str, Any]) -> Item:
    label = _label(raw, "")
    return Item(
        name=raw.get("name", _make_name(label)),
        label=label,
        start=raw["start"],
        length=raw["length"],
        kind=ItemKind(raw.get("contentType", ItemKind.NUMERIC.value)),
        decimals=raw.get("decimals", 0),
        decimal_char=raw.get("decimalMark", False),
        zero_fill=raw.get("zeroFill", False),
    )


def _label(raw: Dict[str, Any], default: str) -> str:
    """Return the plain "label" or the text of the first "labels" entry."""
    if "label" in raw:
        return raw["label"]
    labels = raw.get("labels")
    if labels:
        return labels[0]["text"]
    return default


def _make_name(label: str) -> str:
    return "_".join(label.upper().split())
