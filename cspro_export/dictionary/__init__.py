"""Data dictionary model and loader.

WHY: The dictionary describes the output file; the core only needs read
access to it. Keeping the model and its loader in one package lets the
core stay independent of the dictionary's on-disk format.

HOW: models.py defines the frozen dataclasses, loader.py builds them from
a CSPro JSON document validated with jsonschema.
"""

from cspro_export.dictionary.loader import load_dictionary, parse_dictionary
from cspro_export.dictionary.models import Dictionary, Item, ItemKind, Level, Record

__all__ = [
    "Dictionary",
    "Item",
    "ItemKind",
    "Level",
    "Record",
    "load_dictionary",
    "parse_dictionary",
]
