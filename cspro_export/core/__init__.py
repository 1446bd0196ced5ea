"""Case assembly and serialization engine.

WHY: The core is the part of the exporter that must be right for every
dictionary: it merges independently sorted tables into cases, puts each
case's records into hierarchical order and lays them out as fixed-width
lines.

HOW: ir.py defines the records passed between stages, cursor.py reads
tables (through source.py, rendering values with render.py),
assembler.py groups records into cases, ordering.py sorts a case and
serializer.py writes it.

RULES:
- Only cursor.py and source.py touch the database
- ordering.py and serializer.py are pure and need no I/O to test
"""
