"""CSPro export: database tables to a hierarchical CSPro text data file.

WHY: Survey data often lives in a relational database with one table per
questionnaire section, but CSPro applications read a single fixed-width
text file where every case is a block of nested record lines. Someone has
to stitch the tables back together in the order CSPro expects.

HOW: Four-stage pipeline: read (one sorted cursor per record type),
assemble (merge cursor heads into cases), order (hierarchical sort within
a case), serialize (fixed-width lines). Each stage is independently
testable and only the first touches the database.

RULES:
- The data dictionary is the single source of layout truth
- Tables are matched by record label, columns by item label
- Tables are streamed, never loaded whole into memory
- A failed run never produces a file that looks complete
"""

__version__ = "0.1.0"
