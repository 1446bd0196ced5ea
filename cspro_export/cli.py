"""Command-line interface for the CSPro exporter.

WHY: Exports run as scheduled or hand-started batch jobs. The CLI wires
the whole pipeline (dictionary loading, table cursors, case assembly,
ordering and line output) behind one command whose exit status tells a
scheduler whether the data file can be trusted.

HOW: argparse reads the dictionary path, the data-source descriptor and
the optional table prefix (defaults come from config / .env). Logging is
configured once here. Every ConversionError is caught at this single
point, printed as "Error: ..." on stderr and turned into exit status 1.

RULES:
- Required: --dictionary, and --connection unless CSPRO_CONNECTION is set
- Data lines go to stdout (or --output); messages go to stderr
- Exit status: 0 success, 1 conversion error, 2 usage error
- With --output the file appears only if the whole export succeeded
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from cspro_export import __version__, config
from cspro_export.convert import convert
from cspro_export.core.source import DataSource
from cspro_export.dictionary.loader import load_dictionary
from cspro_export.errors import ConversionError, DictionaryLoadError
from cspro_export.output import open_output

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError("expected an integer, got {!r}".format(raw))
    if value < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    Separate from main() so tests can inspect the parser without running
    an export.
    """
    parser = argparse.ArgumentParser(
        prog="cspro-export",
        description="Convert database tables into a CSPro text data file. "
                    "Each dictionary record is read from the table named "
                    "<table-prefix><record label>; each item from the column "
                    "named after its label.",
    )

    parser.add_argument(
        "-d", "--dictionary",
        required=True,
        help="CSPro data dictionary (JSON) describing the data file format.",
    )

    parser.add_argument(
        "-c", "--connection",
        default=None,
        help="Data source: an ODBC connection string, or sqlite:///<path>. "
             "Defaults to CSPRO_CONNECTION from the environment.",
    )

    parser.add_argument(
        "-t", "--table-prefix",
        default=config.DEFAULT_TABLE_PREFIX,
        help="Text prefixed to each record label to form the table name "
             "(default: %(default)r).",
    )

    parser.add_argument(
        "-o", "--output",
        default="-",
        help="Output data file (default: stdout).",
    )

    parser.add_argument(
        "--prefetch",
        action="store_true",
        help="Read each table on its own worker thread.",
    )

    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=config.BATCH_SIZE,
        help="Rows fetched per database round trip (default: %(default)s).",
    )

    parser.add_argument(
        "--encoding",
        default=config.OUTPUT_ENCODING,
        help="Encoding of the output file (default: %(default)s).",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="More log output on stderr (-v info, -vv debug).",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s {}".format(__version__),
    )

    return parser


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = getattr(logging, config.LOG_LEVEL, logging.WARNING)
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _error(message: str) -> None:
    print("Error: {}".format(message), file=sys.stderr, flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    """Run an export.

    Args:
        argv: Command-line arguments; None means sys.argv (tests pass a list).

    Returns:
        Process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    descriptor = args.connection or config.load_connection_descriptor()
    if not descriptor:
        parser.print_usage(sys.stderr)
        _error("missing required argument: --connection (or set CSPRO_CONNECTION)")
        return 2

    try:
        dictionary = load_dictionary(args.dictionary)
    except DictionaryLoadError as e:
        print(str(e), file=sys.stderr, flush=True)
        return 1

    try:
        source = DataSource.from_descriptor(descriptor)
        with open_output(args.output, encoding=args.encoding) as stream:
            stats = convert(
                dictionary,
                source,
                stream,
                table_prefix=args.table_prefix,
                batch_size=args.batch_size,
                prefetch=args.prefetch,
            )
    except ConversionError as e:
        _error(str(e))
        return 1
    except OSError as e:
        _error("cannot write {}: {}".format(args.output, e))
        return 1
    except KeyboardInterrupt:
        _error("cancelled by user")
        return 130

    logger.info(
        "Done: %d case(s), %d record(s) written to %s",
        stats.cases, stats.records, "stdout" if args.output == "-" else args.output,
    )
    return 0


def run() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
