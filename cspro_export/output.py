"""Output targets for the exported data file.

WHY: A CSPro data file cut off in the middle of a case is not just short,
it is wrong: the last case silently loses records. A failed run must
therefore never leave a file behind that looks like a finished export.

HOW: open_output() is a context manager. For a file path it writes to a
temporary file in the destination directory and moves it into place with
os.replace() only when the block exits cleanly; on any exception the
temporary file is removed and the destination is left untouched. For
"-" (or None) it yields stdout, which cannot be taken back; the CLI still
exits non-zero in that case.

RULES:
- The destination is replaced atomically or not at all
- The temporary file lives next to the destination (same filesystem)
- Lines are written with "\\n" endings regardless of platform
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, TextIO

logger = logging.getLogger(__name__)


@contextmanager
def open_output(path: Optional[str | Path], encoding: str = "utf-8") -> Iterator[TextIO]:
    """Open the destination for the data file.

    Args:
        path: Destination file, or None / "-" for stdout.
        encoding: Text encoding of the data file.

    Yields:
        A text stream to write lines to.
    """
    if path is None or str(path) == "-":
        yield sys.stdout
        sys.stdout.flush()
        return

    destination = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=".{}.".format(destination.name),
        suffix=".part",
        dir=str(destination.parent.resolve()),
    )
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as stream:
            yield stream
        os.replace(tmp_name, destination)
    except BaseException:
        logger.debug("Discarding partial output %s", tmp_name)
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    logger.info("Wrote %s", destination)
