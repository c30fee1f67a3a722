"""Output destinations for rendered dumps."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import BinaryIO

from pydump.errors import RenderError

logger = logging.getLogger(__name__)

STDOUT = "-"


@contextmanager
def open_sink(destination: str | None = None) -> Iterator[BinaryIO]:
    """
    Open the byte sink for one dump run.

    ``None`` or ``"-"`` writes to standard output, which is flushed but left
    open. Any other value is a file path that is truncated and closed when
    the block exits, whether or not it raised.

    Raises:
        RenderError: The destination cannot be opened, or standard output
            cannot be flushed after the block completed.
    """
    if destination is None or destination == STDOUT:
        stream = sys.stdout.buffer
        # An error raised by the block propagates unchanged, without the final flush.
        yield stream
        try:
            stream.flush()
        except OSError as e:
            raise RenderError(f"failed to flush standard output: {e}") from e
        return

    try:
        stream = open(destination, "wb")
    except OSError as e:
        raise RenderError(f"cannot open output '{destination}': {e}") from e
    logger.debug("Writing output to %s", destination)
    try:
        yield stream
    finally:
        stream.close()
