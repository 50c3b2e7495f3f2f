"""File serving handlers."""

import logging
import mimetypes
import os
from pathlib import Path
from typing import BinaryIO, NamedTuple

from dirserve.domain.connection_id import get_logger

FILE_LOGGER = get_logger("handlers.file")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class OpenedFile(NamedTuple):
    """A readable file handle with the metadata needed to frame it."""

    handle: BinaryIO
    content_type: str
    length: int


def content_type_for_path(filepath: Path) -> str:
    """Guess a MIME type from the file extension."""
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    return mime_type or DEFAULT_CONTENT_TYPE


def open_file(filepath: Path) -> OpenedFile:
    """Open ``filepath`` for streaming; the caller owns and closes the handle."""
    handle = open(filepath, "rb")  # pylint: disable=consider-using-with
    try:
        length = os.fstat(handle.fileno()).st_size
    except OSError:
        handle.close()
        raise
    if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
        FILE_LOGGER.debug(
            "File opened",
            extra={
                "event": "file_opened",
                "path": filepath.as_posix(),
                "bytes": length,
            },
        )
    return OpenedFile(handle, content_type_for_path(filepath), length)
