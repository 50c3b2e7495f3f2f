"""Directory listing rendering."""

import html
import logging
import os
from pathlib import Path
from typing import Iterator, NamedTuple

from dirserve.domain.connection_id import get_logger

DIRECTORY_LOGGER = get_logger("handlers.directory")

LISTING_CONTENT_TYPE = "text/html"


class DirectoryEntry(NamedTuple):
    """A single name in a directory listing."""

    name: str
    is_directory: bool


def iter_directory(directory: Path) -> Iterator[DirectoryEntry]:
    """Yield entries in the order the filesystem enumerates them.

    Symlinks are reported by their own type and are never followed.
    """
    with os.scandir(directory) as entries:
        for entry in entries:
            yield DirectoryEntry(entry.name, entry.is_dir(follow_symlinks=False))


def render_listing(request_path: str, entries: Iterator[DirectoryEntry]) -> bytes:
    """Render the HTML listing page for ``request_path``."""
    title = html.escape(request_path)
    parts = [
        f"<html><head><title>Directory listing for {title}</title></head><body>",
        f"<h1>Directory listing for {title}</h1><hr><ul>",
    ]
    for entry in entries:
        name = html.escape(entry.name + ("/" if entry.is_directory else ""))
        parts.append(f'<li><a href="{name}">{name}</a></li>')
    parts.append("</ul><hr></body></html>")
    return "".join(parts).encode("utf-8", errors="surrogateescape")


def directory_listing(directory: Path, request_path: str) -> bytes:
    """Enumerate ``directory`` and return the rendered listing body."""
    body = render_listing(request_path, iter_directory(directory))
    if DIRECTORY_LOGGER.logger.isEnabledFor(logging.DEBUG):
        DIRECTORY_LOGGER.debug(
            "Directory listing rendered",
            extra={
                "event": "directory_listed",
                "path": directory.as_posix(),
                "bytes": len(body),
            },
        )
    return body
