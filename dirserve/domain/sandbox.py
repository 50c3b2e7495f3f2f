"""Filesystem sandbox utilities for safe path resolution."""

from pathlib import Path


class PathTraversal(Exception):
    """Raised when a requested path cannot be resolved inside the server root."""


def resolve_sandbox_path(root: Path, uri: str) -> Path:
    """Resolve a request URI to a canonical path contained in ``root``.

    ``root`` must already be canonical. Nonexistent targets, embedded NUL
    bytes and anything that resolves outside ``root`` (through ``..`` or a
    symlink) all raise :class:`PathTraversal`, so callers cannot tell them
    apart.
    """
    relative_part = uri[1:] if uri.startswith("/") else uri
    try:
        target = (root / relative_part).resolve(strict=True)
    except (OSError, ValueError, RuntimeError) as exc:
        raise PathTraversal(uri) from exc

    if not (target == root or root in target.parents):
        raise PathTraversal(uri)
    return target
