"""Per-connection identifiers carried through logging via contextvars."""

import contextvars
import itertools
import logging
from typing import Any, MutableMapping, Optional

LOGGER_NAMESPACE = "dirserve"

_connection_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "connection_id", default=None
)
_connection_counter = itertools.count(1)


def next_connection_id() -> str:
    """Return a process-unique identifier for a newly accepted connection."""
    return f"conn-{next(_connection_counter)}"


def get_connection_id() -> Optional[str]:
    """Retrieve the connection ID bound to the current thread context."""
    return _connection_id_var.get()


def set_connection_id(connection_id: str) -> None:
    """Bind a connection ID to the current thread context."""
    _connection_id_var.set(connection_id)


def clear_connection_id() -> None:
    """Remove the connection ID from the current thread context."""
    _connection_id_var.set(None)


class ConnectionLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps records with the connection ID and component."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})

        connection_id = get_connection_id()
        extra["connection_id"] = connection_id if connection_id is not None else "-"

        logger_name = self.logger.name
        prefix = f"{LOGGER_NAMESPACE}."
        extra["component"] = (
            logger_name[len(prefix) :] if logger_name.startswith(prefix) else logger_name
        )
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(component: str) -> ConnectionLoggerAdapter:
    """Return an adapter for the ``dirserve.<component>`` logger."""
    return ConnectionLoggerAdapter(
        logging.getLogger(f"{LOGGER_NAMESPACE}.{component}"), {}
    )
