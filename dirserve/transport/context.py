"""Context object shared across worker threads."""

from dataclasses import dataclass

from dirserve.bootstrap.config import ServerConfig, ServerState
from dirserve.lifecycle.state import ServerLifecycle


@dataclass(frozen=True)
class WorkerContext:
    """Dependencies shared across handler threads."""

    state: ServerState
    lifecycle: ServerLifecycle
    config: ServerConfig
