import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chatrelay.core.transport.protocol import LineProtocol


@dataclass
class ServerState:
    """
    Shared runtime state for a RelayServer.

    This object is mutated by:
    - LineProtocol: adds/removes active connections and registers the task
      running the application for each of them
    - RelayServer.shutdown(): waits for connections and tasks to complete
    """
    connections: set["LineProtocol"] = field(default_factory=set)
    """
    Set of active LineProtocol instances. Each TCP connection corresponds
    to one LineProtocol.
    """

    tasks: set[asyncio.Task[None]] = field(default_factory=set)
    """
    Set of per-connection application tasks.
    Each task is removed via task.add_done_callback(tasks.discard)
    once its session is over.
    """


class SessionState(StrEnum):
    """
    Lifecycle of a single client session.

    awaiting_name -> registered -> relaying -> terminated
    `terminated` is reachable from every other state.
    """
    awaiting_name = "awaiting_name"
    registered = "registered"
    relaying = "relaying"
    terminated = "terminated"
