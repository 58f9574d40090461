from typing import Protocol

from chatrelay.core.models.message import ReceiveLine
from chatrelay.core.ports.endpoint import Endpoint


class Application(Protocol):
    """
    This interface defines the per‑connection handler executed by the Streamer.

    An Application is an asynchronous callable that receives two objects:
    `receive`, which waits for and returns the next raw line of the
    connection (None once the peer is gone), and `endpoint`, which delivers
    ProtocolMessage values back to the same peer. The Application implements
    the business logic for a single TCP connection.

    The Application runs until it returns or raises an exception. When it exits,
    the underlying connection is closed by the Streamer.

    The Application does not handle framing, encoding, or transport-level
    concerns. These responsibilities belong to the LineProtocol, the Streamer
    and the Codec.
    """
    async def __call__(self, receive: ReceiveLine, endpoint: Endpoint) -> None:
        ...
