import asyncio
import logging

from chatrelay.core.models.message import ProtocolMessage
from chatrelay.core.ports.codec import Codec
from chatrelay.core.ports.endpoint import DeliveryError, Endpoint
from chatrelay.core.transport.application import Application
from chatrelay.core.transport.flow import FlowControl


class Streamer(Endpoint):
    """
    Manages the bidirectional flow of lines for a single TCP connection.

    It receives raw lines from the LineProtocol through an internal queue and
    exposes them to the Application via the asynchronous `receive()` method.
    It is also the connection's Endpoint: `deliver()` encodes a
    ProtocolMessage with the Codec and writes the resulting line to the
    transport. Any session, not only the one owning the connection, may
    deliver through it via the Registry.

    Streamer enforces backpressure using FlowControl. If the transport signals
    that writing is paused, `deliver()` waits until writing becomes possible
    again. Delivering to a connection that is closing raises DeliveryError.

    The `run_app()` method executes the Application for the lifetime of the
    connection. When the Application returns or raises an exception, the
    Streamer closes the transport.
    """
    def __init__(
        self,
        transport: asyncio.Transport,
        flow: FlowControl,
        codec: Codec,
        queue: asyncio.Queue[bytes | None],
        peer: str = "",
    ) -> None:
        self.queue = queue
        self.peer = peer
        self._transport = transport
        self._flow = flow
        self._codec = codec
        self._logger = logging.getLogger("core.transport.stream")

    @property
    def alive(self) -> bool:
        return not (self._flow.closed or self._transport.is_closing())

    async def deliver(self, message: ProtocolMessage) -> None:
        if self._flow.write_paused:
            await self._flow.drain()

        if not self.alive:
            raise DeliveryError(f"{self.peer} - Connection is closed")

        try:
            line = self._codec.encode(message)
            self._transport.write(line)
        except Exception as exc:
            self._logger.error(f"{self.peer} - Failed to send message: {exc}")
            self._transport.close()
            raise DeliveryError(str(exc)) from exc

    def abort(self) -> None:
        self._logger.warning(f"{self.peer} - Aborting stalled connection")
        self._transport.abort()

    async def receive(self) -> bytes | None:
        return await self.queue.get()

    async def run_app(self, app: Application) -> None:
        try:
            await app(self.receive, self)
        except asyncio.CancelledError:
            self._logger.debug(f"{self.peer} - Application cancelled")
            raise
        except Exception as exc:
            self._logger.error(f"{self.peer} - Exception in Application", exc_info=exc)
        finally:
            self._transport.close()
