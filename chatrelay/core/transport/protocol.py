import asyncio
import logging

from chatrelay.core.models.config import ServerConfig
from chatrelay.core.models.state import ServerState
from chatrelay.core.ports.codec import Codec
from chatrelay.core.transport.addr import format_addr, get_remote_addr
from chatrelay.core.transport.flow import FlowControl
from chatrelay.core.transport.stream import Streamer


class LineProtocol(asyncio.Protocol):
    """
    Implements the low‑level framing and connection lifecycle for a
    single TCP client. It receives raw bytes from the transport, splits them
    into newline-terminated lines, and forwards each line to the Streamer
    associated with the connection.

    When a connection is established, LineProtocol creates a FlowControl
    instance, registers itself in the server's connection set, and starts the
    Streamer task running the application for this connection. Incoming bytes
    are accumulated in an internal buffer until a `\\n` is seen; the line is
    queued without its terminator. If the peer half-closes the connection
    with a partial line pending, that line is delivered as well.

    A line longer than the configured maximum line size closes the
    connection immediately, whether or not its terminator arrived in the
    same chunk. Lines queued before it are still delivered.

    When the connection is lost, LineProtocol removes itself from the server
    state, releases any delivery blocked on flow control, closes the
    transport if the disconnection was clean, and signals end of input to
    the Streamer by pushing a sentinel value into its queue.

    LineProtocol does not decode lines or run application logic. These
    responsibilities belong to the Codec and the application.
    """
    def __init__(
        self,
        config: ServerConfig,
        server_state: ServerState,
        codec: Codec,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._transport: asyncio.Transport = None   # type: ignore[assignment]
        self._flow: FlowControl = None  # type: ignore[assignment]
        self._streamer: Streamer = None   # type: ignore[assignment]

        self._config = config
        self._app = config.app
        self._loop = loop or asyncio.get_event_loop()
        self._connections = server_state.connections
        self._tasks = server_state.tasks
        self._codec = codec
        self._buffer = bytearray()
        self._who = ""
        self._logger = logging.getLogger("core.transport.protocol")

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        self._transport = transport
        self._flow = FlowControl()
        self._connections.add(self)
        self._who = format_addr(get_remote_addr(transport))
        self._streamer = Streamer(
            transport=self._transport,
            flow=self._flow,
            codec=self._codec,
            queue=asyncio.Queue(),
            peer=self._who,
        )
        task = self._loop.create_task(self._streamer.run_app(self._app))
        task.add_done_callback(self._tasks.discard)
        self._tasks.add(task)

        self._logger.debug(f"{self._who} - Connection made")

    def connection_lost(self, exc: Exception | None) -> None:
        self._connections.discard(self)

        if exc is None:
            self._logger.debug(f"{self._who} - Connection lost.")
            self._transport.close()
        else:
            self._logger.debug(f"{self._who} - Connection lost: {exc}")

        if self._flow is not None:
            self._flow.close()

        self._streamer.queue.put_nowait(None)

    def eof_received(self) -> bool | None:
        if self._buffer:
            self._push(bytes(self._buffer))
            self._buffer.clear()
        # Returning None lets the transport close itself
        return None

    def data_received(self, data: bytes) -> None:
        self._buffer.extend(data)

        while (index := self._buffer.find(b"\n")) >= 0:
            if index > self._config.max_line_size:
                self._reject_long_line()
                return

            line = bytes(self._buffer[:index])
            del self._buffer[:index + 1]
            self._push(line)

        if len(self._buffer) > self._config.max_line_size:
            self._reject_long_line()

    def pause_writing(self) -> None:
        self._flow.pause_writing()

    def resume_writing(self) -> None:
        self._flow.resume_writing()

    def shutdown(self) -> None:
        self._transport.close()

    def _push(self, line: bytes) -> None:
        try:
            self._streamer.queue.put_nowait(line)
        except Exception as exc:
            self._logger.error(f"{self._who} - Queue error: {exc}")

    def _reject_long_line(self) -> None:
        self._logger.warning(f"{self._who} - Line too long, closing connection")
        self._buffer.clear()
        self._transport.close()
