import asyncio
import logging

from chatrelay.core.models.config import ServerConfig
from chatrelay.core.models.state import ServerState
from chatrelay.core.ports.codec import Codec
from chatrelay.core.transport.protocol import LineProtocol


class BindError(OSError):
    """The listening socket could not be bound."""


class RelayServer:
    """
    Owns the lifecycle of the TCP listener that accepts chat clients,
    instantiates a LineProtocol for each connection, and coordinates
    graceful shutdown.

    It binds to the configured host and port, using asyncio's create_server
    to create an asyncio.Server that dispatches new connections to
    LineProtocol instances. Each LineProtocol is constructed with a shared
    ServerState, which tracks active connections and the task running the
    application for each of them. Failing to accept one connection is
    reported by the event loop and does not stop the listener; failing to
    bind raises BindError from `start()`.

    The server does not implement any chat logic itself. It wires together
    the configured application callable, the Codec, and the transport
    protocol so that incoming lines reach the application and outgoing
    messages are encoded.

    On shutdown, RelayServer closes the listening socket, asks all active
    connections to close, and waits for both client connections and their
    tasks to complete. If the graceful shutdown timeout is exceeded, any
    remaining tasks are cancelled and an error is logged.
    """
    def __init__(
        self,
        config: ServerConfig,
        codec: Codec,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config
        self._codec = codec
        self._loop = loop or asyncio.get_event_loop()
        self.state = ServerState()
        self._logger = logging.getLogger("core.transport.server")

        self._server: asyncio.Server | None = None

    @property
    def running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def listen(self) -> tuple[str, int]:
        """Address actually bound, which differs from the config when port is 0."""
        if self._server is None or not self._server.sockets:
            return self._config.host, self._config.port

        host, port = self._server.sockets[0].getsockname()[:2]
        return host, port

    def create_protocol(self) -> asyncio.Protocol:
        return LineProtocol(
            config=self._config,
            server_state=self.state,
            codec=self._codec,
            loop=self._loop,
        )

    async def start(self) -> None:
        config = self._config

        try:
            self._server = await self._loop.create_server(
                self.create_protocol,
                host=config.host,
                port=config.port,
                backlog=config.backlog,
            )
        except OSError as ex:
            raise BindError(f"Cannot listen on {config.host}:{config.port}: {ex}") from ex

    async def shutdown(self) -> None:
        if self._server:
            self._server.close()

        for connection in self.state.connections.copy():
            connection.shutdown()

        try:
            await asyncio.wait_for(
                self._wait_task_complete(),
                timeout=self._config.timeout_graceful_shutdown
            )
        except asyncio.TimeoutError:
            self._logger.error(
                f"Cancel {len(self.state.tasks)} running task(s), "
                f"timeout graceful shutdown: {self.state.tasks}"
            )
            for task in self.state.tasks:
                task.cancel("Task cancelled, timeout graceful shutdown exceeded")

    async def _wait_task_complete(self) -> None:
        if self.state.connections:
            self._logger.info("Waiting for client connections to close.")

        while self.state.connections:
            await asyncio.sleep(0.1)

        if self.state.tasks:
            self._logger.info("Waiting for sessions to complete.")

        while self.state.tasks:
            await asyncio.sleep(0.1)

        if self._server:
            await self._server.wait_closed()
