import asyncio
import logging

from chatrelay.bootstrap.config.settings import RelayConfig
from chatrelay.core.models.config import ServerConfig
from chatrelay.core.ports.codec import Codec
from chatrelay.core.service.registry import Registry
from chatrelay.core.service.session import ChatApplication
from chatrelay.core.transport.server import RelayServer


class ControlPlane:
    def __init__(
        self,
        config: RelayConfig,
        codec: Codec,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config
        self._codec = codec
        self._loop = loop or self._create_event_loop()
        self._logger = logging.getLogger("chatrelay.controlplane")

        self.registry = Registry(
            delivery_timeout=config.server.delivery_timeout,
            max_delivery_timeouts=config.server.max_delivery_timeouts,
        )
        self._app = ChatApplication(registry=self.registry, codec=self._codec)
        self.server = RelayServer(
            config=self._build_server_config(),
            codec=self._codec,
            loop=self._loop,
        )

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    async def start(self, stop_event: asyncio.Event) -> None:
        """
        Run the relay until `stop_event` is set.
        Raises BindError if the listening socket cannot be bound.
        """
        await self.server.start()
        self._logger.info("Chat relay listening on %s:%d", *self.server.listen)

        await stop_event.wait()

        self._logger.info("Shutting down chat relay.")
        await self.server.shutdown()

    def _build_server_config(self) -> ServerConfig:
        server_config = self._config.server

        return ServerConfig(
            app=self._app,
            host=server_config.host,
            port=server_config.port,
            backlog=server_config.backlog,
            max_line_size=server_config.max_line_size,
            timeout_graceful_shutdown=server_config.timeout_graceful_shutdown,
        )

    @staticmethod
    def _create_event_loop() -> asyncio.AbstractEventLoop:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        return loop
