import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, YamlConfigSettingsSource

from chatrelay.bootstrap.config.settings import RelayConfig
from chatrelay.core.models.config import ServerConfig
from chatrelay.core.service.registry import Registry
from chatrelay.core.service.session import ChatApplication
from chatrelay.core.transport.server import RelayServer
from chatrelay.infra.line_codec import LineCodec


class FakeRelayConfig(RelayConfig):
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=os.environ["TEST_CHATRELAYCONFIG"]),
        )


@asynccontextmanager
async def running_relay(delivery_timeout: float = 1.0, **server_options) -> AsyncIterator[tuple[RelayServer, Registry]]:
    """Start a relay on an OS-assigned loopback port for the duration of the block."""
    registry = Registry(delivery_timeout=delivery_timeout)
    codec = LineCodec()
    config = ServerConfig(
        app=ChatApplication(registry=registry, codec=codec),
        host="127.0.0.1",
        port=0,
        timeout_graceful_shutdown=1.0,
        **server_options,
    )
    server = RelayServer(config=config, codec=codec, loop=asyncio.get_running_loop())
    await server.start()
    try:
        yield server, registry
    finally:
        await server.shutdown()


async def eventually(predicate: Callable[[], Awaitable[bool]], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not await predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@dataclass
class ChatClient:
    """Line-oriented test client speaking the relay protocol over a real socket."""
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    @classmethod
    async def connect(cls, host: str, port: int) -> "ChatClient":
        reader, writer = await asyncio.open_connection(host, port)
        return cls(reader=reader, writer=writer)

    async def send(self, line: str) -> None:
        self.writer.write(line.encode() + b"\n")
        await self.writer.drain()

    async def recv(self, timeout: float = 2.0) -> str:
        line = await asyncio.wait_for(self.reader.readline(), timeout)
        if not line:
            raise ConnectionError("Connection closed by server")
        return line.decode().rstrip("\n")

    async def recv_nothing(self, timeout: float = 0.2) -> bool:
        """True if no line arrives within `timeout`."""
        try:
            await asyncio.wait_for(self.reader.readline(), timeout)
        except asyncio.TimeoutError:
            return True
        return False

    async def login(self, name: str) -> None:
        assert await self.recv() == "SUBMITNAME"
        await self.send(name)
        assert await self.recv() == "NAMEACCEPTED"

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            pass
