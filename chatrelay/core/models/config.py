from dataclasses import dataclass

from chatrelay.core.transport.application import Application


@dataclass
class ServerConfig:
    """
    Static configuration for a RelayServer.

    This structure defines all parameters required to start a server:
    networking, resource limits, and graceful shutdown behavior.
    """
    app: Application
    """
    The per-connection application coroutine with the signature:
        async def app(receive, endpoint)
    It receives raw lines and delivers ProtocolMessage values.
    """

    host: str
    """
    IP address or hostname on which the server listens.
    """

    port: int
    """
    TCP port to bind. If set to 0, the OS selects an available port.
    """

    backlog: int = 128
    """
    Maximum number of pending TCP connections waiting for accept().
    """

    max_line_size: int = 64 * 1024  # 64KB
    """
    Maximum number of bytes buffered for a single line before its newline
    arrives. A connection exceeding it is closed.
    """

    timeout_graceful_shutdown: float = 5.0
    """
    Maximum time (in seconds) allowed for graceful shutdown:
    - active connections must close
    - per-connection tasks registered in ServerState.tasks must complete
    After this timeout, remaining tasks are cancelled.
    """
