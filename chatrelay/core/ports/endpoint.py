from typing import Protocol

from chatrelay.core.models.message import ProtocolMessage


class DeliveryError(ConnectionError):
    """Raised when a message cannot be written to a connection."""


class Endpoint(Protocol):
    """
    The sending side of a single client connection.

    The Registry keeps one Endpoint per registered name and uses it to
    deliver messages. The only lifecycle action it takes is `abort()` on a
    peer that keeps timing out. Closing the connection in any other case
    belongs to its session.
    """

    @property
    def alive(self) -> bool:
        """False once the underlying connection is closing or closed."""

    async def deliver(self, message: ProtocolMessage) -> None:
        """
        Write `message` to the connection.

        Waits while the transport has paused writing. Raises DeliveryError
        if the connection is gone.
        """

    def abort(self) -> None:
        """Drop the connection immediately, discarding unsent data."""
