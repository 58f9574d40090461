from typing import Protocol

from chatrelay.core.models.message import ProtocolMessage, SubmitName


class Codec(Protocol):
    """
    Defines the interface for translating between wire lines and
    ProtocolMessage values.

    Implementations must be:
    - stateless
    - pure (no side effects)
    - safe against malformed input: unrecognised lines decode to
      `Unknown` rather than raising
    """

    def encode(self, message: ProtocolMessage) -> bytes:
        """Encode a message into one terminated line ready for the transport."""

    def decode(self, line: bytes) -> ProtocolMessage:
        """Decode one line (without terminator) received from a client."""

    def decode_name(self, line: bytes) -> SubmitName:
        """Decode one line received while the client is choosing a name."""
