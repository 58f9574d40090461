from dataclasses import dataclass
from typing import Awaitable, Callable


@dataclass(frozen=True, slots=True)
class RequestName:
    """Server asks the client for a candidate display name."""


@dataclass(frozen=True, slots=True)
class SubmitName:
    """
    Candidate display name sent by the client in answer to RequestName.
    The name is opaque: the relay never interprets its contents.
    """
    name: str


@dataclass(frozen=True, slots=True)
class NameAccepted:
    """The most recently submitted name is now registered."""


@dataclass(frozen=True, slots=True)
class ClientJoined:
    """Participant `name` is present in the room."""
    name: str


@dataclass(frozen=True, slots=True)
class ClientLeft:
    """Participant `name` has left the room."""
    name: str


@dataclass(frozen=True, slots=True)
class Broadcast:
    """Client request to relay `body` to every participant."""
    body: str


@dataclass(frozen=True, slots=True)
class UnicastBegin:
    """
    First half of a point-to-point send. Must be followed by a
    UnicastBody carrying the text for `recipient`.
    """
    recipient: str


@dataclass(frozen=True, slots=True)
class UnicastBody:
    body: str


@dataclass(frozen=True, slots=True)
class UnicastEnd:
    """
    Terminates a unicast/multicast sequence. The relay echoes the last
    composed message back to its sender.
    """


@dataclass(frozen=True, slots=True)
class Delivered:
    """A message relayed to a participant on behalf of `sender`."""
    sender: str
    body: str


@dataclass(frozen=True, slots=True)
class Unknown:
    """
    A line whose leading keyword is not part of the grammar. Sessions
    ignore it instead of failing the connection.
    """
    line: str


ProtocolMessage = (
    RequestName
    | SubmitName
    | NameAccepted
    | ClientJoined
    | ClientLeft
    | Broadcast
    | UnicastBegin
    | UnicastBody
    | UnicastEnd
    | Delivered
    | Unknown
)


ReceiveLine = Callable[[], Awaitable[bytes | None]]
"""
Coroutine provided to the application for receiving the next raw line
of its connection, without the line terminator. It suspends until a line
is available and returns None once the connection is gone.
"""
