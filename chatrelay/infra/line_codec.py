from chatrelay.core.models.message import (
    Broadcast,
    ClientJoined,
    ClientLeft,
    Delivered,
    NameAccepted,
    ProtocolMessage,
    RequestName,
    SubmitName,
    UnicastBegin,
    UnicastBody,
    UnicastEnd,
    Unknown,
)
from chatrelay.core.ports.codec import Codec


class LineCodec(Codec):
    """
    Newline-delimited text implementation of the Codec interface.

    Every line starts with an upper-case keyword, optionally followed by a
    single space and an argument that runs to the end of the line:

        SUBMITNAME                  NAMEACCEPTED
        CLIENT <name>               REMOVECLIENT <name>
        MESSAGE <sender>: <body>    BROADCAST <body>
        UNICAST <name>              BODY <body>
        END

    Keywords are matched exactly. Anything else decodes to `Unknown`.
    Bytes that are not valid in the configured encoding are carried through
    with `surrogateescape`, so names and bodies survive a decode/encode
    round trip untouched.
    """
    TERMINATOR = b"\n"
    SENDER_SEPARATOR = ": "

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def encode(self, message: ProtocolMessage) -> bytes:
        match message:
            case RequestName():
                text = "SUBMITNAME"
            case SubmitName(name=name):
                text = name
            case NameAccepted():
                text = "NAMEACCEPTED"
            case ClientJoined(name=name):
                text = f"CLIENT {name}"
            case ClientLeft(name=name):
                text = f"REMOVECLIENT {name}"
            case Delivered(sender=sender, body=body):
                text = f"MESSAGE {sender}{self.SENDER_SEPARATOR}{body}"
            case Broadcast(body=body):
                text = f"BROADCAST {body}"
            case UnicastBegin(recipient=recipient):
                text = f"UNICAST {recipient}"
            case UnicastBody(body=body):
                text = f"BODY {body}"
            case UnicastEnd():
                text = "END"
            case Unknown(line=line):
                text = line
            case _:
                raise TypeError(f"Cannot encode {type(message).__name__}")

        return text.encode(self._encoding, "surrogateescape") + self.TERMINATOR

    def decode(self, line: bytes) -> ProtocolMessage:
        text = self._to_text(line)
        keyword, _, argument = text.partition(" ")

        match keyword:
            case "BROADCAST":
                return Broadcast(body=argument)
            case "UNICAST":
                return UnicastBegin(recipient=argument)
            case "BODY":
                return UnicastBody(body=argument)
            case "END":
                return UnicastEnd()
            case "SUBMITNAME":
                return RequestName()
            case "NAMEACCEPTED":
                return NameAccepted()
            case "CLIENT":
                return ClientJoined(name=argument)
            case "REMOVECLIENT":
                return ClientLeft(name=argument)
            case "MESSAGE":
                sender, sep, body = argument.partition(self.SENDER_SEPARATOR)
                if sep:
                    return Delivered(sender=sender, body=body)

        return Unknown(line=text)

    def decode_name(self, line: bytes) -> SubmitName:
        return SubmitName(name=self._to_text(line))

    def _to_text(self, line: bytes) -> str:
        return bytes(line).rstrip(b"\r\n").decode(self._encoding, "surrogateescape")
