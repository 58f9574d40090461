import logging

from chatrelay.core.models.message import (
    Broadcast,
    Delivered,
    ProtocolMessage,
    ReceiveLine,
    RequestName,
    UnicastBegin,
    UnicastBody,
    UnicastEnd,
)
from chatrelay.core.models.state import SessionState
from chatrelay.core.ports.codec import Codec
from chatrelay.core.ports.endpoint import DeliveryError, Endpoint
from chatrelay.core.service.registry import Registry


class Session:
    """
    Drives a single client connection through its lifecycle:

        awaiting_name -> registered -> relaying -> terminated

    While awaiting a name, the session keeps prompting with SUBMITNAME until
    the Registry accepts a candidate. The acknowledgment and the roster
    exchange are performed atomically by `Registry.join`. The session then
    relays decoded client messages until the peer goes away, and finally
    leaves the Registry, which notifies the remaining participants.

    A UNICAST/BODY sequence is closed by END, which echoes the last composed
    message back to the sender once. The composed message is then cleared,
    so repeated END lines do not replay it.

    A session owns its name, its receive function and its endpoint; no other
    session ever touches them. Failures on this connection end this session
    only.
    """
    def __init__(
        self,
        registry: Registry,
        codec: Codec,
        receive: ReceiveLine,
        endpoint: Endpoint,
    ) -> None:
        self.name: str | None = None
        self.state = SessionState.awaiting_name

        self._registry = registry
        self._codec = codec
        self._receive = receive
        self._endpoint = endpoint
        self._composed: Delivered | None = None
        self._logger = logging.getLogger("core.service.session")

    async def run(self) -> None:
        try:
            if (name := await self._negotiate_name()) is not None:
                await self._relay(name)
        except DeliveryError as exc:
            self._logger.info(f"Connection of '{self.name}' failed: {exc}")
        finally:
            await self._terminate()

    async def _negotiate_name(self) -> str | None:
        while True:
            await self._endpoint.deliver(RequestName())

            line = await self._receive()
            if line is None:
                self._logger.debug("Connection closed before a name was accepted")
                return None

            name = self._codec.decode_name(line).name
            if not name:
                self._logger.debug("Empty name submitted, prompting again")
                continue

            if await self._registry.join(name, self._endpoint):
                self.name = name
                self.state = SessionState.registered
                return name

            self._logger.info(f"Name '{name}' is already taken, prompting again")

    async def _relay(self, name: str) -> None:
        self.state = SessionState.relaying

        while (line := await self._receive()) is not None:
            message = self._codec.decode(line)

            match message:
                case Broadcast(body=body):
                    await self._broadcast(name, body)
                case UnicastBegin(recipient=recipient):
                    follow = await self._receive()
                    if follow is None:
                        return
                    await self._unicast(name, recipient, self._codec.decode(follow))
                case UnicastEnd():
                    await self._echo_composed()
                case _:
                    self._logger.debug(f"Ignoring {message} from '{self.name}'")

    async def _broadcast(self, name: str, body: str) -> None:
        delivered = await self._registry.broadcast(Delivered(sender=name, body=body))
        self._logger.debug(f"Broadcast from '{name}' delivered to {delivered} participant(s)")

    async def _unicast(self, name: str, recipient: str, follow: ProtocolMessage) -> None:
        if not isinstance(follow, UnicastBody):
            self._logger.warning(
                f"Expected BODY after UNICAST {recipient} from '{name}', "
                f"got {follow}; discarding both"
            )
            return

        self._composed = Delivered(sender=name, body=follow.body)
        if not await self._registry.unicast(recipient, self._composed):
            self._on_recipient_not_found(recipient)

    def _on_recipient_not_found(self, recipient: str) -> None:
        self._logger.warning(f"Recipient not found: '{self.name}' -> '{recipient}', message dropped")

    async def _echo_composed(self) -> None:
        if self._composed is None:
            self._logger.debug(f"END from '{self.name}' without a composed message")
            return

        # Consumed by END. A second END echoes nothing instead of replaying
        # the previous message.
        composed, self._composed = self._composed, None
        await self._endpoint.deliver(composed)

    async def _terminate(self) -> None:
        self.state = SessionState.terminated
        if self.name is not None:
            await self._registry.leave(self.name)


class ChatApplication:
    """
    Application wiring one Session per connection to the shared Registry.

    An exception escaping a session is handled by the Streamer, which logs
    it and closes that connection; other sessions are unaffected.
    """
    def __init__(self, registry: Registry, codec: Codec) -> None:
        self.registry = registry
        self._codec = codec

    async def __call__(self, receive: ReceiveLine, endpoint: Endpoint) -> None:
        session = Session(
            registry=self.registry,
            codec=self._codec,
            receive=receive,
            endpoint=endpoint,
        )
        await session.run()
