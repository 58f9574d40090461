import asyncio
import logging

from chatrelay.core.models.message import ClientJoined, ClientLeft, NameAccepted, ProtocolMessage
from chatrelay.core.ports.endpoint import DeliveryError, Endpoint


class Registry:
    """
    Process-wide directory of the participants currently in the room.

    The Registry maps each registered display name to the Endpoint of the
    connection that owns it. It is the only piece of shared mutable state of
    the relay: every operation, mutations and delivery decisions alike, runs
    inside a single asyncio.Lock, so a broadcast never observes a
    half-registered or half-removed participant and two sessions can never
    claim the same name.

    Deliveries are performed while holding the lock. Each one is bounded by
    `delivery_timeout`; a peer that stops reading loses its own copy of the
    message and delays the room by at most that long per message. Left
    alone, such a peer would slow every later broadcast, join and leave for
    as long as it stays connected, so after `max_delivery_timeouts`
    consecutive timeouts its endpoint is aborted. The connection then goes
    through the regular termination path and its name is released. Failures
    to deliver to one participant are logged and never abort delivery to the
    others.

    The mapping itself is never handed out. Callers only get the atomic
    operations below and `snapshot()`, which returns an immutable copy of the
    names.
    """
    def __init__(self, delivery_timeout: float | None = 5.0, max_delivery_timeouts: int = 3) -> None:
        self._endpoints: dict[str, Endpoint] = {}
        self._timeouts: dict[str, int] = {}
        self._lock = asyncio.Lock()
        self._delivery_timeout = delivery_timeout
        self._max_delivery_timeouts = max_delivery_timeouts
        self._logger = logging.getLogger("core.service.registry")

    async def try_register(self, name: str, endpoint: Endpoint) -> bool:
        """Claim `name` for `endpoint`. Returns False, without change, if it is taken."""
        async with self._lock:
            return self._insert(name, endpoint)

    async def deregister(self, name: str) -> None:
        async with self._lock:
            self._remove(name)

    async def broadcast(self, message: ProtocolMessage, exclude: str | None = None) -> int:
        """
        Deliver `message` to every participant except `exclude`.
        Returns the number of successful deliveries.
        """
        async with self._lock:
            return await self._broadcast(message, exclude)

    async def unicast(self, target: str, message: ProtocolMessage) -> bool:
        """
        Deliver `message` to `target` only.

        Returns False when no participant is registered under `target`; the
        caller decides whether that is worth reporting. A registered target
        whose delivery fails still counts as found.
        """
        async with self._lock:
            endpoint = self._endpoints.get(target)
            if endpoint is None:
                return False

            await self._deliver(target, endpoint, message)
            return True

    async def snapshot(self) -> tuple[str, ...]:
        """Names currently registered, in registration order."""
        async with self._lock:
            return tuple(self._endpoints)

    async def join(self, name: str, endpoint: Endpoint) -> bool:
        """
        Register `name` and perform the roster exchange in one critical section.

        On success the new endpoint receives NameAccepted, every other
        participant receives ClientJoined(name), and the new endpoint receives
        one ClientJoined per other participant present after the
        registration. Holding the lock throughout means a participant joining
        concurrently is announced to this one exactly once, either through the
        roster or through its own announcement, never both.
        """
        async with self._lock:
            if not self._insert(name, endpoint):
                return False

            await self._deliver(name, endpoint, NameAccepted())
            await self._broadcast(ClientJoined(name=name), exclude=name)

            for other in tuple(self._endpoints):
                if other != name:
                    await self._deliver(name, endpoint, ClientJoined(name=other))

        self._logger.info(f"'{name}' joined the room")
        return True

    async def leave(self, name: str) -> bool:
        """
        Remove `name` and notify the remaining participants in one critical
        section. Idempotent: returns False if `name` was not registered.
        """
        async with self._lock:
            if not self._remove(name):
                return False

            await self._broadcast(ClientLeft(name=name))

        self._logger.info(f"'{name}' left the room")
        return True

    def _insert(self, name: str, endpoint: Endpoint) -> bool:
        if name in self._endpoints:
            return False

        self._endpoints[name] = endpoint
        self._timeouts.pop(name, None)
        return True

    def _remove(self, name: str) -> bool:
        self._timeouts.pop(name, None)
        return self._endpoints.pop(name, None) is not None

    async def _broadcast(self, message: ProtocolMessage, exclude: str | None = None) -> int:
        delivered = 0
        for name, endpoint in list(self._endpoints.items()):
            if name == exclude:
                continue
            if await self._deliver(name, endpoint, message):
                delivered += 1

        return delivered

    async def _deliver(self, name: str, endpoint: Endpoint, message: ProtocolMessage) -> bool:
        if not endpoint.alive:
            self._logger.debug(f"Skip delivery to '{name}', connection is closing")
            return False

        try:
            await asyncio.wait_for(endpoint.deliver(message), timeout=self._delivery_timeout)
        except DeliveryError as exc:
            self._logger.warning(f"Delivery to '{name}' failed: {exc}")
            return False
        except asyncio.TimeoutError:
            self._logger.warning(
                f"Delivery to '{name}' timed out after {self._delivery_timeout}s, message dropped"
            )
            self._on_timeout(name, endpoint)
            return False
        except Exception as exc:
            self._logger.error(f"Unexpected error delivering to '{name}': {exc}", exc_info=exc)
            return False

        self._timeouts.pop(name, None)
        return True

    def _on_timeout(self, name: str, endpoint: Endpoint) -> None:
        count = self._timeouts.get(name, 0) + 1
        if count < self._max_delivery_timeouts:
            self._timeouts[name] = count
            return

        self._timeouts.pop(name, None)
        self._logger.warning(f"'{name}' missed {count} deliveries in a row, dropping connection")
        endpoint.abort()
