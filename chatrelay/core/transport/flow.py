import asyncio


class FlowControl:
    """
    Tracks whether a connection's transport accepts more writes.

    The LineProtocol forwards the transport's pause/resume callbacks here,
    and the Streamer awaits `drain()` before writing a line while the peer
    is not keeping up. Once the connection is lost, `close()` releases every
    pending drain for good so that waiting deliveries can fail fast instead
    of hanging on a dead peer.
    """

    def __init__(self) -> None:
        self._writable = asyncio.Event()
        self._writable.set()
        self.write_paused = False
        self.closed = False

    async def drain(self) -> None:
        """Block until writing is allowed again or the connection is gone."""
        await self._writable.wait()

    def pause_writing(self) -> None:
        if self.closed:
            return
        self.write_paused = True
        self._writable.clear()

    def resume_writing(self) -> None:
        if self.write_paused:
            self.write_paused = False
            self._writable.set()

    def close(self) -> None:
        self.closed = True
        self.resume_writing()
