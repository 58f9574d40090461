import asyncio
import pytest
from unittest.mock import Mock, AsyncMock

from chatrelay.core.models.message import Delivered, NameAccepted
from chatrelay.core.ports.endpoint import DeliveryError
from chatrelay.core.transport.flow import FlowControl
from chatrelay.core.transport.stream import Streamer


def make_flow(paused: bool = False):
    flow = Mock(spec=FlowControl)
    flow.write_paused = paused
    flow.closed = False
    flow.drain = AsyncMock(return_value=None)
    return flow


@pytest.mark.ut
@pytest.mark.asyncio
async def test_deliver_writes_encoded_line(transport, codec):
    streamer = Streamer(transport, make_flow(), codec, asyncio.Queue())

    await streamer.deliver(Delivered(sender="alice", body="hi"))
    await streamer.deliver(NameAccepted())

    assert transport.buffer == b"MESSAGE alice: hi\nNAMEACCEPTED\n"
    assert streamer.alive


@pytest.mark.ut
@pytest.mark.asyncio
async def test_deliver_waits_for_flow_control(transport, codec):
    flow = make_flow(paused=True)

    async def unblock():
        flow.write_paused = False

    flow.drain = AsyncMock(side_effect=unblock)
    streamer = Streamer(transport, flow, codec, asyncio.Queue())

    await streamer.deliver(NameAccepted())

    flow.drain.assert_awaited_once()
    assert transport.buffer == b"NAMEACCEPTED\n"


@pytest.mark.ut
@pytest.mark.asyncio
async def test_deliver_to_closed_connection_raises(transport, codec):
    streamer = Streamer(transport, make_flow(), codec, asyncio.Queue())
    transport.close()

    assert not streamer.alive
    with pytest.raises(DeliveryError):
        await streamer.deliver(NameAccepted())


@pytest.mark.ut
@pytest.mark.asyncio
async def test_deliver_after_connection_lost_raises(transport, codec):
    flow = FlowControl()
    streamer = Streamer(transport, flow, codec, asyncio.Queue())
    flow.pause_writing()

    pending = asyncio.create_task(streamer.deliver(NameAccepted()))
    await asyncio.sleep(0)
    assert not pending.done()

    flow.close()

    with pytest.raises(DeliveryError):
        await asyncio.wait_for(pending, timeout=1.0)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_deliver_closes_transport_on_encode_error(transport):
    class BadCodec:
        @staticmethod
        def encode(message):
            raise ValueError("boom")

    streamer = Streamer(transport, make_flow(), BadCodec(), asyncio.Queue())

    with pytest.raises(DeliveryError):
        await streamer.deliver(NameAccepted())

    assert transport.is_closing()


@pytest.mark.ut
@pytest.mark.asyncio
async def test_receive_returns_next_line(transport, codec):
    queue = asyncio.Queue()
    streamer = Streamer(transport, make_flow(), codec, queue)

    await queue.put(b"BROADCAST x")
    await queue.put(None)

    assert await streamer.receive() == b"BROADCAST x"
    assert await streamer.receive() is None


@pytest.mark.ut
@pytest.mark.asyncio
async def test_run_app_passes_itself_as_endpoint(transport, codec):
    seen = []

    async def app(receive, endpoint):
        seen.append(endpoint)

    streamer = Streamer(transport, make_flow(), codec, asyncio.Queue())
    await streamer.run_app(app)

    assert seen == [streamer]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_run_app_closes_transport_on_normal_exit(transport, codec):
    async def app(receive, endpoint):
        return

    streamer = Streamer(transport, make_flow(), codec, asyncio.Queue())
    await streamer.run_app(app)

    assert transport.is_closing()


@pytest.mark.ut
@pytest.mark.asyncio
async def test_run_app_closes_transport_on_exception(transport, codec):
    async def app(receive, endpoint):
        raise RuntimeError("boom")

    streamer = Streamer(transport, make_flow(), codec, asyncio.Queue())
    await streamer.run_app(app)

    assert transport.is_closing()


@pytest.mark.ut
@pytest.mark.asyncio
async def test_abort_drops_connection(transport, codec):
    streamer = Streamer(transport, make_flow(), codec, asyncio.Queue())

    streamer.abort()

    assert transport.is_closing()
    assert not streamer.alive
