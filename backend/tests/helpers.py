"""Reading frames queued for bare channel-layer connections."""
import asyncio


async def next_signal(hub, connection_id, timeout=1):
    """The next frame queued for a bare connection, as (event, payload, exclude)."""
    message = await asyncio.wait_for(hub.channel_layer.receive(connection_id), timeout)
    return message["event"], message["payload"], message.get("exclude")


async def no_signal(hub, connection_id, timeout=0.1):
    try:
        message = await asyncio.wait_for(hub.channel_layer.receive(connection_id), timeout)
    except asyncio.TimeoutError:
        return True
    raise AssertionError(f"unexpected frame {message!r}")
