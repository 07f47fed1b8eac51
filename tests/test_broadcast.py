import pytest

from client.game.broadcast import (
    BroadcastHub,
    CreaturePov,
    ElementUpdate,
    MapUpdate,
    WorldUpdate,
    parse_message,
)
from client.game.models import MalformedNotification


def test_parse_message_picks_the_tagged_model():
    message = parse_message({"type": "element_update", "world_id": "w1", "map_id": "m1", "element_id": "e1"})
    assert isinstance(message, ElementUpdate)
    assert message.element_id == "e1"


@pytest.mark.parametrize("data", [
    {"type": "teleport", "world_id": "w1"},
    {"type": "map_update", "world_id": "w1"},
    "map_update",
])
def test_parse_message_rejects_unknown_or_incomplete(data):
    with pytest.raises(MalformedNotification):
        parse_message(data)


@pytest.mark.asyncio
async def test_message_reaches_other_tabs_but_not_the_sender():
    hub = BroadcastHub()
    sender, other, third = hub.open(), hub.open(), hub.open()
    heard = {"sender": [], "other": [], "third": []}
    sender.subscribe(heard["sender"].append)
    other.subscribe(heard["other"].append)
    third.subscribe(heard["third"].append)

    sender.broadcast(MapUpdate(world_id="w1", map_id="m2"))
    # delivery is asynchronous
    assert heard["other"] == []
    await hub.drain()

    assert heard["sender"] == []
    assert [m.map_id for m in heard["other"]] == ["m2"]
    assert [m.map_id for m in heard["third"]] == ["m2"]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_the_others():
    hub = BroadcastHub()
    sender, receiver = hub.open(), hub.open()
    heard = []

    def broken(message):
        raise RuntimeError("listener bug")

    async def works(message):
        heard.append(message)

    receiver.subscribe(broken)
    receiver.subscribe(works)
    sender.broadcast(WorldUpdate(world_id="w1"))
    await hub.drain()

    assert len(heard) == 1


@pytest.mark.asyncio
async def test_unsubscribe_and_close():
    hub = BroadcastHub()
    sender, receiver = hub.open(), hub.open()
    heard = []
    unsubscribe = receiver.subscribe(heard.append)

    unsubscribe()
    sender.broadcast(CreaturePov(world_id="w1", element_id="e2"))
    await hub.drain()
    assert heard == []

    receiver.subscribe(heard.append)
    receiver.close()
    sender.broadcast(CreaturePov(world_id="w1", element_id="e2"))
    await hub.drain()
    assert heard == []

    sender.close()
    sender.broadcast(CreaturePov(world_id="w1", element_id="e2"))
    await hub.drain()
