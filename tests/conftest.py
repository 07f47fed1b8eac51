import copy
from collections import Counter, deque
from typing import Any, Callable, Dict, List, Set

import pytest

from app.services.document_service import DocumentService as FileDocumentService
from client.api.base_service import APIError, DocumentNotFound
from client.utils.config import Config


class FakeClock:
    """Monotonic clock the tests move by hand"""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection:
    """Stands in for SyncConnection: subscribe, join and nothing on the wire"""

    def __init__(self, room: "FakeRoom"):
        self.room = room
        self.rooms: Set[str] = set()
        self.handlers: List[Callable] = []
        room.connections.append(self)

    def subscribe(self, handler):
        self.handlers.append(handler)

        def unsubscribe():
            if handler in self.handlers:
                self.handlers.remove(handler)

        return unsubscribe

    async def join(self, world_id: str) -> None:
        self.rooms.add(world_id)

    async def leave(self, world_id: str) -> None:
        self.rooms.discard(world_id)

    async def deliver(self, world_id: str, name: str, payload: Any) -> None:
        for handler in list(self.handlers):
            await handler(world_id, name, copy.deepcopy(payload))


class FakeRoom:
    """The server's rooms: notifications queue up until flush() delivers them"""

    def __init__(self):
        self.connections: List[FakeConnection] = []
        self.pending = deque()
        self.sent: List[tuple] = []

    def publish(self, world_id: str, name: str, payload: Any) -> None:
        self.pending.append((world_id, name, copy.deepcopy(payload)))

    def connect(self) -> FakeConnection:
        return FakeConnection(self)

    async def flush(self) -> int:
        delivered = 0
        while self.pending:
            world_id, name, payload = self.pending.popleft()
            self.sent.append((world_id, name, payload))
            for connection in list(self.connections):
                if world_id in connection.rooms:
                    await connection.deliver(world_id, name, payload)
            delivered += 1
        return delivered


class LocalStore:
    """Client-side document store backed by the server's file store.

    Mirrors the HTTP client's contract (DocumentNotFound for missing
    documents) and publishes every successful write to the room, the way
    the server routes do. Reads and writes can be made to fail by name.
    """

    def __init__(self, files: FileDocumentService, room: FakeRoom):
        self.files = files
        self.room = room
        self.calls: Counter = Counter()
        self.fail_reads: Set[str] = set()
        self.fail_writes: Set[str] = set()

    async def list_worlds(self) -> List[str]:
        self.calls["list"] += 1
        return self.files.list_worlds()

    async def create_world(self, world_id: str, name: str) -> Dict[str, Any]:
        self.calls["create"] += 1
        self.files.create_world(world_id, name)
        return {"ok": True, "id": world_id}

    async def get_document(self, world_id: str, name: str) -> Any:
        self.calls[("get", name)] += 1
        if name in self.fail_reads:
            raise APIError(500, "Request failed: connection refused")
        document = self.files.get_document(world_id, name)
        if document is None:
            raise DocumentNotFound("Document not found")
        return document

    async def put_document(self, world_id: str, name: str, body: Any) -> Dict[str, Any]:
        self.calls[("put", name)] += 1
        if name in self.fail_writes:
            raise APIError(500, "Request failed: connection refused")
        self.files.put_document(world_id, name, body)
        self.room.publish(world_id, name, body)
        return {"ok": True}

    async def delete_document(self, world_id: str, name: str) -> Dict[str, Any]:
        self.calls[("delete", name)] += 1
        if name in self.fail_writes:
            raise APIError(500, "Request failed: connection refused")
        for changed_name, payload in self.files.delete_document(world_id, name):
            self.room.publish(world_id, changed_name, payload)
        return {"ok": True}

    def reads(self, name: str) -> int:
        return self.calls[("get", name)]


WORLD_ID = "w1"


def seed_world(files: FileDocumentService, world_id: str = WORLD_ID) -> None:
    """Three maps: m1 (root) with a portal to m2 (its child), and m3 (another root)"""
    files.create_world(world_id, "Test World")
    files.put_document(world_id, "world.json", {
        "id": world_id,
        "name": "Test World",
        "description": "",
        "rootMapId": "m1",
        "players": [
            {"id": "p1", "name": "Aria", "worldId": world_id, "type": "player",
             "hp_max": 12, "hp_current": 12, "ac": 14},
        ],
    })
    files.put_document(world_id, "maps.json", [
        {"id": "m1", "worldId": world_id, "name": "Town", "level": 0},
        {"id": "m2", "worldId": world_id, "name": "Tavern", "parentMapId": "m1", "level": 1},
        {"id": "m3", "worldId": world_id, "name": "Forest", "level": 0},
    ])
    files.put_document(world_id, "m1.json", {
        "id": "m1", "worldId": world_id, "name": "Town", "level": 0,
        "elements": [
            {"id": "e1", "type": "portal", "name": "Tavern door", "x": 40, "y": 55,
             "visible": True, "targetMapId": "m2"},
            {"id": "e2", "type": "npc", "name": "Guard", "x": 10, "y": 20,
             "visible": True, "imageUrl": "/worlds/w1/images/guard.png", "hp_max": 20, "ac": 16},
            {"id": "e3", "type": "item", "name": "Chest", "x": 70, "y": 80, "visible": False},
        ],
    })
    files.put_document(world_id, "m2.json", {
        "id": "m2", "worldId": world_id, "name": "Tavern", "parentMapId": "m1", "level": 1,
        "elements": [],
    })
    files.put_document(world_id, "m3.json", {
        "id": "m3", "worldId": world_id, "name": "Forest", "level": 0,
        "elements": [{"id": "e4", "type": "loot", "name": "Bones", "x": 5, "y": 5, "visible": True}],
    })


@pytest.fixture
def files(tmp_path):
    return FileDocumentService(str(tmp_path / "worlds"))


@pytest.fixture
def room():
    return FakeRoom()


@pytest.fixture
def store(files, room):
    return LocalStore(files, room)


@pytest.fixture
def seeded(files):
    seed_world(files)
    return WORLD_ID


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return Config(config_file=str(tmp_path / "client" / "config.json"))
