import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from client.api.base_service import APIError, DocumentNotFound
from client.api.document_service import DocumentService
from client.game.sync_connection import SyncConnection


def _changed(name, payload=None, world_id="w1"):
    return json.dumps({"type": "document_changed", "world_id": world_id, "name": name, "payload": payload})


def _response(status_code, body):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode()
    return response


@pytest.mark.asyncio
async def test_document_changed_reaches_every_handler():
    connection = SyncConnection("ws://test")
    sync_handler = MagicMock(return_value=None)
    async_handler = AsyncMock()
    connection.subscribe(sync_handler)
    connection.subscribe(async_handler)

    await connection._process_message(_changed("m1.json", {"id": "m1"}))

    sync_handler.assert_called_once_with("w1", "m1.json", {"id": "m1"})
    async_handler.assert_awaited_once_with("w1", "m1.json", {"id": "m1"})


@pytest.mark.asyncio
async def test_failing_handler_is_isolated():
    connection = SyncConnection("ws://test")
    after = AsyncMock()
    connection.subscribe(AsyncMock(side_effect=RuntimeError("boom")))
    connection.subscribe(after)

    await connection._process_message(_changed("world.json"))

    after.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("message", [
    "not json",
    "[1, 2]",
    json.dumps({"type": "document_changed", "world_id": "w1"}),
    json.dumps({"type": "pong"}),
    json.dumps({"type": "error", "error": "bad"}),
])
async def test_other_messages_never_reach_handlers(message):
    connection = SyncConnection("ws://test")
    handler = AsyncMock()
    connection.subscribe(handler)

    await connection._process_message(message)

    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    connection = SyncConnection("ws://test")
    handler = AsyncMock()
    unsubscribe = connection.subscribe(handler)
    unsubscribe()
    unsubscribe()

    await connection._process_message(_changed("maps.json", []))

    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_connected_event_records_client_id():
    connection = SyncConnection("ws://test")
    await connection._process_message(json.dumps({"type": "connected", "client_id": "abc"}))
    assert connection.client_id == "abc"


@pytest.mark.asyncio
async def test_rooms_are_remembered_while_offline():
    connection = SyncConnection("ws://test")

    await connection.join("w1")
    await connection.join("w2")
    await connection.leave("w2")
    await connection.relay("w1", "m1.json", {"id": "m1"})

    assert connection.rooms == {"w1"}


@pytest.mark.asyncio
async def test_join_and_relay_are_sent_when_connected():
    connection = SyncConnection("ws://test")
    connection.websocket = AsyncMock()
    connection.connected = True

    await connection.join("w1")
    await connection.relay("w1", "m1.json", {"id": "m1"})

    sent = [json.loads(call.args[0]) for call in connection.websocket.send.await_args_list]
    assert sent == [
        {"type": "join", "world_id": "w1"},
        {"type": "manage_update", "world_id": "w1", "name": "m1.json", "payload": {"id": "m1"}},
    ]


@pytest.mark.asyncio
async def test_disconnect_closes_the_socket():
    connection = SyncConnection("ws://test")
    websocket = AsyncMock()
    connection.websocket = websocket
    connection.connected = True

    await connection.disconnect()

    websocket.close.assert_awaited_once()
    assert not connection.connected
    assert connection.shutdown_requested


@pytest.mark.asyncio
async def test_document_service_builds_escaped_urls(monkeypatch):
    calls = []

    def fake_request(method, url, **kwargs):
        calls.append((method, url, kwargs.get("json")))
        return _response(200, {"ok": True})

    monkeypatch.setattr(requests, "request", fake_request)
    service = DocumentService("http://server/api/")

    await service.put_document("my world", "m1.json", {"id": "m1"})

    assert calls == [("PUT", "http://server/api/world/my%20world/config/m1.json", {"id": "m1"})]


@pytest.mark.asyncio
async def test_missing_document_raises_not_found(monkeypatch):
    monkeypatch.setattr(requests, "request", lambda *a, **kw: _response(404, {"detail": "Document not found"}))
    service = DocumentService("http://server/api")

    with pytest.raises(DocumentNotFound) as excinfo:
        await service.get_document("w1", "m9.json")
    assert excinfo.value.detail == "Document not found"


@pytest.mark.asyncio
async def test_transport_failure_becomes_api_error(monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "request", refuse)
    service = DocumentService("http://server/api")

    with pytest.raises(APIError) as excinfo:
        await service.list_worlds()
    assert not isinstance(excinfo.value, DocumentNotFound)
    assert excinfo.value.status_code == 500
