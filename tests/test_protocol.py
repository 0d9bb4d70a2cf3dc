"""Tests de los canales del documento y del cliente tipado."""
import json

import httpx
import pytest

from conftest import RED, make_record
from src.changeset.change_set import ChangeSet, VariableCreate, VariableUpdate
from src.model.values import ColorValue, VariableType
from src.protocol import (
    ChannelUnavailableError,
    DocumentClient,
    FileDocumentChannel,
    HttpDocumentChannel,
    MessageType,
    PageScope,
    ProtocolError,
)

BRIDGE = "http://bridge.test/messages"


def http_channel(handler) -> HttpDocumentChannel:
    return HttpDocumentChannel(url=BRIDGE, transport=httpx.MockTransport(handler))


@pytest.fixture
def document_file(tmp_path):
    path = tmp_path / "document.json"
    path.write_text(json.dumps({
        "variables": [
            make_record("v1", "primary", {"m1": RED}),
            make_record("v2", "secondary", {"m1": RED}),
        ],
        "collections": [{"id": "c1", "name": "Brand", "modes": [{"modeId": "m1", "name": "Light"}]}],
        "bindings": [
            {"variable": "v1", "component": "Button", "nodes": ["n1", "n2"]},
            {"variable": "v2", "component": "Card", "nodes": ["n3"]},
        ],
    }), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# HttpDocumentChannel
# ---------------------------------------------------------------------------


class TestHttpChannel:

    @pytest.mark.asyncio
    async def test_posts_type_and_payload(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"variables": [], "collectionsInfo": []})

        async with http_channel(handler) as channel:
            response = await channel.request(MessageType.EXTRACT_VARIABLES)

        assert seen == [{"type": "async/extract-variables", "payload": {}}]
        assert response == {"variables": [], "collectionsInfo": []}

    @pytest.mark.asyncio
    async def test_error_field_is_protocol_error(self):
        channel = http_channel(lambda request: httpx.Response(200, json={"error": "sin permisos"}))
        with pytest.raises(ProtocolError, match="sin permisos"):
            await channel.request(MessageType.SET_VARIABLE_VALUE, {"variableId": "v1"})
        await channel.close()

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        channel = http_channel(lambda request: httpx.Response(409, text="conflicto"))
        with pytest.raises(ProtocolError) as excinfo:
            await channel.request(MessageType.SET_VARIABLE_VALUE)
        assert excinfo.value.status == 409
        assert not isinstance(excinfo.value, ChannelUnavailableError)
        await channel.close()

    @pytest.mark.asyncio
    async def test_503_is_channel_unavailable(self):
        channel = http_channel(lambda request: httpx.Response(503))
        with pytest.raises(ChannelUnavailableError):
            await channel.request(MessageType.SCAN_USAGE)
        await channel.close()

    @pytest.mark.asyncio
    async def test_connect_error_is_channel_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        channel = http_channel(handler)
        with pytest.raises(ChannelUnavailableError):
            await channel.request(MessageType.EXTRACT_VARIABLES)
        await channel.close()

    @pytest.mark.asyncio
    async def test_notify_swallows_protocol_errors(self):
        channel = http_channel(lambda request: httpx.Response(500))
        await channel.notify(MessageType.SELECT_NODES, {"ids": ["n1"]})
        await channel.close()

    @pytest.mark.asyncio
    async def test_notify_propagates_unavailable_channel(self):
        channel = http_channel(lambda request: httpx.Response(503))
        with pytest.raises(ChannelUnavailableError):
            await channel.notify(MessageType.SELECT_NODES, {"ids": ["n1"]})
        await channel.close()


# ---------------------------------------------------------------------------
# FileDocumentChannel + DocumentClient
# ---------------------------------------------------------------------------


class TestFileChannel:

    @pytest.mark.asyncio
    async def test_extract_variables(self, document_file):
        client = DocumentClient(FileDocumentChannel(document_file))
        extracted = await client.extract_variables()
        assert [v.id for v in extracted.variables] == ["v1", "v2"]
        assert extracted.collections[0].mode_name("m1") == "Light"
        assert extracted.warnings == []

    @pytest.mark.asyncio
    async def test_missing_document_is_unavailable(self, tmp_path):
        client = DocumentClient(FileDocumentChannel(tmp_path / "nada.json"))
        with pytest.raises(ChannelUnavailableError):
            await client.extract_variables()

    @pytest.mark.asyncio
    async def test_scan_usage_with_query(self, document_file):
        client = DocumentClient(FileDocumentChannel(document_file))
        index = await client.scan_usage(query="primary")
        assert index.identities() == ["v1"]
        assert index.node_ids("v1") == ["n1", "n2"]

    @pytest.mark.asyncio
    async def test_scan_usage_cancelled(self, document_file):
        client = DocumentClient(FileDocumentChannel(document_file))
        assert await client.scan_usage(should_cancel=lambda: True) is None

    @pytest.mark.asyncio
    async def test_set_value_persists(self, document_file):
        client = DocumentClient(FileDocumentChannel(document_file))
        await client.set_variable_value(
            VariableUpdate("v1", "m1", VariableType.COLOR, ColorValue(0, 0, 0))
        )
        saved = json.loads(document_file.read_text(encoding="utf-8"))
        assert saved["variables"][0]["valuesByMode"]["m1"] == {"r": 0, "g": 0, "b": 0, "a": 1.0}

    @pytest.mark.asyncio
    async def test_unknown_mode_rejected(self, document_file):
        client = DocumentClient(FileDocumentChannel(document_file))
        with pytest.raises(ProtocolError):
            await client.set_variable_value(
                VariableUpdate("v1", "dark", VariableType.COLOR, ColorValue(0, 0, 0))
            )

    @pytest.mark.asyncio
    async def test_apply_with_create_and_remap(self, document_file):
        client = DocumentClient(FileDocumentChannel(document_file))
        create = VariableCreate("accent", "c1", "m1", VariableType.COLOR, ColorValue(0, 1, 0), "v1")

        result = await client.apply_changes(ChangeSet(creates=(create,)))

        assert result.applied == 1
        assert result.remapped == 2
        saved = json.loads(document_file.read_text(encoding="utf-8"))
        new_id = result.created_ids["accent"]
        assert saved["variables"][-1]["id"] == new_id
        assert saved["variables"][-1]["valuesByMode"]["m1"]["g"] == 1
        assert saved["bindings"][0]["variable"] == new_id

    @pytest.mark.asyncio
    async def test_select_nodes_is_fire_and_forget(self, fake_channel):
        client = DocumentClient(fake_channel)
        await client.select_nodes(["n1", "n2"])
        assert fake_channel.sent(MessageType.SELECT_NODES) == [{"ids": ["n1", "n2"]}]

    @pytest.mark.asyncio
    async def test_scan_payload_and_context_manager(self, fake_channel):
        async with DocumentClient(fake_channel) as client:
            await client.scan_usage(query="btn", page_scope=PageScope.CURRENT_PAGE)
        assert fake_channel.sent(MessageType.SCAN_USAGE) == [{"pageScope": "current", "query": "btn"}]
        assert fake_channel.closed

    @pytest.mark.asyncio
    async def test_extract_derives_collections_when_missing(self, fake_channel):
        fake_channel.responses[MessageType.EXTRACT_VARIABLES] = {
            "variables": [make_record("v1", "primary", {"m1": RED}), {"id": "roto"}],
        }
        extracted = await DocumentClient(fake_channel).extract_variables()
        assert [c.id for c in extracted.collections] == ["c1"]
        assert len(extracted.warnings) == 1
