"""Tests del colaborador de IA."""
import json

import httpx
import pytest

from src.ai import AIClient, build_prompt, extract_json
from src.changeset import build_change_set
from src.usage import build_index
from src.utils.errors import AIProviderError

API = "https://ai.test/v1/messages"


def ai_client(handler, api_key="sk-test") -> AIClient:
    return AIClient(api_key=api_key, model="modelo-test", api_url=API, transport=httpx.MockTransport(handler))


def reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"content": [{"type": "text", "text": text}]})


class TestExtractJson:

    def test_plain_json(self):
        assert extract_json('{"updates": []}') == {"updates": []}

    def test_code_fence(self):
        assert extract_json('Aquí está:\n```json\n[{"a": 1}]\n```') == [{"a": 1}]

    def test_prose_around_object(self):
        assert extract_json('Claro. {"creates": []} Listo.') == {"creates": []}

    def test_no_json(self):
        with pytest.raises(AIProviderError):
            extract_json("no puedo ayudar con eso")


def test_prompt_includes_usage(variables, collections, bindings):
    prompt = build_prompt("oscurecer el primario", variables, collections, build_index(bindings))
    assert prompt.startswith("User request: oscurecer el primario")
    assert "Brand (id: c1): modes Light (modeId: m1), Dark (modeId: m2)" in prompt
    assert '"usedByNodes": 2' in prompt
    assert '"Button"' in prompt


class TestProposeEdits:

    @pytest.mark.asyncio
    async def test_proposal_is_parsed_and_untrusted(self, variables, collections):
        proposal = {
            "updates": [
                {"variableId": "v1", "modeId": "m1", "value": "#111111", "type": "COLOR"},
                {"variableId": "v404", "modeId": "m1", "value": "#000000", "type": "COLOR"},
            ],
            "creates": [],
        }
        sent = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return reply("```json\n" + json.dumps(proposal) + "\n```")

        async with ai_client(handler) as client:
            edits, warnings = await client.propose_edits("oscurecer", variables, collections)

        assert warnings == []
        assert [e.variable_id for e in edits] == ["v1", "v404"]
        assert sent[0].headers["x-api-key"] == "sk-test"
        assert json.loads(sent[0].content)["model"] == "modelo-test"

        # La salida pasa por el builder: el id inventado se descarta
        result = build_change_set(edits, variables, collections)
        assert [u.variable_id for u in result.change_set.updates] == ["v1"]
        assert len(result.warnings) == 1

    @pytest.mark.asyncio
    async def test_missing_api_key(self, variables, collections):
        async with ai_client(lambda request: reply("{}"), api_key="") as client:
            client.api_key = ""
            with pytest.raises(AIProviderError, match="AI_API_KEY"):
                await client.propose_edits("x", variables, collections)

    @pytest.mark.asyncio
    async def test_http_error(self, variables, collections):
        async with ai_client(lambda request: httpx.Response(529, text="overloaded")) as client:
            with pytest.raises(AIProviderError) as excinfo:
                await client.propose_edits("x", variables, collections)
        assert excinfo.value.status == 529

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, variables, collections):
        async with ai_client(lambda request: reply("42")) as client:
            with pytest.raises(AIProviderError):
                await client.propose_edits("x", variables, collections)

    @pytest.mark.asyncio
    async def test_non_json_body(self, variables, collections):
        async with ai_client(lambda request: httpx.Response(200, text="<html>gateway</html>")) as client:
            with pytest.raises(AIProviderError, match="no es JSON"):
                await client.propose_edits("x", variables, collections)

    @pytest.mark.asyncio
    async def test_content_blocks_not_objects(self, variables, collections):
        response = httpx.Response(200, json={"content": ["texto suelto", 3]})
        async with ai_client(lambda request: response) as client:
            with pytest.raises(AIProviderError, match="no devolvió texto"):
                await client.propose_edits("x", variables, collections)
