"""Fixtures compartidas: snapshots de ejemplo y un canal de documento falso."""
import logging
from typing import Dict, List

import pytest

from src.model.variable import Collection, Variable
from src.protocol.channel import DocumentChannel
from src.protocol.messages import MessageType
from src.utils.errors import ChannelUnavailableError, ProtocolError


def pytest_configure(config):
    logging.getLogger("httpx").setLevel(logging.WARNING)


def make_record(
    var_id: str,
    name: str,
    values: Dict,
    var_type: str = "COLOR",
    collection_id: str = "c1",
    collection_name: str = "Brand",
    description: str = "",
) -> Dict:
    return {
        "id": var_id,
        "name": name,
        "description": description,
        "type": var_type,
        "collectionId": collection_id,
        "collectionName": collection_name,
        "valuesByMode": values,
    }


def make_variable(*args, **kwargs) -> Variable:
    return Variable.from_dict(make_record(*args, **kwargs))


RED = {"r": 1, "g": 0, "b": 0, "a": 1}
BLUE = {"r": 0, "g": 0, "b": 1, "a": 1}


def alias(target_id: str) -> Dict:
    return {"type": "VARIABLE_ALIAS", "id": target_id}


@pytest.fixture
def collections() -> List[Collection]:
    return [
        Collection.from_dict({
            "id": "c1",
            "name": "Brand",
            "modes": [{"modeId": "m1", "name": "Light"}, {"modeId": "m2", "name": "Dark"}],
        }),
        Collection.from_dict({
            "id": "c2",
            "name": "Spacing",
            "modes": [{"modeId": "s1", "name": "Default"}],
        }),
    ]


@pytest.fixture
def variables() -> List[Variable]:
    """Primario, un alias que lo referencia y un espaciado numérico."""
    return [
        make_variable("v1", "primary", {"m1": RED, "m2": BLUE}),
        make_variable("v2", "button/bg", {"m1": alias("v1"), "m2": alias("v1")}),
        make_variable(
            "v3", "spacing/md", {"s1": 16}, var_type="FLOAT",
            collection_id="c2", collection_name="Spacing",
        ),
    ]


@pytest.fixture
def bindings() -> List[Dict]:
    return [
        {"variable": "v1", "component": "Button", "nodes": ["n1"]},
        {"variable": "v1", "component": "Button", "nodes": ["n2"]},
        {"variable": "v2", "component": "Card", "nodes": ["n3", "n4"]},
        {"variable": "v3", "component": None, "nodes": ["n5"]},
    ]


class FakeChannel(DocumentChannel):
    """
    Canal en memoria que registra cada request.

    `fail` mapea (tipo de mensaje, variableId o variableName) a la excepción
    que debe lanzarse para ese ítem.
    """

    def __init__(self, responses: Dict[MessageType, Dict] = None):
        self.requests: List = []
        self.responses = responses or {}
        self.fail: Dict = {}
        self.closed = False
        self._created = 0

    def fail_on(self, message_type: MessageType, key: str, error: Exception):
        self.fail[(message_type, key)] = error

    def sent(self, message_type: MessageType) -> List[Dict]:
        return [payload for kind, payload in self.requests if kind == message_type]

    async def request(self, message_type: MessageType, payload: Dict = None) -> Dict:
        payload = payload or {}
        self.requests.append((message_type, payload))

        for key in (payload.get("variableId"), payload.get("variableName"), payload.get("fromVariableId")):
            error = self.fail.get((message_type, key))
            if error is not None:
                raise error
        error = self.fail.get((message_type, None))
        if error is not None:
            raise error

        if message_type == MessageType.CREATE_VARIABLE:
            self._created += 1
            return {"variableId": f"new{self._created}"}
        if message_type == MessageType.REBIND_NODES:
            return {"remapped": len(payload.get("nodeIds") or [])}
        return self.responses.get(message_type, {})

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def protocol_error():
    return ProtocolError("edición concurrente")


@pytest.fixture
def unavailable_error():
    return ChannelUnavailableError("bridge caído")
