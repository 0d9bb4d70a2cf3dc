"""
Canales de mensajes hacia el documento.

El documento es un almacén mutable opaco: el motor solo lo alcanza con
pares request/response, lo que permite probarlo con un canal falso.
"""
import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from config import Config
from ..utils.errors import ChannelUnavailableError, ProtocolError
from ..utils.logger import setup_logger
from .messages import MessageType

logger = setup_logger(__name__)


class DocumentChannel:
    """Interfaz de canal: request/response asíncrono y notificaciones."""

    async def request(self, message_type: MessageType, payload: Dict = None) -> Dict:
        """
        Envía un mensaje y espera la respuesta.

        Raises:
            ProtocolError: La llamada falló (timeout, permisos, edición concurrente)
            ChannelUnavailableError: El canal no está disponible
        """
        raise NotImplementedError

    async def notify(self, message_type: MessageType, payload: Dict = None):
        """Envía un mensaje sin esperar respuesta útil; los fallos solo se registran."""
        try:
            await self.request(message_type, payload)
        except ChannelUnavailableError:
            raise
        except ProtocolError as e:
            logger.warning(f"Notificación {message_type.value} falló: {e}")

    async def close(self):
        """Libera recursos del canal."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class HttpDocumentChannel(DocumentChannel):
    """Canal HTTP hacia el bridge del plugin ({type, payload} por POST)."""

    def __init__(
        self,
        url: str = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """
        Args:
            url: Endpoint del bridge
            timeout: Timeout por request en segundos
            transport: Transporte httpx alternativo (tests)
        """
        self.url = url or Config.DOCUMENT_BRIDGE_URL
        self._client = httpx.AsyncClient(
            timeout=timeout or Config.DOCUMENT_TIMEOUT,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def request(self, message_type: MessageType, payload: Dict = None) -> Dict:
        body = {"type": message_type.value, "payload": payload or {}}

        try:
            response = await self._client.post(self.url, json=body)
        except httpx.ConnectError as e:
            raise ChannelUnavailableError(f"Bridge del documento no disponible en {self.url}: {e}") from e
        except httpx.TimeoutException as e:
            raise ProtocolError(f"Timeout en {message_type.value}") from e
        except httpx.HTTPError as e:
            raise ProtocolError(f"Error de transporte en {message_type.value}: {e}") from e

        if response.status_code == 503:
            raise ChannelUnavailableError(
                "Bridge del documento no disponible (HTTP 503)", status=503
            )
        if response.status_code >= 400:
            raise ProtocolError(
                f"{message_type.value} falló: HTTP {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Respuesta no JSON para {message_type.value}") from e

        if isinstance(data, dict) and data.get("error"):
            raise ProtocolError(f"{message_type.value}: {data['error']}")

        return data if isinstance(data, dict) else {"result": data}


class FileDocumentChannel(DocumentChannel):
    """
    Documento local en JSON servido con el mismo protocolo.

    Formato: {"variables": [...], "collections": [...], "bindings": [...]},
    donde cada binding es {variable, component, nodes}. Cada mutación se
    persiste inmediatamente en el archivo.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, Any]] = None
        self._created = 0

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            if not self.path.exists():
                raise ChannelUnavailableError(f"Documento {self.path} no encontrado")
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ChannelUnavailableError(f"Documento {self.path} ilegible: {e}") from e
            self._data.setdefault("variables", [])
            self._data.setdefault("collections", [])
            self._data.setdefault("bindings", [])
        return self._data

    def _save(self):
        self.path.write_text(json.dumps(self._data, indent=2, ensure_ascii=False), encoding="utf-8")

    def _find_variable(self, variable_id: str) -> Dict:
        for record in self._load()["variables"]:
            if record.get("id") == variable_id:
                return record
        raise ProtocolError(f"Variable {variable_id} no encontrada", status=404)

    def _find_collection(self, collection_id: str) -> Dict:
        for record in self._load()["collections"]:
            if record.get("id") == collection_id:
                return record
        raise ProtocolError(f"Colección {collection_id} no encontrada", status=404)

    async def request(self, message_type: MessageType, payload: Dict = None) -> Dict:
        payload = payload or {}
        data = self._load()

        if message_type == MessageType.EXTRACT_VARIABLES:
            return {
                "variables": copy.deepcopy(data["variables"]),
                "collectionsInfo": copy.deepcopy(data["collections"]),
            }

        if message_type == MessageType.SCAN_USAGE:
            return {"variables": self._scan(payload.get("query")), "textStyles": []}

        if message_type == MessageType.SET_VARIABLE_VALUE:
            record = self._find_variable(payload["variableId"])
            mode_id = payload["modeId"]
            collection_id = record.get("collectionId")
            if any(c.get("id") == collection_id for c in data["collections"]):
                modes = [m.get("modeId") for m in self._find_collection(collection_id).get("modes", [])]
                if modes and mode_id not in modes:
                    raise ProtocolError(f"Modo {mode_id} no existe para {record.get('name')}")
            record.setdefault("valuesByMode", {})[mode_id] = payload["value"]
            self._save()
            return {"variableId": record["id"], "name": record.get("name")}

        if message_type == MessageType.CREATE_VARIABLE:
            collection = self._find_collection(payload["collectionId"])
            self._created += 1
            variable_id = f"VariableID:local:{len(data['variables']) + self._created}"
            data["variables"].append({
                "id": variable_id,
                "name": payload["variableName"],
                "description": "",
                "type": payload["type"],
                "collectionId": collection["id"],
                "collectionName": collection.get("name", ""),
                "valuesByMode": {},
            })
            self._save()
            return {"variableId": variable_id}

        if message_type == MessageType.REBIND_NODES:
            remapped = self._rebind(
                payload["fromVariableId"], payload["toVariableId"], payload.get("nodeIds")
            )
            self._save()
            return {"remapped": remapped}

        if message_type == MessageType.SELECT_NODES:
            logger.info(f"Selección de nodos: {payload.get('ids', [])}")
            return {}

        raise ProtocolError(f"Mensaje no soportado: {message_type}")

    def _scan(self, query: str = None) -> List[Dict]:
        names = {v.get("id"): v.get("name") for v in self._data["variables"]}
        entries = []
        for binding in self._data["bindings"]:
            variable_id = binding.get("variable", binding.get("variableId"))
            name = names.get(variable_id) or ""
            if query and query.lower() not in name.lower() and query != variable_id:
                continue
            entries.append({
                "variableId": variable_id,
                "variableName": name,
                "componentName": binding.get("component", binding.get("componentName")),
                "nodeIds": list(binding.get("nodes", binding.get("nodeIds", []))),
            })
        return entries

    def _rebind(self, from_id: str, to_id: str, node_ids: List[str] = None) -> int:
        self._find_variable(to_id)
        remapped = 0
        for binding in self._data["bindings"]:
            key = "variable" if "variable" in binding else "variableId"
            if binding.get(key) != from_id:
                continue
            nodes = binding.get("nodes", binding.get("nodeIds", []))
            if node_ids is not None and not set(nodes) & set(node_ids):
                continue
            binding[key] = to_id
            remapped += len(nodes)
        return remapped
