"""
Colaborador de IA: convierte un pedido en lenguaje natural en ediciones
propuestas.

La salida nunca es confiable: debe pasar por el ChangeSetBuilder antes de
poder aplicarse.
"""
import json
import re
from typing import Any, Iterable, List, Tuple

import httpx

from config import Config
from ..changeset.change_set import ProposedEdit, parse_proposal
from ..model.variable import Collection, Variable
from ..usage.usage_index import UsageIndex
from ..utils.errors import AIProviderError
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 8192
# Límite de variables enviadas en el prompt
MAX_PROMPT_VARIABLES = 100

SYSTEM_PROMPT = """You convert design system change requests into exact design variable operations.

You receive the user's request, the collections with their modes, the variables
(id, name, type, collectionId, valuesByMode) and how many components use each one.

Output ONLY a JSON object, no markdown and no other text:
{
  "updates": [
    {"variableId": "<id>", "variableName": "<optional name>", "modeId": "<modeId>",
     "value": "<hex color, number, string or true/false>", "type": "COLOR" | "FLOAT" | "STRING" | "BOOLEAN"}
  ],
  "creates": [
    {"collectionId": "<id>", "variableName": "<dotted/path name>", "modeId": "<modeId>",
     "value": "<value>", "type": "COLOR" | "FLOAT" | "STRING" | "BOOLEAN",
     "remapFromVariableId": "<optional id whose components switch to the new variable>"}
  ]
}

Rules:
- Use variable ids from the list; match by name only if the id is unclear.
- Colors as hex ("#0048B7") or "rgba(0,72,183,1)".
- For creates pick collectionId and modeId from the collections info.
- Only include changes that directly implement the request.
- If nothing must change return {"updates": [], "creates": []}."""

JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def build_prompt(
    request: str,
    variables: Iterable[Variable],
    collections: Iterable[Collection],
    index: UsageIndex = None,
) -> str:
    """Mensaje de usuario con colecciones, variables y uso resumidos."""
    collection_lines = [
        f"- {c.name} (id: {c.id}): modes "
        + ", ".join(f"{m.name} (modeId: {m.mode_id})" for m in c.modes)
        for c in collections
    ]

    records = []
    for variable in list(variables)[:MAX_PROMPT_VARIABLES]:
        record = variable.to_dict()
        if index is not None:
            record["usedByNodes"] = index.total_nodes(variable.identity)
            record["usedByComponents"] = [
                e.component_name for e in index.named_entries(variable.identity)
            ]
        records.append(record)

    return (
        f"User request: {request}\n\n"
        f"Collections & Modes:\n" + "\n".join(collection_lines) + "\n\n"
        f"Variables (use these ids and types):\n{json.dumps(records, indent=2)}\n\n"
        f"Output the JSON object with updates and creates to apply these changes."
    )


def extract_json(text: str) -> Any:
    """
    Extrae el JSON de la respuesta del modelo.

    Acepta bloques ```json```, y si el texto trae prosa alrededor toma desde
    el primer '{' o '[' hasta el último cierre equivalente.

    Raises:
        AIProviderError: Si no hay JSON interpretable
    """
    candidate = text.strip()
    block = JSON_BLOCK_RE.search(candidate)
    if block:
        candidate = block.group(1).strip()

    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = candidate.find(opener), candidate.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(candidate[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise AIProviderError("No se pudo interpretar la respuesta de la IA como JSON")


class AIClient:
    """Cliente de la API de mensajes de Anthropic."""

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        api_url: str = None,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.api_key = api_key or Config.AI_API_KEY
        self.model = model or Config.AI_MODEL
        self.api_url = api_url or Config.AI_API_URL
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Llama al modelo y devuelve el texto de la primera respuesta.

        Raises:
            AIProviderError: Sin API key, error HTTP o respuesta vacía
        """
        if not self.api_key:
            raise AIProviderError("Falta AI_API_KEY")

        try:
            response = await self._client.post(
                self.api_url,
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "content-type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": MAX_TOKENS,
                    "system": system_prompt,
                    "messages": [{"role": "user", "content": user_prompt}],
                },
            )
        except httpx.HTTPError as e:
            raise AIProviderError(f"Error de transporte con la IA: {e}") from e

        if response.status_code != 200:
            raise AIProviderError(
                f"API de IA: HTTP {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AIProviderError("La API de IA respondió algo que no es JSON") from e

        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, list):
            content = []
        text = next(
            (
                block.get("text")
                for block in content
                if isinstance(block, dict) and block.get("type") == "text"
            ),
            None,
        )
        if not text or not isinstance(text, str):
            raise AIProviderError("La IA no devolvió texto")
        return text


    async def propose_edits(
        self,
        request: str,
        variables: Iterable[Variable],
        collections: Iterable[Collection],
        index: UsageIndex = None,
    ) -> Tuple[List[ProposedEdit], List[str]]:
        """
        Pide a la IA ediciones para un pedido en lenguaje natural.

        Args:
            request: Pedido del operador
            variables: Variables actuales del documento
            collections: Colecciones con sus modos
            index: Índice de uso opcional (cuántos nodos usan cada variable)

        Returns:
            Tupla (ediciones sin validar, advertencias)

        Raises:
            AIProviderError: Si la llamada falla o la respuesta no es JSON
        """
        prompt = build_prompt(request, variables, collections, index)
        text = await self.complete(SYSTEM_PROMPT, prompt)
        try:
            edits, warnings = parse_proposal(extract_json(text))
        except ValueError as e:
            raise AIProviderError(f"Respuesta de la IA inesperada: {e}") from e
        for warning in warnings:
            logger.warning(warning)
        logger.info(f"La IA propuso {len(edits)} ediciones")
        return edits, warnings
