"""
Cliente de GitHub para el baseline versionado de variables.

Lecturas idempotentes (fetch del baseline) se reintentan con backoff fijo;
las mutaciones (ramas, commits, PRs) nunca se reintentan.
"""
import asyncio
import base64
import binascii
from typing import Any, Dict, List, Optional

import httpx

from config import Config
from ..utils.errors import SourceControlError
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class GitHubClient:
    """Operaciones REST mínimas sobre un repositorio de GitHub."""

    def __init__(
        self,
        token: str = None,
        owner: str = None,
        repo: str = None,
        api_url: str = None,
        retries: int = None,
        backoff: float = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """
        Args:
            token: Personal access token
            owner: Dueño del repositorio
            repo: Nombre del repositorio
            api_url: URL base de la API (GitHub Enterprise)
            retries: Intentos totales para lecturas idempotentes
            backoff: Espera fija entre intentos, en segundos
            transport: Transporte httpx alternativo (tests)
        """
        self.owner = owner or Config.GITHUB_OWNER
        self.repo = repo or Config.GITHUB_REPO
        self.retries = max(1, retries if retries is not None else Config.FETCH_RETRIES)
        self.backoff = backoff if backoff is not None else Config.RETRY_BACKOFF

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        token = token or Config.GITHUB_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=(api_url or Config.GITHUB_API_URL).rstrip("/"),
            headers=headers,
            timeout=30.0,
            transport=transport,
        )

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _call(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise SourceControlError(f"GitHub {method} {path} falló: {e}") from e

    async def _json(self, method: str, path: str, expected=(200, 201), **kwargs) -> Any:
        response = await self._call(method, path, **kwargs)
        if response.status_code not in expected:
            raise SourceControlError(
                f"GitHub {method} {path}: HTTP {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )
        return _response_json(response, f"GitHub {method} {path}")


    # ------------------------------------------------------------------
    # Lecturas
    # ------------------------------------------------------------------

    async def fetch_file(self, branch: str = None, path: str = None) -> str:
        """
        Descarga el contenido de un archivo en una rama.

        Un 404 no es un error: devuelve "" (primer commit del baseline).
        Los fallos transitorios se reintentan con backoff fijo.

        Args:
            branch: Rama (GITHUB_BASE_BRANCH por defecto)
            path: Ruta del archivo (GITHUB_FILE_PATH por defecto)

        Returns:
            Contenido del archivo como texto

        Raises:
            SourceControlError: Si se agotan los reintentos o la ruta es un directorio
        """
        branch = branch or Config.GITHUB_BASE_BRANCH
        path = path or Config.GITHUB_FILE_PATH

        last_error: Optional[SourceControlError] = None
        for attempt in range(1, self.retries + 1):
            try:
                return await self._fetch_file_once(branch, path)
            except SourceControlError as e:
                # Errores del cliente (permisos, ruta inválida) no mejoran reintentando
                if e.status is not None and 400 <= e.status < 500 and e.status != 429:
                    raise
                last_error = e
                if attempt < self.retries:
                    logger.warning(
                        f"Fetch de {path}@{branch} falló (intento {attempt}/{self.retries}); "
                        f"reintentando en {self.backoff:.1f}s"
                    )
                    await asyncio.sleep(self.backoff)

        logger.error(f"Fetch de {path}@{branch} falló tras {self.retries} intentos")
        raise last_error

    async def _fetch_file_once(self, branch: str, path: str) -> str:
        response = await self._call(
            "GET", f"{self.repo_path}/contents/{path.lstrip('/')}", params={"ref": branch}
        )
        if response.status_code == 404:
            logger.info(f"{path} no existe en {branch}; baseline vacío")
            return ""
        if response.status_code != 200:
            error = SourceControlError(
                f"No se pudo leer {path}@{branch}: HTTP {response.status_code}",
                status=response.status_code,
            )
            # La API de contenidos rechaza archivos grandes con 403/422
            if response.status_code in (403, 422) or "too large" in response.text:
                content = await self._fetch_file_from_tree(branch, path)
                if content is not None:
                    return content
            raise error

        data = _response_json(response, f"Lectura de {path}@{branch}")
        if isinstance(data, list):
            raise SourceControlError(f"'{path}' es un directorio, no un archivo", status=400)
        if not isinstance(data, dict):
            raise SourceControlError(f"Respuesta inesperada al leer {path}@{branch}")

        content = data.get("content") or ""
        # Archivos > 1MB llegan sin contenido: se lee el blob por sha
        if (not content or data.get("encoding") == "none") and data.get("sha"):
            return await self._fetch_blob(data["sha"])

        return _decode_base64(content)

    async def _fetch_blob(self, sha: str) -> str:
        blob = await self._json("GET", f"{self.repo_path}/git/blobs/{sha}")
        if blob.get("encoding") == "base64":
            return _decode_base64(blob.get("content") or "")
        return blob.get("content") or ""

    async def _fetch_file_from_tree(self, branch: str, path: str) -> Optional[str]:
        """
        Lee un archivo recorriendo el árbol git de la rama (rama -> tree -> blob).

        Returns:
            Contenido del archivo, o None si el recorrido no lo encuentra o falla
        """
        logger.info(f"Leyendo {path}@{branch} a través del árbol git")
        try:
            branch_data = await self._json("GET", f"{self.repo_path}/branches/{branch}")
            tree = await self._json(
                "GET",
                f"{self.repo_path}/git/trees/{branch_data['commit']['sha']}",
                params={"recursive": "true"},
            )
            node = next(
                (item for item in tree.get("tree", []) if item.get("path") == path.lstrip("/")),
                None,
            )
            if node is None or not node.get("sha"):
                logger.warning(f"{path} no aparece en el árbol de {branch}")
                return None
            return await self._fetch_blob(node["sha"])
        except (SourceControlError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Lectura por árbol de {path}@{branch} falló: {e}")
            return None


    async def list_branches(self) -> List[str]:
        """Nombres de las ramas del repositorio (primeras 100)."""
        branches = await self._json("GET", f"{self.repo_path}/branches", params={"per_page": 100})
        return [branch["name"] for branch in branches]

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def _get_ref_sha(self, branch: str) -> Optional[str]:
        response = await self._call("GET", f"{self.repo_path}/git/ref/heads/{branch}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise SourceControlError(
                f"No se pudo leer la rama {branch}: HTTP {response.status_code}",
                status=response.status_code,
            )
        return _response_json(response, f"Rama {branch}")["object"]["sha"]

    async def create_pull_request(
        self,
        target_branch: str,
        title: str,
        body: str,
        files: Dict[str, str],
        base_branch: str = None,
        commit_message: str = None,
    ) -> str:
        """
        Crea rama + commit + pull request con los archivos dados.

        El commit se construye sobre la punta de la rama destino si ya existe,
        para no pisar commits anteriores. Si ya hay un PR abierto para el par
        de ramas, devuelve su URL.

        Args:
            target_branch: Rama del PR (se crea desde la base si no existe)
            title: Título del PR
            body: Cuerpo del PR (markdown)
            files: Mapa ruta -> contenido
            base_branch: Rama base (GITHUB_BASE_BRANCH por defecto)
            commit_message: Mensaje del commit (el título por defecto)

        Returns:
            URL del pull request

        Raises:
            SourceControlError: Si falla cualquier paso
        """
        base_branch = base_branch or Config.GITHUB_BASE_BRANCH

        base_sha = await self._get_ref_sha(base_branch)
        if base_sha is None:
            raise SourceControlError(
                f"La rama base '{base_branch}' no existe o el repositorio "
                f"{self.full_name} no es accesible; revisa el token y los nombres",
                status=404,
            )

        target_sha = await self._get_ref_sha(target_branch)
        if target_sha is None:
            await self._json("POST", f"{self.repo_path}/git/refs", json={
                "ref": f"refs/heads/{target_branch}",
                "sha": base_sha,
            })
            target_sha = base_sha
            logger.info(f"Rama {target_branch} creada desde {base_branch}")

        tree_items = []
        for path, content in files.items():
            blob = await self._json("POST", f"{self.repo_path}/git/blobs", json={
                "content": content,
                "encoding": "utf-8",
            })
            tree_items.append({"path": path, "mode": "100644", "type": "blob", "sha": blob["sha"]})

        tree = await self._json("POST", f"{self.repo_path}/git/trees", json={
            "base_tree": target_sha,
            "tree": tree_items,
        })
        commit = await self._json("POST", f"{self.repo_path}/git/commits", json={
            "message": commit_message or title,
            "tree": tree["sha"],
            "parents": [target_sha],
        })
        await self._json("PATCH", f"{self.repo_path}/git/refs/heads/{target_branch}", json={
            "sha": commit["sha"],
        })

        response = await self._call("POST", f"{self.repo_path}/pulls", json={
            "title": title,
            "body": body,
            "head": target_branch,
            "base": base_branch,
        })
        if response.status_code == 201:
            return _response_json(response, "Creación del PR")["html_url"]

        if response.status_code == 422 and "already exists" in response.text:
            existing = await self._json("GET", f"{self.repo_path}/pulls", params={
                "head": f"{self.owner}:{target_branch}",
                "base": base_branch,
                "state": "open",
            })
            if existing:
                logger.info(f"PR existente para {target_branch}: {existing[0]['html_url']}")
                return existing[0]["html_url"]

        raise SourceControlError(
            f"No se pudo crear el PR: HTTP {response.status_code} {response.text[:200]}",
            status=response.status_code,
        )


def _response_json(response: httpx.Response, context: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise SourceControlError(f"{context}: respuesta no es JSON", status=response.status_code) from e


def _decode_base64(content: str) -> str:
    try:
        return base64.b64decode(content.replace("\n", "")).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise SourceControlError(f"Contenido del archivo ilegible: {e}") from e

