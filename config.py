"""
Configuración central del sistema de sincronización de variables de diseño.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Configuración global del sistema."""

    # GitHub (baseline de variables versionado)
    GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
    GITHUB_OWNER = os.getenv("GITHUB_OWNER", "")
    GITHUB_REPO = os.getenv("GITHUB_REPO", "")
    GITHUB_BASE_BRANCH = os.getenv("GITHUB_BASE_BRANCH", "main")
    GITHUB_FILE_PATH = os.getenv("GITHUB_FILE_PATH", "variables.json")
    GITHUB_API_URL = os.getenv("GITHUB_API_URL", "https://api.github.com")

    # Bridge del plugin de documento
    DOCUMENT_BRIDGE_URL = os.getenv("DOCUMENT_BRIDGE_URL", "http://localhost:7777/messages")
    DOCUMENT_TIMEOUT = float(os.getenv("DOCUMENT_TIMEOUT", "30"))

    # Proveedor de IA (propuestas de cambios)
    AI_API_KEY = os.getenv("AI_API_KEY", "")
    AI_MODEL = os.getenv("AI_MODEL", "claude-3-7-sonnet-20250219")
    AI_API_URL = os.getenv("AI_API_URL", "https://api.anthropic.com/v1/messages")

    # Notificaciones
    TEAMS_WEBHOOK_URL = os.getenv("TEAMS_WEBHOOK_URL", "")

    # Neo4j (exportación del grafo de uso)
    NEO4J_URI = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    NEO4J_USER = os.getenv("NEO4J_USER", "neo4j")
    NEO4J_PASSWORD = os.getenv("NEO4J_PASSWORD", "password")

    # Performance tuning
    BATCH_SIZE = int(os.getenv("BATCH_SIZE", "1000"))
    SCAN_CHUNK_SIZE = int(os.getenv("SCAN_CHUNK_SIZE", "500"))

    # Reintentos para lecturas idempotentes (fetch del baseline)
    FETCH_RETRIES = int(os.getenv("FETCH_RETRIES", "3"))
    RETRY_BACKOFF = float(os.getenv("RETRY_BACKOFF", "1.0"))

    # Políticas de impacto (constantes, no derivadas)
    IMPACT_HIGH_THRESHOLD = 10
    IMPACT_MEDIUM_THRESHOLD = 3

    # Etiqueta para nodos sin componente
    UNBOUND_COMPONENT = "(Unstyled / Frame)"
