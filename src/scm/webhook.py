"""
Notificación a Microsoft Teams tras crear un PR de variables.
"""
from typing import Dict

import httpx

from ..diff.diff_engine import DiffResult
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

TEAMS_BLUE = "0078D7"


def build_message_card(pr_url: str, repo: str, branch: str, diff: DiffResult) -> Dict:
    """Payload MessageCard con el resumen del diff y un enlace al PR."""
    counts = diff.counts()
    return {
        "@type": "MessageCard",
        "@context": "https://schema.org/extensions",
        "title": f"Variables exportadas a {repo}",
        "themeColor": TEAMS_BLUE,
        "text": (
            f"Se generó automáticamente un Pull Request desde el documento de diseño.\n\n"
            f"**Repositorio**: {repo}\n**Rama**: {branch}\n\n"
            f"**Resumen**:\n- Añadidas: {counts['added']}\n"
            f"- Eliminadas: {counts['removed']}\n- Modificadas: {counts['changed']}"
        ),
        "potentialAction": [{
            "@type": "OpenUri",
            "name": "Ver Pull Request",
            "targets": [{"os": "default", "uri": pr_url}],
        }],
    }


class TeamsNotifier:
    """Envía MessageCards a un Incoming Webhook. Nunca lanza."""

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport = None):
        self.timeout = timeout
        self.transport = transport

    async def notify(
        self, webhook_url: str, pr_url: str, repo: str, branch: str, diff: DiffResult
    ) -> bool:
        """
        Args:
            webhook_url: URL del Incoming Webhook (vacía = no se notifica)
            pr_url: URL del PR creado
            repo: Nombre del repositorio
            branch: Rama del PR
            diff: Diff publicado

        Returns:
            True si Teams aceptó el mensaje
        """
        if not webhook_url:
            logger.warning("Sin URL de webhook; se omite la notificación a Teams")
            return False

        payload = build_message_card(pr_url, repo, branch, diff)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Error al notificar a Teams: {e}")
            return False

        if not response.is_success:
            logger.error(f"Webhook de Teams falló: HTTP {response.status_code}")
            return False

        logger.info("Notificación a Teams enviada")
        return True
