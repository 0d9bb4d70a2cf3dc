"""
Colaboradores de control de versiones: GitHub y notificaciones.
"""
from .github_client import GitHubClient
from .webhook import TeamsNotifier, build_message_card

__all__ = ["GitHubClient", "TeamsNotifier", "build_message_card"]
