"""
Propuestas de cambios generadas por IA (no confiables).
"""
from .ai_client import AIClient, build_prompt, extract_json

__all__ = ["AIClient", "build_prompt", "extract_json"]
