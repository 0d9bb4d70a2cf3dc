"""
Jerarquía de errores del motor y de sus colaboradores externos.
"""


class ProtocolError(Exception):
    """Falla una llamada a un colaborador (timeout, permisos, edición concurrente)."""

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.message = message
        self.status = status


class ChannelUnavailableError(ProtocolError):
    """El canal en sí no está disponible; error fatal para la operación."""


class SourceControlError(ProtocolError):
    """Error del proveedor de control de versiones."""


class AIProviderError(ProtocolError):
    """Error del proveedor de IA."""
