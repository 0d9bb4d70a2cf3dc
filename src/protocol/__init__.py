"""
Protocolo de mensajes con el documento de diseño.
"""
from ..utils.errors import ChannelUnavailableError, ProtocolError
from .channel import DocumentChannel, FileDocumentChannel, HttpDocumentChannel
from .client import DocumentClient, ExtractResult
from .messages import MessageType, PageScope

__all__ = [
    "ChannelUnavailableError",
    "ProtocolError",
    "DocumentChannel",
    "FileDocumentChannel",
    "HttpDocumentChannel",
    "DocumentClient",
    "ExtractResult",
    "MessageType",
    "PageScope",
]
