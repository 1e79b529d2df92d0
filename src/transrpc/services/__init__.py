"""Services package initialization."""
from .session import SESSION_HEADER, SessionClient
from .sources import base64_source, file_source, url_source
from .transmission import Transmission

__all__ = [
    "SESSION_HEADER",
    "SessionClient",
    "Transmission",
    "base64_source",
    "file_source",
    "url_source",
]
