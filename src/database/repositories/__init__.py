"""
Database repositories for data access.
"""

from .base import BaseRepository
from .document_repository import DocumentRepository
from .generation_request_repository import GenerationRequestRepository, MAX_ERROR_MESSAGE_LENGTH
from .template_repository import TemplateRepository

__all__ = [
    "BaseRepository",
    "DocumentRepository",
    "GenerationRequestRepository",
    "MAX_ERROR_MESSAGE_LENGTH",
    "TemplateRepository",
]
