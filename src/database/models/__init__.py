"""
Database ORM models package.
"""

from src.database.models.generation import Document, GenerationBatch, GenerationRequest
from src.database.models.template import (
    DocumentTemplate,
    Environment,
    EnvironmentActivation,
    TemplateVariant,
    TemplateVersion,
    Tenant,
    ThemeRecord,
)

__all__ = [
    "Document",
    "GenerationBatch",
    "GenerationRequest",
    "DocumentTemplate",
    "Environment",
    "EnvironmentActivation",
    "TemplateVariant",
    "TemplateVersion",
    "Tenant",
    "ThemeRecord",
]
