"""
Generation services: request submission, queries and variant selection.
"""

from modules.generation.services.generation_service import GenerationItem, GenerationService, find_duplicates
from modules.generation.services.variant_resolver import VariantCriteria, VariantResolver

__all__ = [
    "GenerationItem",
    "GenerationService",
    "VariantCriteria",
    "VariantResolver",
    "find_duplicates",
]
