"""
Content store implementations for generation module.
"""

from modules.generation.storage.content_store import (
    InMemoryContentStore,
    S3ContentStore,
    StoredContent,
    create_content_store,
)

__all__ = [
    "InMemoryContentStore",
    "S3ContentStore",
    "StoredContent",
    "create_content_store",
]
