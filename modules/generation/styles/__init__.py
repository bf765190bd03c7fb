"""
Style cascade.
"""

from modules.generation.styles.resolver import (
    INHERITABLE_KEYS,
    ResolvedStyle,
    ResolvedTheme,
    StyleCascadeResolver,
    inheritable_subset,
)

__all__ = [
    "INHERITABLE_KEYS",
    "ResolvedStyle",
    "ResolvedTheme",
    "StyleCascadeResolver",
    "inheritable_subset",
]
