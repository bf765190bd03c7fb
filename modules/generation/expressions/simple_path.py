"""
Property-path expression backend.

Resolves dotted/indexed paths such as `customer.name`, `items.0.price`
or `items[0].price`. Unresolvable paths evaluate to None.
"""

import re
from typing import Any, Dict, List, Union

from modules.generation.core.exceptions import ExpressionException
from modules.generation.core.interfaces import ExpressionLanguage, IExpressionBackend
from modules.generation.core.registry import register_expression_backend

_SEGMENT = re.compile(r"[^.\[\]]+|\[(\d+)\]")


def parse_path(raw: str) -> List[Union[str, int]]:
    """Split a path into property names and list indices."""
    path = raw.strip()
    if not path or path.startswith(".") or path.endswith(".") or ".." in path:
        raise ExpressionException(f"Invalid path expression: '{raw}'")

    segments: List[Union[str, int]] = []
    for match in _SEGMENT.finditer(path):
        if match.group(1) is not None:
            segments.append(int(match.group(1)))
        else:
            segments.append(match.group(0).strip())
    if not segments:
        raise ExpressionException(f"Invalid path expression: '{raw}'")
    return segments


def resolve_path(value: Any, segments: List[Union[str, int]]) -> Any:
    current = value
    for segment in segments:
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(str(segment))
        elif isinstance(current, (list, tuple)):
            try:
                index = segment if isinstance(segment, int) else int(segment)
            except ValueError:
                return None
            if not 0 <= index < len(current):
                return None
            current = current[index]
        else:
            return None
    return current


@register_expression_backend(ExpressionLanguage.SIMPLE_PATH)
class SimplePathBackend(IExpressionBackend):
    """Pure property-path lookup with no operators."""

    def evaluate(self, raw: str, context: Dict[str, Any]) -> Any:
        return resolve_path(context, parse_path(raw))
