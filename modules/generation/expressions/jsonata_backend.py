"""
JSONata expression backend (default language).

Uses the jsonata-python port of the reference JSONata implementation.
"""

from typing import Any, Dict

import jsonata

from modules.generation.core.exceptions import ExpressionException
from modules.generation.core.interfaces import ExpressionLanguage, IExpressionBackend
from modules.generation.core.registry import register_expression_backend
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


def _to_plain(value: Any) -> Any:
    """Convert jsonata result sequences into plain lists/dicts."""
    if isinstance(value, dict):
        return {key: _to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    return value


@register_expression_backend(ExpressionLanguage.JSONATA)
class JsonataBackend(IExpressionBackend):
    """
    JSONata query backend.

    Compiled expressions are cached per backend instance; results are
    converted to plain JSON values. An undefined result evaluates to None.
    """

    def __init__(self, config=None):
        super().__init__(config)
        self._compiled: Dict[str, Any] = {}

    def _compile(self, raw: str):
        compiled = self._compiled.get(raw)
        if compiled is None:
            try:
                compiled = jsonata.Jsonata(raw)
            except Exception as e:
                raise ExpressionException(f"Invalid JSONata expression '{raw}': {e}") from e
            self._compiled[raw] = compiled
        return compiled

    def evaluate(self, raw: str, context: Dict[str, Any]) -> Any:
        compiled = self._compile(raw)
        try:
            result = compiled.evaluate(context)
        except Exception as e:
            raise ExpressionException(f"JSONata evaluation failed for '{raw}': {e}") from e
        return _to_plain(result)
