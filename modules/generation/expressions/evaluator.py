"""
Expression evaluator facade.

Dispatches each expression to the backend for its language and provides the
typed helpers the renderer needs (string, condition, iterable, inline
`{{...}}` templates).
"""

import json
import re
from typing import Any, Dict, List, Optional

from modules.generation.core.exceptions import ExpressionException
from modules.generation.core.interfaces import Expression, ExpressionLanguage, IExpressionBackend
from modules.generation.core.registry import ExpressionBackendRegistry

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.+?)\}\}")


def value_to_string(value: Any) -> str:
    """Render an expression result as display text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def is_truthy(value: Any) -> bool:
    """
    Truthiness used by conditional nodes.

    None, False, zero, empty strings and empty collections are falsy.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


class ExpressionEvaluator:
    """
    Evaluates expressions of any registered language.

    Example:
        evaluator = ExpressionEvaluator()
        evaluator.evaluate(Expression("customer.name"), {"customer": {"name": "Ada"}})
    """

    def __init__(
        self,
        backend_config: Optional[Dict[ExpressionLanguage, Dict[str, Any]]] = None,
        default_language: ExpressionLanguage = ExpressionLanguage.JSONATA,
    ):
        self.backend_config = backend_config or {}
        self.default_language = default_language
        self._backends: Dict[ExpressionLanguage, IExpressionBackend] = {}

    def _backend(self, language: ExpressionLanguage) -> IExpressionBackend:
        backend = self._backends.get(language)
        if backend is None:
            backend = ExpressionBackendRegistry.get(language, self.backend_config.get(language))
            self._backends[language] = backend
        return backend

    @staticmethod
    def build_context(data: Dict[str, Any], loop_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Merge loop variables over the data context; loop aliases win."""
        if not loop_context:
            return data
        return {**data, **loop_context}

    def evaluate(
        self,
        expression: Expression,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Evaluate an expression.

        Raises:
            ExpressionException: If the backend fails
        """
        context = self.build_context(data, loop_context)
        try:
            return self._backend(expression.language).evaluate(expression.raw, context)
        except ExpressionException:
            raise
        except Exception as e:
            raise ExpressionException(
                f"{expression.language.value} expression '{expression.raw}' failed: {e}"
            ) from e

    def evaluate_to_string(self, expression: Expression, data: Dict[str, Any],
                           loop_context: Optional[Dict[str, Any]] = None) -> str:
        return value_to_string(self.evaluate(expression, data, loop_context))

    def evaluate_condition(self, expression: Expression, data: Dict[str, Any],
                           loop_context: Optional[Dict[str, Any]] = None) -> bool:
        return is_truthy(self.evaluate(expression, data, loop_context))

    def evaluate_iterable(self, expression: Expression, data: Dict[str, Any],
                          loop_context: Optional[Dict[str, Any]] = None) -> List[Any]:
        """Evaluate to a list; anything that is not an array yields no items."""
        result = self.evaluate(expression, data, loop_context)
        if isinstance(result, (list, tuple)):
            return list(result)
        return []

    def process_template(
        self,
        template: str,
        data: Dict[str, Any],
        loop_context: Optional[Dict[str, Any]] = None,
        language: Optional[ExpressionLanguage] = None,
    ) -> str:
        """Substitute every {{expr}} placeholder in a text run."""
        if "{{" not in template:
            return template
        language = language or self.default_language

        def replace(match: re.Match) -> str:
            return self.evaluate_to_string(Expression(match.group(1).strip(), language), data, loop_context)

        return PLACEHOLDER_PATTERN.sub(replace, template)
