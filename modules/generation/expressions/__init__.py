"""
Expression evaluation.

Importing this package registers every built-in backend.
"""

from modules.generation.expressions import simple_path, jsonata_backend, script_backend  # noqa: F401
from modules.generation.expressions.evaluator import (
    ExpressionEvaluator,
    is_truthy,
    value_to_string,
)

__all__ = ["ExpressionEvaluator", "is_truthy", "value_to_string"]
