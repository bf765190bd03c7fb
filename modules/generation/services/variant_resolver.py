"""
Variant selection.

A request names its variant either explicitly or through criteria:
required attributes must all match; optional attributes only break ties.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Sequence

from modules.generation.core.exceptions import NoMatchingVariantException, NotFoundException
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class VariantCriteria:
    required: Dict[str, Any] = field(default_factory=dict)
    optional: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VariantCriteria":
        """Accepts {"required": {...}, "optional": {...}} or a flat required map."""
        if "required" in data or "optional" in data:
            return cls(required=dict(data.get("required") or {}), optional=dict(data.get("optional") or {}))
        return cls(required=dict(data))


class VariantLike(Protocol):
    id: str
    attributes: Dict[str, Any]
    is_default: bool


class VariantResolver:
    """Picks exactly one variant for a template."""

    def select(self, variants: Sequence[VariantLike], criteria: VariantCriteria) -> str:
        """
        Choose among variants listed in creation order.

        Ranking: most optional matches, then the default variant, then
        lowest creation order.

        Raises:
            NoMatchingVariantException: If no variant has every required attribute
        """
        candidates = [
            (index, variant)
            for index, variant in enumerate(variants)
            if all((variant.attributes or {}).get(key) == value for key, value in criteria.required.items())
        ]
        if not candidates:
            raise NoMatchingVariantException(
                f"No variant matches required attributes {criteria.required}"
            )

        def rank(entry):
            index, variant = entry
            attributes = variant.attributes or {}
            optional_matches = sum(1 for key, value in criteria.optional.items() if attributes.get(key) == value)
            return (-optional_matches, 0 if variant.is_default else 1, index)

        _, chosen = min(candidates, key=rank)
        logger.debug(f"Selected variant {chosen.id} for criteria {criteria}")
        return chosen.id

    def resolve(
        self,
        template_id: str,
        variants: Sequence[VariantLike],
        variant_id: Optional[str] = None,
        criteria: Optional[VariantCriteria] = None,
    ) -> str:
        """
        Resolve an explicit id or criteria to a variant id.

        Raises:
            NotFoundException: If an explicit variant is not part of the template
            NoMatchingVariantException: If criteria select nothing
        """
        if variant_id is not None:
            if not any(variant.id == variant_id for variant in variants):
                raise NotFoundException("Variant", f"{template_id}/{variant_id}")
            return variant_id
        return self.select(variants, criteria or VariantCriteria())
