"""Data models for local logistic regression evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .fields import FieldResolver


class Optype(str, Enum):
    """Field optypes that take part in scoring."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    TEXT = "text"
    ITEMS = "items"


class TokenMode(str, Enum):
    """How a text field value is split into terms."""

    TOKENS_ONLY = "tokens_only"
    FULL_TERMS_ONLY = "full_terms_only"
    ALL = "all"


# Optypes whose values are expanded into one coefficient per vocabulary entry
EXPANDED_OPTYPES: frozenset[str] = frozenset(
    {Optype.CATEGORICAL.value, Optype.TEXT.value, Optype.ITEMS.value}
)

# Summary key that holds the vocabulary of each expanded optype
VOCABULARY_KEYS: dict[str, str] = {
    Optype.CATEGORICAL.value: "categories",
    Optype.TEXT.value: "tag_cloud",
    Optype.ITEMS.value: "items",
}

DUMMY_CODING = "dummy"


def custom_coding(codings: Optional[dict[str, Any]]) -> Optional[tuple[str, Any]]:
    """Return the first non-dummy ``(coding, contributions)`` pair, if any.

    Only the first coding declared for a field is used.
    """
    if not codings:
        return None
    coding, contributions = next(iter(codings.items()))
    if coding == DUMMY_CODING:
        return None
    return coding, contributions


@dataclass(frozen=True)
class FieldInfo:
    """A model field with its vocabulary and coefficient slice."""

    field_id: str
    name: str
    optype: str
    column_number: int = 0
    vocabulary: tuple[str, ...] = ()
    term_forms: dict[str, tuple[str, ...]] = field(default_factory=dict)
    term_analysis: dict = field(default_factory=dict)
    item_analysis: dict = field(default_factory=dict)
    coefficients_shift: Optional[int] = None
    coefficients_length: Optional[int] = None

    @property
    def is_expanded(self) -> bool:
        return self.optype in EXPANDED_OPTYPES

    @property
    def missing_index(self) -> int:
        """Position of the missing-value slot in a one-hot coefficient group."""
        return len(self.vocabulary)

    def to_dict(self) -> dict:
        return {
            "id": self.field_id,
            "name": self.name,
            "optype": self.optype,
            "column_number": self.column_number,
            "vocabulary_size": len(self.vocabulary),
            "coefficients_shift": self.coefficients_shift,
            "coefficients_length": self.coefficients_length,
        }


@dataclass(frozen=True)
class LogisticModel:
    """Immutable internal representation of a logistic regression.

    Attributes:
        fields: Field metadata keyed by field id.
        input_fields: Field ids in coefficient-group order.
        objective_field: Id of the target field.
        coefficients: Per category, one coefficient group per input field
            followed by a one-element bias group.
        field_codings: Per categorical field id, ``{coding: contributions}``.
            For ``dummy`` coding the value is the dummy class label.
        missing_numerics: Whether numeric fields reserve a missing slot.
        resolver: Field id / name lookup.
    """

    fields: dict[str, FieldInfo]
    input_fields: tuple[str, ...]
    objective_field: str
    coefficients: dict[str, tuple[tuple[float, ...], ...]]
    resolver: FieldResolver
    field_codings: dict[str, dict[str, Any]] = field(default_factory=dict)
    missing_numerics: bool = False
    resource_id: Optional[str] = None
    bias: Optional[bool] = None
    c: Optional[float] = None
    eps: Optional[float] = None
    normalize: Optional[bool] = None
    regularization: Optional[str] = None
    dataset_field_types: dict = field(default_factory=dict)
    description: str = ""
    locale: str = "en-US"

    @property
    def categories(self) -> tuple[str, ...]:
        """Objective field categories in their canonical order."""
        return self.fields[self.objective_field].vocabulary

    def coding_for(self, field_id: str) -> Optional[tuple[str, Any]]:
        """Return ``(coding, contributions)`` for a custom-coded field.

        Fields without codings, or with ``dummy`` coding, use plain one-hot
        contributions and return ``None``.
        """
        return custom_coding(self.field_codings.get(field_id))


@dataclass
class CategoryProbability:
    """Normalized probability for one objective category."""

    category: str
    probability: float

    def to_dict(self) -> dict:
        return {"category": self.category, "probability": self.probability}


@dataclass
class Prediction:
    """Ranked output of a single prediction."""

    prediction: str
    probability: float
    distribution: list[CategoryProbability] = field(default_factory=list)

    def to_dict(self, precision: Optional[int] = None) -> dict:
        def _fmt(value: float) -> float:
            return round(value, precision) if precision is not None else value

        return {
            "prediction": self.prediction,
            "probability": _fmt(self.probability),
            "distribution": [
                {"category": item.category, "probability": _fmt(item.probability)}
                for item in self.distribution
            ],
        }
