"""Local evaluation of a BigML logistic regression.

``LocalLogisticRegression`` scores an input row against every objective
category: each field adds its coefficient contribution to a weighted sum,
the logistic function turns the sum into a probability, and the
probabilities are normalized and ranked. No network access is involved;
the model is built once from its JSON resource and never mutated, so one
instance can serve concurrent predictions.

Example::

    local = LocalLogisticRegression(json.loads(Path("logreg.json").read_text()))
    result = local.predict({"age": 50, "city": "Lyon"})
    print(result.prediction, result.probability)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any, Union

from .builder import build_model
from .errors import NumericError, ValidationError
from .fields import cast_input
from .models import (
    CategoryProbability,
    FieldInfo,
    LogisticModel,
    Optype,
    Prediction,
)
from .preprocessing import aggregate_terms, split_items, text_terms

logger = logging.getLogger(__name__)

UniqueTerms = dict[str, dict[str, int]]


def sigmoid(value: float) -> float:
    """Logistic function, stable for large negative inputs."""
    if value >= 0:
        return 1.0 / (1.0 + math.exp(-value))
    exp = math.exp(value)
    return exp / (1.0 + exp)


class LocalLogisticRegression:
    """Offline predictor for a logistic regression resource.

    Args:
        model: A built ``LogisticModel`` or the decoded JSON resource.

    Raises:
        SchemaError: If the resource cannot be turned into a model.
    """

    def __init__(self, model: Union[LogisticModel, Mapping]) -> None:
        if not isinstance(model, LogisticModel):
            model = build_model(model)
        self._model = model
        self._input_set = frozenset(model.input_fields)
        self._ranks = {
            category: rank for rank, category in enumerate(model.categories)
        }

    # ------------------------------------------------------------------
    # Model accessors
    # ------------------------------------------------------------------

    @property
    def model(self) -> LogisticModel:
        return self._model

    @property
    def resource_id(self) -> str | None:
        return self._model.resource_id

    @property
    def fields(self) -> dict[str, FieldInfo]:
        return self._model.fields

    @property
    def input_fields(self) -> tuple[str, ...]:
        return self._model.input_fields

    @property
    def objective_field(self) -> str:
        return self._model.objective_field

    @property
    def missing_numerics(self) -> bool:
        return self._model.missing_numerics

    @property
    def categories(self) -> list[str]:
        """Categories that have coefficients, in coefficient order."""
        return list(self._model.coefficients)

    def coefficients(self, category: str, field_id: str) -> tuple[float, ...]:
        """Coefficient group of ``field_id`` for ``category``."""
        index = self._model.input_fields.index(field_id)
        return self._model.coefficients[category][index]

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------

    def validate_input(self, input_data: Mapping[str, Any]) -> dict[str, Any]:
        """Re-key an input row by field id and cast its values.

        ``None`` values and keys that match no field are dropped.

        Args:
            input_data: Values keyed by field id or field name.

        Returns:
            New dict of typed values keyed by field id.

        Raises:
            ValidationError: If a numeric input field is absent while the
                model does not handle missing numerics, or if a value
                cannot be cast.
        """
        if not isinstance(input_data, Mapping):
            raise ValidationError(
                f"Input data must be a mapping, got {type(input_data).__name__}"
            )
        resolver = self._model.resolver

        keyed: dict[str, Any] = {}
        for key, value in input_data.items():
            if value is None:
                continue
            field_id = resolver.resolve(key)
            if field_id is None:
                logger.debug("Ignoring unknown input field %r", key)
                continue
            keyed[field_id] = value

        if not self._model.missing_numerics:
            absent = [
                self.fields[field_id].name
                for field_id in self.input_fields
                if self.fields[field_id].optype == Optype.NUMERIC.value
                and field_id not in keyed
            ]
            if absent:
                raise ValidationError(
                    "The input data lacks some numeric fields values "
                    f"({', '.join(absent)}). To predict, input data must "
                    "contain all numeric fields values."
                )

        return cast_input(keyed, self.fields)

    def unique_terms(self, input_data: Mapping[str, Any]) -> UniqueTerms:
        """Term counts for every text, items, and categorical input value.

        Args:
            input_data: Validated values keyed by field id.

        Returns:
            ``{field_id: {term: count}}`` for the expanded fields present in
            the input. Absent fields are omitted.
        """
        terms: UniqueTerms = {}
        for field_id, value in input_data.items():
            if field_id not in self._input_set:
                continue
            field = self.fields[field_id]
            if field.optype == Optype.TEXT.value:
                tokens = text_terms(str(value), field.term_analysis)
                terms[field_id] = aggregate_terms(
                    tokens, field.term_forms, field.vocabulary
                )
            elif field.optype == Optype.ITEMS.value:
                tokens = split_items(str(value), field.item_analysis)
                counts = aggregate_terms(tokens, None, field.vocabulary)
                terms[field_id] = {item: 1 for item in counts}
            elif field.optype == Optype.CATEGORICAL.value:
                terms[field_id] = {str(value): 1}
        return terms

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def category_probability(
        self,
        input_data: Mapping[str, Any],
        unique_terms: UniqueTerms,
        category: str,
    ) -> float:
        """Unnormalized probability of ``category`` for one input row.

        Args:
            input_data: Validated values keyed by field id.
            unique_terms: Output of ``unique_terms`` for the same row.
            category: Objective category to score.

        Returns:
            ``sigmoid(sum of field contributions + bias)``.
        """
        model = self._model
        groups = dict(zip(model.input_fields, model.coefficients[category]))
        total = 0.0

        for field_id in model.input_fields:
            field = self.fields[field_id]
            coefficients = groups[field_id]

            if field.optype == Optype.NUMERIC.value:
                if field_id in input_data:
                    total += coefficients[0] * input_data[field_id]
                elif model.missing_numerics:
                    total += coefficients[1]
                continue

            if not field.is_expanded:
                continue

            terms = unique_terms.get(field_id)
            coding = None
            if field.optype == Optype.CATEGORICAL.value:
                coding = model.coding_for(field_id)

            if terms:
                total += self._terms_contribution(field, coefficients, terms, coding)
            elif field.optype != Optype.CATEGORICAL.value or (
                terms is None and field_id != model.objective_field
            ):
                total += self._missing_contribution(field, coefficients, coding)

        total += model.coefficients[category][-1][0]
        return sigmoid(total)

    @staticmethod
    def _terms_contribution(
        field: FieldInfo,
        coefficients: tuple[float, ...],
        terms: Mapping[str, int],
        coding: tuple[str, Any] | None,
    ) -> float:
        # Terms outside the vocabulary contribute nothing
        total = 0.0
        for term, occurrences in terms.items():
            try:
                index = field.vocabulary.index(term)
            except ValueError:
                continue
            if coding is None:
                total += coefficients[index] * occurrences
            else:
                for row, contributions in enumerate(coding[1]):
                    total += coefficients[row] * contributions[index] * occurrences
        return total

    @staticmethod
    def _missing_contribution(
        field: FieldInfo,
        coefficients: tuple[float, ...],
        coding: tuple[str, Any] | None,
    ) -> float:
        if coding is None:
            return coefficients[field.missing_index]
        # The last column of each contribution row holds the missing value
        return sum(
            coefficients[row] * contributions[-1]
            for row, contributions in enumerate(coding[1])
        )

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, input_data: Mapping[str, Any]) -> Prediction:
        """Predict the objective category for one input row.

        Args:
            input_data: Raw values keyed by field id or name.

        Returns:
            Prediction with the top category, its probability, and the
            full distribution sorted by decreasing probability. Exact ties
            keep the objective field's category order.

        Raises:
            ValidationError: If the input row is invalid.
            NumericError: If every category scores zero.
        """
        row = self.validate_input(input_data)
        terms = self.unique_terms(row)

        scored = [
            (category, self.category_probability(row, terms, category))
            for category in self._model.coefficients
        ]
        total = sum(probability for _, probability in scored)
        if total <= 0 or not math.isfinite(total):
            raise NumericError(
                f"Degenerate model: total probability is {total} for input {dict(row)}"
            )

        unknown_rank = len(self._ranks)
        ranked = sorted(
            (
                (probability / total, self._ranks.get(category, unknown_rank), position, category)
                for position, (category, probability) in enumerate(scored)
            ),
            key=lambda item: (-item[0], item[1], item[2]),
        )
        distribution = [
            CategoryProbability(category=category, probability=probability)
            for probability, _, _, category in ranked
        ]
        return Prediction(
            prediction=distribution[0].category,
            probability=distribution[0].probability,
            distribution=distribution,
        )

    def predict_batch(self, rows: Iterable[Mapping[str, Any]]) -> list[Prediction]:
        """Predict every row in order."""
        return [self.predict(row) for row in rows]
