"""Build the internal model from a BigML logistic regression JSON resource.

The builder is a linear pipeline: each step reads the raw payload or the
output of a previous step and returns a new value. The payload itself is
never modified. Two legacy formats are normalized on the way:

- flat coefficient vectors (one list per category) are regrouped into one
  sub-vector per input field plus a trailing bias group
- field codings given as a list of records become a map keyed by field id

Example::

    model = build_model(json.loads(Path("logreg.json").read_text()))
    model.input_fields    # ("000000", "000001", ...)
    model.coefficients    # {"yes": ((0.02,), (-1.0,)), ...}
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any, Optional

from .errors import SchemaError
from .fields import FieldResolver
from .models import (
    VOCABULARY_KEYS,
    FieldInfo,
    LogisticModel,
    Optype,
    custom_coding,
)

logger = logging.getLogger(__name__)

FINISHED = 5
DEFAULT_LOCALE = "en-US"

_RESOURCE_ID_RE = re.compile(r"^logisticregression/[a-f0-9]{24}$")

# field id -> (shift, length) inside a flat coefficient vector
Layout = dict[str, tuple[int, int]]


# ---------------------------------------------------------------------------
# Coefficient layout
# ---------------------------------------------------------------------------


def coefficient_length(
    field: FieldInfo,
    field_codings: Mapping[str, dict[str, Any]],
    missing_numerics: bool,
) -> int:
    """Number of coefficients a field owns in each category's vector.

    - one-hot (text, items, dummy-coded categorical): one per vocabulary
      entry plus a missing slot
    - custom-coded categorical: one per contribution row
    - numeric: one, plus a missing slot when missing numerics are enabled
    """
    if field.is_expanded:
        coding = None
        if field.optype == Optype.CATEGORICAL.value:
            coding = custom_coding(field_codings.get(field.field_id))
        if coding is None:
            return len(field.vocabulary) + 1
        return len(coding[1])
    return 2 if missing_numerics else 1


def map_coefficients(
    fields: Mapping[str, FieldInfo],
    input_fields: Sequence[str],
    field_codings: Mapping[str, dict[str, Any]],
    missing_numerics: bool,
) -> tuple[Layout, int]:
    """Assign each input field its contiguous slice of the flat vector.

    Args:
        fields: Model fields keyed by id.
        input_fields: Field ids in the order training laid them out.
        field_codings: Normalized field codings.
        missing_numerics: Whether numeric fields carry a missing slot.

    Returns:
        Tuple of (layout, total width without the bias coefficient).
    """
    layout: Layout = {}
    shift = 0
    for field_id in input_fields:
        length = coefficient_length(fields[field_id], field_codings, missing_numerics)
        layout[field_id] = (shift, length)
        shift += length
    return layout, shift


def group_coefficients(
    flat: Sequence[float],
    layout: Layout,
    input_fields: Sequence[str],
) -> tuple[tuple[float, ...], ...]:
    """Slice one flat coefficient vector into per-field groups plus bias."""
    groups = []
    for field_id in input_fields:
        shift, length = layout[field_id]
        groups.append(tuple(float(c) for c in flat[shift:shift + length]))
    groups.append((float(flat[-1]),))
    return tuple(groups)


# ---------------------------------------------------------------------------
# Payload parsing steps
# ---------------------------------------------------------------------------


def _unwrap(resource: Mapping) -> tuple[Mapping, Optional[str], Optional[int]]:
    """Split an API envelope into (payload, resource id, status code)."""
    if not isinstance(resource, Mapping):
        raise SchemaError(
            f"Expected a JSON object for the logistic regression, got "
            f"{type(resource).__name__}"
        )
    resource_id = resource.get("resource")
    if resource_id is not None and not _RESOURCE_ID_RE.match(str(resource_id)):
        raise SchemaError(f"Not a logistic regression resource: {resource_id}")

    payload = resource.get("object", resource)
    status = payload.get("status", resource.get("status"))
    code = status.get("code") if isinstance(status, Mapping) else None
    return payload, resource_id, code


def _vocabulary(field_id: str, optype: str, summary: Mapping) -> tuple[str, ...]:
    key = VOCABULARY_KEYS[optype]
    entries = summary.get(key)
    if entries is None:
        raise SchemaError(f"Field {field_id} ({optype}) has no summary {key!r}")
    # Summaries list [value, count] pairs
    return tuple(entry[0] for entry in entries)


def parse_fields(raw_fields: Mapping[str, Mapping]) -> dict[str, FieldInfo]:
    """Decode per-field metadata and vocabularies."""
    fields: dict[str, FieldInfo] = {}
    for field_id, info in raw_fields.items():
        optype = info.get("optype")
        if optype is None:
            raise SchemaError(f"Field {field_id} has no optype")
        summary = info.get("summary") or {}
        kwargs: dict[str, Any] = {}
        if optype in VOCABULARY_KEYS:
            kwargs["vocabulary"] = _vocabulary(field_id, optype, summary)
        if optype == Optype.TEXT.value:
            kwargs["term_forms"] = {
                term: tuple(forms)
                for term, forms in (summary.get("term_forms") or {}).items()
            }
            kwargs["term_analysis"] = dict(info.get("term_analysis") or {})
        elif optype == Optype.ITEMS.value:
            kwargs["item_analysis"] = dict(info.get("item_analysis") or {})
        fields[field_id] = FieldInfo(
            field_id=field_id,
            name=info.get("name", field_id),
            optype=optype,
            column_number=info.get("column_number", 0),
            **kwargs,
        )
    return fields


def resolve_objective(payload: Mapping, fields: Mapping[str, FieldInfo]) -> str:
    """Return the objective field id; the payload may hold a one-item list."""
    objective = payload.get("objective_fields", payload.get("objective_field"))
    if isinstance(objective, (list, tuple)):
        objective = objective[0] if objective else None
    if objective is None:
        raise SchemaError("The logistic regression has no objective field")
    if objective not in fields:
        raise SchemaError(f"Objective field {objective} is not among the model fields")
    if fields[objective].optype != Optype.CATEGORICAL.value:
        raise SchemaError(f"Objective field {objective} must be categorical")
    return objective


def input_field_order(
    declared: Optional[Sequence[str]],
    fields: Mapping[str, FieldInfo],
    objective: str,
) -> tuple[str, ...]:
    """Order in which field coefficient groups appear.

    Declared input fields are used as given. Otherwise every non-objective
    field is ordered by column number, keeping encounter order on ties.
    """
    if declared is not None:
        unknown = [field_id for field_id in declared if field_id not in fields]
        if unknown:
            raise SchemaError(f"Input fields missing from the model fields: {unknown}")
        return tuple(declared)
    candidates = [f for f in fields.values() if f.field_id != objective]
    candidates.sort(key=lambda f: f.column_number)
    return tuple(f.field_id for f in candidates)


def _pad_rows(rows: Sequence[Sequence[float]], width: int) -> list[list[float]]:
    return [list(row) + [0] * (width - len(row)) for row in rows]


def normalize_field_codings(
    raw: Any,
    fields: Mapping[str, FieldInfo],
    resolver: FieldResolver,
) -> dict[str, dict[str, Any]]:
    """Normalize field codings to ``{field_id: {coding: contributions}}``.

    Accepts the current map format (keyed by field id or name) and the
    legacy list of ``{"field", "coding", "coefficients" | "dummy_class"}``
    records. Contribution rows shorter than ``len(categories) + 1`` are
    padded with zeros.
    """
    if raw is None:
        return {}

    if isinstance(raw, Mapping):
        entries = [(key, dict(codings)) for key, codings in raw.items()]
    elif isinstance(raw, list):
        logger.debug("Converting %d field coding records to map format", len(raw))
        entries = []
        for record in raw:
            if record.get("coefficients") is None:
                contributions = record.get("dummy_class")
            else:
                contributions = record["coefficients"]
            entries.append((record["field"], {record["coding"]: contributions}))
    else:
        raise SchemaError(f"Unsupported field_codings format: {type(raw).__name__}")

    codings: dict[str, dict[str, Any]] = {}
    for key, coding_map in entries:
        field_id = resolver.resolve(key)
        if field_id is None:
            raise SchemaError(f"Field coding refers to unknown field {key!r}")
        if field_id in codings:
            raise SchemaError(f"Field {field_id} has more than one field coding entry")
        width = len(fields[field_id].vocabulary) + 1
        codings[field_id] = {
            name: _pad_rows(value, width) if isinstance(value, list) else value
            for name, value in coding_map.items()
        }
    return codings


def build_coefficient_groups(
    raw_coefficients: Sequence,
    layout: Layout,
    input_fields: Sequence[str],
    width: int,
) -> dict[str, tuple[tuple[float, ...], ...]]:
    """Check every category's coefficients against the layout and group them.

    Raises:
        SchemaError: If a vector does not match the computed layout.
    """
    if not raw_coefficients:
        raise SchemaError("The logistic regression has no coefficients")

    grouped: dict[str, tuple[tuple[float, ...], ...]] = {}
    for category, vector in raw_coefficients:
        if category in grouped:
            raise SchemaError(f"Duplicate coefficients for category {category!r}")
        if not vector:
            raise SchemaError(f"Empty coefficients for category {category!r}")

        if not isinstance(vector[0], (list, tuple)):
            # Legacy flat vector
            if len(vector) != width + 1:
                raise SchemaError(
                    f"Category {category!r} has {len(vector)} coefficients, "
                    f"the field layout needs {width + 1}"
                )
            logger.debug("Regrouping flat coefficients for category %r", category)
            grouped[category] = group_coefficients(vector, layout, input_fields)
            continue

        if len(vector) != len(input_fields) + 1:
            raise SchemaError(
                f"Category {category!r} has {len(vector)} coefficient groups, "
                f"expected {len(input_fields) + 1}"
            )
        for field_id, group in zip(input_fields, vector):
            expected = layout[field_id][1]
            if len(group) != expected:
                raise SchemaError(
                    f"Category {category!r}: field {field_id} has {len(group)} "
                    f"coefficients, expected {expected}"
                )
        if len(vector[-1]) < 1:
            raise SchemaError(f"Category {category!r} has an empty bias group")
        grouped[category] = tuple(
            tuple(float(c) for c in group) for group in vector
        )
    return grouped


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class ModelBuilder:
    """Decode a logistic regression resource into a ``LogisticModel``.

    Args:
        resource: Decoded JSON, either the API envelope (``resource``,
            ``object``, ``status``) or the bare resource object.

    Example::

        model = ModelBuilder(resource).build()
    """

    def __init__(self, resource: Mapping) -> None:
        self._resource = resource

    def build(self) -> LogisticModel:
        """Run the construction pipeline.

        Raises:
            SchemaError: If the resource is malformed, incomplete, or not
                finished. No partially built model is ever returned.
        """
        try:
            model = self._build()
        except SchemaError:
            raise
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise SchemaError(f"Malformed logistic regression resource: {e!r}") from e
        logger.info(
            "Built logistic regression %s: %d input fields, %d categories",
            model.resource_id or "<local>",
            len(model.input_fields),
            len(model.coefficients),
        )
        return model

    def _build(self) -> LogisticModel:
        payload, resource_id, status_code = _unwrap(self._resource)
        if status_code is not None and status_code != FINISHED:
            raise SchemaError(
                f"The logistic regression is not finished yet (status code {status_code})"
            )

        info = payload.get("logistic_regression")
        if not isinstance(info, Mapping):
            raise SchemaError("Could not find the 'logistic_regression' key in the resource")
        if not info.get("fields"):
            raise SchemaError("The logistic regression has no fields")
        if info.get("coefficients") is None:
            raise SchemaError("The logistic regression has no coefficients")

        missing_numerics = bool(info.get("missing_numerics", False))
        fields = parse_fields(info["fields"])
        resolver = FieldResolver({fid: f.name for fid, f in fields.items()})
        objective = resolve_objective(payload, fields)
        input_fields = input_field_order(payload.get("input_fields"), fields, objective)
        field_codings = normalize_field_codings(info.get("field_codings"), fields, resolver)

        layout, width = map_coefficients(fields, input_fields, field_codings, missing_numerics)
        fields = {
            field_id: replace(
                f,
                coefficients_shift=layout[field_id][0],
                coefficients_length=layout[field_id][1],
            ) if field_id in layout else f
            for field_id, f in fields.items()
        }
        coefficients = build_coefficient_groups(
            info["coefficients"], layout, input_fields, width
        )

        return LogisticModel(
            fields=fields,
            input_fields=input_fields,
            objective_field=objective,
            coefficients=coefficients,
            resolver=resolver,
            field_codings=field_codings,
            missing_numerics=missing_numerics,
            resource_id=resource_id,
            bias=info.get("bias"),
            c=info.get("c"),
            eps=info.get("eps"),
            normalize=info.get("normalize"),
            regularization=info.get("regularization"),
            dataset_field_types=dict(payload.get("dataset_field_types") or {}),
            description=payload.get("description") or "",
            locale=payload.get("locale") or DEFAULT_LOCALE,
        )


def build_model(resource: Mapping) -> LogisticModel:
    """Shortcut for ``ModelBuilder(resource).build()``."""
    return ModelBuilder(resource).build()
