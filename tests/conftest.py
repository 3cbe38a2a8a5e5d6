"""Shared test fixtures for local-logistic tests."""

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

RESOURCE_ID = "logisticregression/5f0c8e2b1f386f5a9a000123"

# Flat coefficient vectors for the mixed model. Layout with missing numerics:
# age [0:2] | color [2:6] | review [6:10] | tags [10:14] | bias [14]
MIXED_FLAT = {
    "pos": [0.1, 0.5, 0.3, -0.2, 0.1, 0.4, 0.6, -0.7, 0.8, 0.05,
            0.2, 0.1, -0.1, 0.3, -0.5],
    "neg": [-0.1, 0.2, -0.3, 0.4, 0.0, -0.2, -0.6, 0.9, -0.5, 0.1,
            0.0, 0.3, 0.2, -0.4, 0.25],
    "neutral": [0.0] * 14 + [0.0],
}
MIXED_LENGTHS = [2, 4, 4, 4]


def group(flat: list[float], lengths: list[int]) -> list[list[float]]:
    """Split a flat vector into per-field groups plus the bias group."""
    groups, shift = [], 0
    for length in lengths:
        groups.append(flat[shift:shift + length])
        shift += length
    groups.append([flat[-1]])
    return groups


def mixed_fields() -> dict:
    return {
        "000000": {
            "name": "age",
            "optype": "numeric",
            "column_number": 0,
            "summary": {"mean": 40.2},
        },
        "000001": {
            "name": "color",
            "optype": "categorical",
            "column_number": 1,
            "summary": {"categories": [["red", 10], ["green", 7], ["blue", 3]]},
        },
        "000002": {
            "name": "review",
            "optype": "text",
            "column_number": 2,
            "summary": {
                "tag_cloud": [["good", 12], ["bad", 9], ["great", 4]],
                "term_forms": {"good": ["goods"], "bad": ["badly"]},
            },
            "term_analysis": {"case_sensitive": False, "token_mode": "all"},
        },
        "000003": {
            "name": "tags",
            "optype": "items",
            "column_number": 3,
            "summary": {"items": [["a", 5], ["b", 4], ["c", 2]]},
            "item_analysis": {"separator": ";"},
        },
        "000004": {
            "name": "label",
            "optype": "categorical",
            "column_number": 4,
            "summary": {"categories": [["pos", 9], ["neg", 8], ["neutral", 2]]},
        },
    }


def make_resource(
    fields: dict,
    coefficients: list,
    objective: str,
    input_fields: list[str] | None = None,
    missing_numerics: bool = False,
    field_codings=None,
    status_code: int = 5,
) -> dict:
    """Wrap model parts in a BigML API envelope."""
    info = {
        "fields": fields,
        "coefficients": coefficients,
        "missing_numerics": missing_numerics,
        "bias": True,
        "c": 1,
        "eps": 0.001,
        "normalize": False,
        "regularization": "l2",
    }
    if field_codings is not None:
        info["field_codings"] = field_codings
    obj = {
        "objective_fields": [objective],
        "dataset_field_types": {"numeric": 1, "categorical": 2, "total": 5},
        "description": "",
        "locale": "en-US",
        "status": {"code": status_code, "message": "The model has been created"},
        "logistic_regression": info,
    }
    if input_fields is not None:
        obj["input_fields"] = input_fields
    return {"resource": RESOURCE_ID, "object": obj, "code": 200, "error": None}


@pytest.fixture
def yes_no_resource() -> dict:
    """Two categories, one numeric field, missing numerics disabled."""
    fields = {
        "000000": {"name": "age", "optype": "numeric", "column_number": 0},
        "000001": {
            "name": "answer",
            "optype": "categorical",
            "column_number": 1,
            "summary": {"categories": [["yes", 10], ["no", 8]]},
        },
    }
    coefficients = [
        ["yes", [[0.02], [-1.0]]],
        ["no", [[-0.02], [1.0]]],
    ]
    return make_resource(fields, coefficients, "000001", input_fields=["000000"])


@pytest.fixture
def mixed_flat_resource() -> dict:
    """Numeric, categorical, text, and items fields with flat coefficients."""
    coefficients = [[category, list(flat)] for category, flat in MIXED_FLAT.items()]
    return make_resource(
        mixed_fields(),
        coefficients,
        "000004",
        input_fields=["000000", "000001", "000002", "000003"],
        missing_numerics=True,
    )


@pytest.fixture
def mixed_grouped_resource(mixed_flat_resource: dict) -> dict:
    """Same model as ``mixed_flat_resource`` in the grouped format."""
    resource = copy.deepcopy(mixed_flat_resource)
    resource["object"]["logistic_regression"]["coefficients"] = [
        [category, group(flat, MIXED_LENGTHS)] for category, flat in MIXED_FLAT.items()
    ]
    return resource


def coded_fields() -> dict:
    return {
        "000000": {"name": "age", "optype": "numeric", "column_number": 0},
        "000001": {
            "name": "color",
            "optype": "categorical",
            "column_number": 1,
            "summary": {"categories": [["red", 10], ["green", 7], ["blue", 3]]},
        },
        "000002": {
            "name": "label",
            "optype": "categorical",
            "column_number": 2,
            "summary": {"categories": [["pos", 9], ["neg", 8]]},
        },
    }


CONTRAST_ROWS = [[1, 0, -1, 0.5], [0, 1, -1]]


@pytest.fixture
def coded_resource() -> dict:
    """Categorical ``color`` with a two-row contrast coding (legacy list format)."""
    coefficients = [
        ["pos", [[0.1], [0.5, -0.3], [0.2]]],
        ["neg", [[-0.1], [0.0, 0.0], [0.0]]],
    ]
    field_codings = [
        {"field": "color", "coding": "contrast", "coefficients": copy.deepcopy(CONTRAST_ROWS)},
    ]
    return make_resource(
        coded_fields(), coefficients, "000002", field_codings=field_codings
    )


@pytest.fixture
def model_file(tmp_path: Path, mixed_grouped_resource: dict) -> Path:
    """Mixed model saved as a JSON file."""
    path = tmp_path / "logreg.json"
    path.write_text(json.dumps(mixed_grouped_resource), encoding="utf-8")
    return path
