"""Local Logistic -- offline predictions from BigML logistic regressions."""

__version__ = "0.1.0"

from .builder import ModelBuilder, build_model, group_coefficients, map_coefficients
from .classifier import LocalLogisticRegression, sigmoid
from .errors import LogisticError, NumericError, SchemaError, ValidationError
from .fields import FieldResolver, cast_input
from .loader import ModelHandle, ModelState, load_resource
from .models import (
    CategoryProbability,
    FieldInfo,
    LogisticModel,
    Optype,
    Prediction,
    TokenMode,
)
from .preprocessing import aggregate_terms, parse_terms, split_items, text_terms

__all__ = [
    # Core
    "LocalLogisticRegression",
    "LogisticModel",
    "Prediction",
    "CategoryProbability",
    "sigmoid",
    # Model building
    "ModelBuilder",
    "build_model",
    "map_coefficients",
    "group_coefficients",
    "FieldInfo",
    "FieldResolver",
    "Optype",
    "cast_input",
    # Tokenization
    "TokenMode",
    "parse_terms",
    "split_items",
    "text_terms",
    "aggregate_terms",
    # Loading
    "ModelHandle",
    "ModelState",
    "load_resource",
    # Errors
    "LogisticError",
    "SchemaError",
    "ValidationError",
    "NumericError",
]
