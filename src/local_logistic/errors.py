"""Exception hierarchy for local logistic regression evaluation."""

from __future__ import annotations


class LogisticError(Exception):
    """Base class for every error raised by ``local_logistic``."""


class SchemaError(LogisticError):
    """The model JSON is malformed, incomplete, or not finished yet."""


class ValidationError(LogisticError):
    """An input row fails required-field or type constraints."""


class NumericError(LogisticError):
    """The model produced a degenerate probability distribution."""
