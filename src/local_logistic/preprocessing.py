"""Tokenization and term aggregation for text, items, and categorical fields.

Turns raw input values into the ``{term: count}`` maps the evaluator scores
against each field's vocabulary. Tokenization must reproduce the analysis
used at training time exactly, so the quirks of the term pattern (tokens
may keep a trailing underscore, lone punctuation between word characters
becomes a token) are deliberate and covered by tests.

Token modes:
- ``tokens_only``: individual tokens
- ``full_terms_only``: the whole value as one term
- ``all``: tokens plus the whole value
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from .models import TokenMode

# Runs of non-space, non-underscore characters delimited by a word boundary
# or an underscore on each side. Inside the class ``\b`` is a backspace.
# Word boundaries are ASCII only, as in the training-time analysis.
_TERM_RE = re.compile(r"(\b|_)([^\b_\s]+?)(\b|_)", re.ASCII)

DEFAULT_SEPARATOR = " "


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def parse_terms(text: Optional[str], case_sensitive: bool = True) -> list[str]:
    """Split free text into terms.

    Args:
        text: Raw text. ``None`` yields no terms.
        case_sensitive: When ``False`` every term is lower-cased.

    Returns:
        Terms in order of appearance.
    """
    if text is None:
        return []
    terms = [m.group(0) for m in _TERM_RE.finditer(text)]
    if not case_sensitive:
        terms = [term.lower() for term in terms]
    return terms


def separator_regexp(item_analysis: Optional[Mapping]) -> str:
    """Return the regular expression that separates items in a value.

    An explicit ``separator_regexp`` wins; otherwise the literal
    ``separator`` (a single space by default) is escaped.
    """
    item_analysis = item_analysis or {}
    regexp = item_analysis.get("separator_regexp")
    if regexp is None:
        separator = item_analysis.get("separator") or DEFAULT_SEPARATOR
        regexp = re.escape(separator)
    return regexp


def split_items(text: Optional[str], item_analysis: Optional[Mapping] = None) -> list[str]:
    """Split an items value on the field's separator."""
    if text is None:
        return []
    return re.split(separator_regexp(item_analysis), text)


def text_terms(text: str, term_analysis: Optional[Mapping] = None) -> list[str]:
    """Terms for a text field value according to its token mode.

    In ``all`` mode the full value is appended unless it equals the first
    parsed token, so a single-word value is not counted twice. Only the
    first token is compared.

    Args:
        text: Raw field value.
        term_analysis: The field's ``term_analysis`` settings.

    Returns:
        Terms to aggregate against the field's tag cloud.
    """
    term_analysis = term_analysis or {}
    case_sensitive = bool(term_analysis.get("case_sensitive", False))
    token_mode = term_analysis.get("token_mode", TokenMode.ALL.value)

    terms: list[str] = []
    if token_mode != TokenMode.FULL_TERMS_ONLY.value:
        terms = parse_terms(text, case_sensitive)

    full_term = text if case_sensitive else text.lower()
    if token_mode == TokenMode.FULL_TERMS_ONLY.value or (
        token_mode == TokenMode.ALL.value and (not terms or full_term != terms[0])
    ):
        terms.append(full_term)
    return terms


# ---------------------------------------------------------------------------
# Unique-term aggregation
# ---------------------------------------------------------------------------


def aggregate_terms(
    tokens: Iterable[str],
    term_forms: Optional[Mapping[str, Sequence[str]]],
    vocabulary: Sequence[str],
) -> dict[str, int]:
    """Count vocabulary terms, folding alternate forms into their canonical term.

    Tokens found in ``vocabulary`` count as themselves. Tokens listed as an
    alternate form of a canonical term count towards that term. Anything
    else is discarded.

    Args:
        tokens: Parsed terms.
        term_forms: Canonical term -> alternate (stemmed) forms.
        vocabulary: Known terms of the field.

    Returns:
        Mapping of term to number of occurrences.
    """
    canonical: dict[str, str] = {}
    for term, forms in (term_forms or {}).items():
        for form in forms:
            canonical[form] = term

    known = set(vocabulary)
    counts: Counter = Counter()
    for token in tokens:
        if token in known:
            counts[token] += 1
        elif token in canonical:
            counts[canonical[token]] += 1
    return dict(counts)
