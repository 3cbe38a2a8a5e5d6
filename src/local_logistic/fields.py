"""Field lookup by id or name, and casting of raw input values.

Input rows may be keyed by field id (``"000001"``) or by field name
(``"age"``). ``FieldResolver`` keeps an explicit bidirectional map built once
from the model fields so both spellings resolve to the same id.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Optional

from .errors import SchemaError, ValidationError

if TYPE_CHECKING:
    from .models import FieldInfo


class FieldResolver:
    """Bidirectional field id <-> field name map.

    Args:
        names: Mapping of field id to field name.

    Raises:
        SchemaError: If two fields share the same name.
    """

    def __init__(self, names: Mapping[str, str]) -> None:
        self._names: dict[str, str] = dict(names)
        self._ids: dict[str, str] = {}
        for field_id, name in self._names.items():
            if name in self._ids:
                raise SchemaError(
                    f"Field name {name!r} is used by both "
                    f"{self._ids[name]} and {field_id}"
                )
            self._ids[name] = field_id

    def __contains__(self, key: object) -> bool:
        return key in self._names or key in self._ids

    def __len__(self) -> int:
        return len(self._names)

    def resolve(self, key: str) -> Optional[str]:
        """Return the field id for an id or a name, ``None`` if unknown.

        Ids win over names when a name happens to look like another
        field's id.
        """
        if key in self._names:
            return key
        return self._ids.get(key)

    def name_for(self, field_id: str) -> str:
        return self._names[field_id]

    def id_for(self, name: str) -> str:
        return self._ids[name]


def _to_number(value: Any, field: FieldInfo) -> float:
    if isinstance(value, bool):
        raise ValidationError(
            f"Field {field.name!r} is numeric and cannot take a boolean value"
        )
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as e:
            raise ValidationError(
                f"Field {field.name!r} expects a number, got {value!r}"
            ) from e
    else:
        raise ValidationError(
            f"Field {field.name!r} expects a number, got {type(value).__name__}"
        )
    if not math.isfinite(number):
        raise ValidationError(
            f"Field {field.name!r} expects a finite number, got {value!r}"
        )
    return number


def _to_text(value: Any) -> str:
    # Match how the training data renders non-string categories
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def cast_input(
    input_data: Mapping[str, Any],
    fields: Mapping[str, FieldInfo],
) -> dict[str, Any]:
    """Cast values keyed by field id to the types scoring expects.

    Numeric fields become ``float``; every other optype becomes ``str``.

    Args:
        input_data: Values keyed by field id.
        fields: Model fields keyed by id.

    Returns:
        New dict with typed values.

    Raises:
        ValidationError: If a numeric value cannot be converted.
    """
    cast: dict[str, Any] = {}
    for field_id, value in input_data.items():
        field = fields[field_id]
        if field.optype == "numeric":
            cast[field_id] = _to_number(value, field)
        else:
            cast[field_id] = value if isinstance(value, str) else _to_text(value)
    return cast
