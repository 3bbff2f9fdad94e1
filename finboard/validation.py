"""
Input coercion helpers shared by alerts and the screener.
"""

import math
from enum import Enum
from typing import Any, Optional, TypeVar

from finboard.errors import ValidationError

E = TypeVar("E", bound=Enum)


def coerce_number(value: Any, field_name: str) -> Optional[float]:
    """
    Coerce a user-supplied number.

    Numeric strings are accepted. None and "" mean "not given".

    Raises:
        ValidationError: If the value is not a finite number
    """
    if value is None or value == "":
        return None
    # bool is an int subclass; True is not a threshold
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    return number


def coerce_choice(enum_cls: type[E], value: Any, field_name: str) -> E:
    """
    Coerce a string (or enum member) into an enum member.

    Raises:
        ValidationError: If the value is not one of the enum's values
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"{field_name} must be one of: {allowed}; got {value!r}"
        ) from None
