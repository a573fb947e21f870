"""
numeric.py
----------

Guards for numeric values.

- require_finite: strict check for configuration fields (raises ValueError).
- finite_or_default: lenient check for values coming from collaborators
  (UI, previous tests), falling back with a RuntimeWarning.
"""

from __future__ import annotations

import math
import numbers
import warnings
from typing import Any


def _to_float(value: Any) -> float:
    # NaN for anything that is not a real number or does not fit in a float.
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError, OverflowError):
        return math.nan


def require_finite(name: str, value: Any) -> float:
    """
    Return ``value`` as a float or raise ``ValueError``.

    Booleans, non-numbers, NaN, infinities and integers too large for a
    float are all rejected with the same exception type.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValueError(f"{name} must be a number, got {value!r}")
    number = _to_float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


def finite_or_default(value: Any, default: float, *, name: str = "value") -> float:
    """
    Return ``value`` as a float, or ``default`` if it is missing or non-finite.

    A ``RuntimeWarning`` is emitted whenever the fallback is used, so a bad
    input is visible without aborting an in-progress session.

    Parameters
    ----------
    value : Any
        Candidate number (may be None, NaN, inf, a huge int or a non-number).
    default : float
        Fallback value.
    name : str
        Name used in the warning message.
    """
    number = _to_float(value)
    if not math.isfinite(number):
        warnings.warn(
            f"Invalid {name} {value!r}; falling back to {default}",
            RuntimeWarning,
            stacklevel=3,
        )
        return float(default)
    return number
