"""Conversion of raw form input into kinematic parameter values."""

from __future__ import annotations

import math
from typing import Any

import sympy as sp


def to_float(obj: Any, *, name: str = "value") -> float:
    """
    Convert `obj` to a finite real float.

    Rules:
    - Numbers (excluding bool) are cast with float().
    - Strings are stripped, then:
        1) parsed with float(s) (covers "0.1", "1e-3", "-.5"),
        2) else parsed as a SymPy expression and evaluated ("1/10", "sqrt(2)/4").

    Raises
    ------
    ValueError
        If the input is empty, non-numeric, complex-valued, or not finite.
    """
    if isinstance(obj, bool):
        raise ValueError(f"{name}: booleans are not valid numbers.")

    if isinstance(obj, str):
        value = _parse_text(obj, name)
    else:
        try:
            value = float(obj)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{name}: could not convert {obj!r} to a number.") from e

    if not math.isfinite(value):
        raise ValueError(f"{name}: {obj!r} is not finite.")
    return value


def _parse_text(text: str, name: str) -> float:
    s = text.strip()
    if s == "":
        raise ValueError(f"{name}: cannot convert an empty string.")

    try:
        return float(s)
    except ValueError:
        pass

    try:
        val = complex(sp.sympify(s).evalf())
    except Exception as e:
        raise ValueError(f"{name}: could not convert {text!r} to a number.") from e
    if val.imag != 0:
        raise ValueError(f"{name}: {text!r} is not a real number.")
    return val.real


def to_number(obj: Any, *, name: str = "value") -> float:
    """Convert a service or config value to a finite float with ``float()`` only.

    Unlike :func:`to_float`, text is never handed to SymPy, so values that
    arrive over the network or from the environment are not evaluated.
    """
    if isinstance(obj, bool):
        raise ValueError(f"{name}: booleans are not valid numbers.")
    try:
        value = float(obj.strip() if isinstance(obj, str) else obj)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name}: {obj!r} is not a plain number.") from e
    if not math.isfinite(value):
        raise ValueError(f"{name}: {obj!r} is not finite.")
    return value
