"""Immutable value types for explorer selections, domains and datasets.

Every change to the user's selection produces a new :class:`Options` value, so
an in-flight request can hold on to the snapshot it was issued with while the
form keeps changing.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, fields, replace as _dc_replace
from enum import Enum
from typing import Any, Optional

import numpy as np

from .input_convert import to_float, to_number


class Gpd(Enum):
    """GPD family selectable in the form."""

    E = "GPD_E"
    H = "GPD_H"

    @classmethod
    def parse(cls, value: Gpd | str) -> Gpd:
        """Accept a member, its wire value (``"GPD_E"``) or its name (``"E"``)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.upper() in (member.value, member.name):
                return member
        raise ValueError(f"Unknown GPD {value!r}; expected one of {[m.value for m in cls]}.")

    @property
    def label(self) -> str:
        return self.value


class Model(Enum):
    """Model variant; ``value`` is the name used in service routes."""

    BKM = "bkm"
    UVA = "uva"

    @classmethod
    def parse(cls, value: Model | str) -> Model:
        """Accept a member, a route name (``"bkm"``), a name or a label (``"BKM Model"``)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text.endswith(" model"):
            text = text[: -len(" model")].strip()
        for member in cls:
            if text == member.value:
                return member
        raise ValueError(f"Unknown model {value!r}; expected one of {[m.label for m in cls]}.")

    @property
    def label(self) -> str:
        return f"{self.name} Model"


@dataclass(frozen=True)
class Options:
    """One complete selection of GPD, model and kinematics.

    Parameters
    ----------
    gpd : Gpd
        Selected GPD family.
    model : Model
        Selected model variant.
    xbj : float
        Bjorken x; must be one of the resolved xbj choices.
    t : float
        Momentum transfer; must be one of the resolved t choices.
    q2 : float
        Photon virtuality; free input within the resolved q2 range.
    """

    gpd: Gpd = Gpd.E
    model: Model = Model.BKM
    xbj: float = 0.001
    t: float = -0.1
    q2: float = 0.1

    def __post_init__(self) -> None:
        object.__setattr__(self, "gpd", Gpd.parse(self.gpd))
        object.__setattr__(self, "model", Model.parse(self.model))
        for name in ("xbj", "t", "q2"):
            object.__setattr__(self, name, to_float(getattr(self, name), name=name))

    def replace(self, **changes: Any) -> Options:
        """Return a new snapshot with ``changes`` applied."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise TypeError(f"Unknown option field(s): {sorted(unknown)}")
        return _dc_replace(self, **changes)

    def as_dict(self) -> dict[str, Any]:
        """Return a plain mapping using wire values for the enums."""
        return {
            "gpd": self.gpd.value,
            "model": self.model.value,
            "xbj": self.xbj,
            "t": self.t,
            "q2": self.q2,
        }


DEFAULT_XBJ_CHOICES: tuple[float, ...] = (
    0.0001, 0.0002, 0.0004, 0.0006, 0.0008,
    0.001, 0.002, 0.004, 0.006, 0.008,
    0.01, 0.02, 0.04, 0.06, 0.08,
    0.1, 0.2, 0.4, 0.6,
)
DEFAULT_T_CHOICES: tuple[float, ...] = tuple(-(n + 1) / 10 for n in range(19))
DEFAULT_OPTIONS = Options()

Q2Range = tuple[float, float]


def _choices(values: Iterable[Any], name: str) -> tuple[float, ...]:
    out = tuple(to_number(v, name=name) for v in values)
    if not out:
        raise ValueError(f"{name} must not be empty.")
    return out


def _q2_range(value: Optional[Sequence[Any]]) -> Optional[Q2Range]:
    if value is None:
        return None
    items = list(value)
    if len(items) != 2:
        raise ValueError(f"q2 range must have exactly two entries, got {value!r}.")
    lo, hi = (to_number(v, name="q2 range") for v in items)
    if lo > hi:
        raise ValueError(f"q2 range minimum {lo} exceeds maximum {hi}.")
    return (lo, hi)


def find_choice(choices: Sequence[float], value: float) -> Optional[float]:
    """Return the entry of ``choices`` equal to ``value`` (up to float noise)."""
    for choice in choices:
        if math.isclose(choice, value, rel_tol=1e-9, abs_tol=1e-12):
            return choice
    return None


def keep_or_first(choices: Sequence[float], current: float) -> float:
    """Keep ``current`` when it is still a valid choice, else use the first one."""
    match = find_choice(choices, current)
    return choices[0] if match is None else match


def format_q2_hint(q2_range: Optional[Q2Range]) -> str:
    if q2_range is None:
        return ""
    return f"({q2_range[0]:g} to {q2_range[1]:g})"


@dataclass(frozen=True)
class Domain:
    """Valid choices for the dependent kinematic parameters.

    ``q2_range`` is ``None`` until an xbj or t resolution has reported one.
    """

    xbj_choices: tuple[float, ...] = DEFAULT_XBJ_CHOICES
    t_choices: tuple[float, ...] = DEFAULT_T_CHOICES
    q2_range: Optional[Q2Range] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "xbj_choices", _choices(self.xbj_choices, "xbj choices"))
        object.__setattr__(self, "t_choices", _choices(self.t_choices, "t choices"))
        object.__setattr__(self, "q2_range", _q2_range(self.q2_range))

    @property
    def q2_hint(self) -> str:
        """Human-readable q2 range shown next to the q2 input."""
        return format_q2_hint(self.q2_range)

    def q2_contains(self, q2: float) -> bool:
        if self.q2_range is None:
            return True
        lo, hi = self.q2_range
        return lo <= q2 <= hi

    def clamp_q2(self, q2: float) -> float:
        if self.q2_range is None:
            return q2
        lo, hi = self.q2_range
        return min(max(q2, lo), hi)


DEFAULT_DOMAIN = Domain()


@dataclass(frozen=True)
class XbjResolution:
    """Domain update produced by choosing an xbj value."""

    t_choices: tuple[float, ...]
    q2_range: Q2Range

    def __post_init__(self) -> None:
        object.__setattr__(self, "t_choices", _choices(self.t_choices, "t choices"))
        object.__setattr__(self, "q2_range", _q2_range(self.q2_range))


@dataclass(frozen=True)
class TResolution:
    """Domain update produced by choosing a t value."""

    xbj_choices: tuple[float, ...]
    q2_range: Q2Range

    def __post_init__(self) -> None:
        object.__setattr__(self, "xbj_choices", _choices(self.xbj_choices, "xbj choices"))
        object.__setattr__(self, "q2_range", _q2_range(self.q2_range))


DATA_COLUMNS: tuple[str, ...] = ("x", "u", "d", "xu", "xd")


@dataclass(frozen=True)
class DataPoint:
    """One row of a computed GPD table."""

    x: float
    u: float
    d: float
    xu: float
    xd: float

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> DataPoint:
        missing = [c for c in DATA_COLUMNS if c not in row]
        if missing:
            raise ValueError(f"Data point is missing column(s) {missing}: {row!r}")
        return cls(**{c: to_number(row[c], name=c) for c in DATA_COLUMNS})

    def as_dict(self) -> dict[str, float]:
        return {c: getattr(self, c) for c in DATA_COLUMNS}


Dataset = tuple[DataPoint, ...]


def make_dataset(rows: Iterable[Mapping[str, Any] | DataPoint]) -> Dataset:
    """Build a dataset preserving the row order of ``rows``."""
    return tuple(r if isinstance(r, DataPoint) else DataPoint.from_mapping(r) for r in rows)


def dataset_columns(dataset: Dataset) -> dict[str, np.ndarray]:
    """Return ``{column: ndarray}`` for plotting, in dataset order."""
    return {
        c: np.fromiter((getattr(p, c) for p in dataset), dtype=float, count=len(dataset))
        for c in DATA_COLUMNS
    }
