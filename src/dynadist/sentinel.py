"""Numeric sentinel policy and floating-point precision tiers.

Every evaluation performed at the factory layer passes through :func:`guarded`,
which converts failures into IEEE sentinels instead of exceptions:

* overflow-class failures become ``+inf``;
* domain-class failures, and anything else, become a quiet ``NaN``.

Nothing escapes :func:`guarded`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import DTypeLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Precision:
    """A floating-point tier a distribution handle evaluates in."""

    name: str
    dtype: np.dtype

    @property
    def scalar(self) -> type[np.floating]:
        return self.dtype.type

    @property
    def max_value(self) -> np.floating:
        """Largest finite value representable in this tier."""
        return np.finfo(self.dtype).max

    def cast(self, value: Any) -> np.floating:
        return self.scalar(value)

    def nan(self) -> np.floating:
        return self.scalar(np.nan)


FLOAT32 = Precision("float32", np.dtype(np.float32))
FLOAT64 = Precision("float64", np.dtype(np.float64))
LONGDOUBLE = Precision("longdouble", np.dtype(np.longdouble))

PRECISIONS: dict[str, Precision] = {
    FLOAT32.name: FLOAT32,
    FLOAT64.name: FLOAT64,
    LONGDOUBLE.name: LONGDOUBLE,
}

_PRECISION_ALIASES = {
    "float": "float32",
    "single": "float32",
    "f32": "float32",
    "double": "float64",
    "f64": "float64",
    "long_double": "longdouble",
    "extended": "longdouble",
    "float80": "longdouble",
    "float128": "longdouble",
}


def resolve_precision(value: str | Precision | DTypeLike | None = None) -> Precision:
    """Return the :class:`Precision` tier matching ``value`` (default ``float64``)."""
    if value is None:
        return FLOAT64
    if isinstance(value, Precision):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        key = _PRECISION_ALIASES.get(key, key)
        if key in PRECISIONS:
            return PRECISIONS[key]
        raise ValueError(
            f"Unknown precision '{value}'. Expected one of: {', '.join(PRECISIONS)}."
        )
    dtype = np.dtype(value)
    for tier in PRECISIONS.values():
        if tier.dtype == dtype:
            return tier
    raise ValueError(f"Unsupported precision dtype '{dtype}'.")


def guarded(compute: Callable[[], Any], dtype: DTypeLike = np.float64) -> np.floating:
    """Evaluate ``compute`` and translate any failure into a sentinel of ``dtype``."""
    scalar = np.dtype(dtype).type
    try:
        with np.errstate(all="ignore"):
            return scalar(compute())
    except OverflowError:
        return scalar(np.inf)
    except FloatingPointError as exc:
        return scalar(np.inf if "overflow" in str(exc) else np.nan)
    except (ValueError, ArithmeticError):
        return scalar(np.nan)
    except Exception as exc:  # noqa: BLE001 - sentinel boundary
        logger.debug("Unexpected failure during guarded evaluation: %r", exc)
        return scalar(np.nan)


__all__ = [
    "FLOAT32",
    "FLOAT64",
    "LONGDOUBLE",
    "PRECISIONS",
    "Precision",
    "guarded",
    "resolve_precision",
]
