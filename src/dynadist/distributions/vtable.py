"""Distribution handles, bound operation tables and the construct-by-name factory.

:func:`make` is the single construction point. It resolves a family by name,
looks up every logical parameter under its aliases, freezes the SciPy backend
and binds one thunk per supported capability. It never raises: every failure
is reported as ``None`` and logged at DEBUG level. Once built, every bound
operation returns a scalar of the requested precision tier, with evaluation
failures already translated by :func:`dynadist.sentinel.guarded`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import stats

from ..errors import (
    InvalidCombinationError,
    InvalidParameterError,
    MissingParameterError,
    UnknownDistributionError,
)
from ..sentinel import Precision, guarded, resolve_precision
from .base import SLOTS, Family, Frozen, Parameter, find_family

logger = logging.getLogger(__name__)

PointFn = Callable[[float], np.floating]
StatFn = Callable[[], np.floating]
RangeFn = Callable[[], tuple[np.floating, np.floating]]
ParamsLike = Sequence[Parameter] | Sequence[tuple[str, float]] | Mapping[str, float]


class DistributionHandle:
    """Owns one frozen distribution plus its resolved parameters."""

    __slots__ = ("family", "parameters", "precision", "_frozen")

    def __init__(
        self,
        family: Family,
        parameters: Mapping[str, float],
        frozen: Frozen,
        precision: Precision,
    ) -> None:
        self.family = family
        self.parameters = dict(parameters)
        self.precision = precision
        self._frozen: Frozen | None = frozen

    @property
    def frozen(self) -> Frozen | None:
        return self._frozen

    @property
    def released(self) -> bool:
        return self._frozen is None

    @property
    def is_discrete(self) -> bool:
        if self._frozen is None:
            return False
        return isinstance(self._frozen.dist, stats.rv_discrete)

    def release(self) -> bool:
        """Drop the frozen distribution; return ``False`` if it was already gone."""
        if self._frozen is None:
            return False
        self._frozen = None
        return True

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return (
            f"DistributionHandle({self.family.name!r}, {self.parameters!r}, "
            f"precision={self.precision.name!r}, {state})"
        )


@dataclass(frozen=True, slots=True)
class DistributionVTable:
    """Bound operations for one handle; ``None`` marks an unsupported capability."""

    ctx: DistributionHandle
    pdf: PointFn | None
    logpdf: PointFn | None
    cdf: PointFn | None
    sf: PointFn | None
    hazard: PointFn | None
    chf: PointFn | None
    quantile: PointFn | None
    quantile_complement: PointFn | None
    range: RangeFn | None
    mean: StatFn | None
    variance: StatFn | None
    skewness: StatFn | None
    kurtosis: StatFn | None
    kurtosis_excess: StatFn | None
    mode: StatFn | None
    median: StatFn | None
    entropy: StatFn | None
    free: Callable[[], None]

    def supports(self, slot: str) -> bool:
        return getattr(self, slot) is not None

    def supported(self) -> tuple[str, ...]:
        return tuple(slot for slot in SLOTS if self.supports(slot))


def _density(frozen: Frozen) -> Callable[[Any], Any]:
    return frozen.pmf if isinstance(frozen.dist, stats.rv_discrete) else frozen.pdf


def _argument(precision: Precision, x: float) -> np.float64:
    # Round to the tier first; the backend itself evaluates in double precision.
    return np.float64(precision.cast(x))


def _pointwise(evaluate: Callable[[Frozen, np.float64], Any]):
    def factory(handle: DistributionHandle) -> PointFn:
        precision = handle.precision

        def thunk(x: float) -> np.floating:
            frozen = handle.frozen
            if frozen is None:
                return precision.nan()
            return guarded(lambda: evaluate(frozen, _argument(precision, x)), precision.dtype)

        return thunk

    return factory


def _statistic(evaluate: Callable[[DistributionHandle, Frozen], Any]):
    def factory(handle: DistributionHandle) -> StatFn:
        precision = handle.precision

        def thunk() -> np.floating:
            frozen = handle.frozen
            if frozen is None:
                return precision.nan()
            return guarded(lambda: evaluate(handle, frozen), precision.dtype)

        return thunk

    return factory


def _hazard(handle: DistributionHandle) -> PointFn:
    precision = handle.precision
    dtype = precision.dtype

    def thunk(x: float) -> np.floating:
        frozen = handle.frozen
        if frozen is None:
            return precision.nan()
        survival = guarded(lambda: frozen.sf(_argument(precision, x)), dtype)
        density = guarded(lambda: _density(frozen)(_argument(precision, x)), dtype)
        if density == 0:
            return precision.cast(0)
        with np.errstate(all="ignore"):
            if density > survival * precision.max_value:
                return precision.nan()
        return guarded(lambda: density / survival, dtype)

    return thunk


def _range(handle: DistributionHandle) -> RangeFn:
    precision = handle.precision

    def thunk() -> tuple[np.floating, np.floating]:
        frozen = handle.frozen
        if frozen is None:
            return precision.nan(), precision.nan()
        lower, upper = frozen.support()
        return guarded(lambda: lower, precision.dtype), guarded(lambda: upper, precision.dtype)

    return thunk


def _excess_kurtosis(frozen: Frozen) -> Any:
    return frozen.stats(moments="k")


_THUNKS: dict[str, Callable[[DistributionHandle], Any]] = {
    "pdf": _pointwise(lambda frozen, x: _density(frozen)(x)),
    "logpdf": _pointwise(lambda frozen, x: np.log(_density(frozen)(x))),
    "cdf": _pointwise(lambda frozen, x: frozen.cdf(x)),
    "sf": _pointwise(lambda frozen, x: frozen.sf(x)),
    "hazard": _hazard,
    "chf": _pointwise(lambda frozen, x: -np.log(frozen.sf(x))),
    "quantile": _pointwise(lambda frozen, p: frozen.ppf(p)),
    "quantile_complement": _pointwise(lambda frozen, q: frozen.isf(q)),
    "range": _range,
    "mean": _statistic(lambda handle, frozen: frozen.mean()),
    "variance": _statistic(lambda handle, frozen: frozen.var()),
    "skewness": _statistic(lambda handle, frozen: frozen.stats(moments="s")),
    "kurtosis": _statistic(lambda handle, frozen: _excess_kurtosis(frozen) + 3),
    "kurtosis_excess": _statistic(lambda handle, frozen: _excess_kurtosis(frozen)),
    "mode": _statistic(lambda handle, frozen: handle.family.mode(handle.parameters)),
    "median": _statistic(lambda handle, frozen: frozen.median()),
    "entropy": _statistic(lambda handle, frozen: frozen.entropy()),
}


def _free(handle: DistributionHandle) -> Callable[[], None]:
    def free() -> None:
        if not handle.release():
            logger.debug("Ignoring repeated free of %s handle.", handle.family.name)

    return free


def _bind(handle: DistributionHandle) -> DistributionVTable:
    family = handle.family
    slots = {
        slot: factory(handle) if family.supports(slot) else None
        for slot, factory in _THUNKS.items()
    }
    return DistributionVTable(ctx=handle, free=_free(handle), **slots)


def as_parameters(params: ParamsLike | None) -> list[Parameter]:
    """Normalise a mapping or a sequence of pairs into :class:`Parameter` records."""
    if params is None:
        return []
    if isinstance(params, Mapping):
        return [Parameter(str(key), value) for key, value in params.items()]
    records: list[Parameter] = []
    for item in params:
        if isinstance(item, Parameter):
            records.append(item)
        else:
            key, value = item
            records.append(Parameter(str(key), value))
    return records


def _construct(
    name: str,
    params: Sequence[Parameter],
    count: int | None,
    precision: Precision,
) -> DistributionHandle:
    family = find_family(name)
    if family is None:
        raise UnknownDistributionError(name)
    values = family.resolve(params, count)
    resolved, frozen = family.build(values)
    return DistributionHandle(family, resolved, frozen, precision)


def _failure_reason(exc: InvalidCombinationError) -> str:
    if isinstance(exc, UnknownDistributionError):
        return "unknown distribution"
    if isinstance(exc, MissingParameterError):
        return "missing parameter"
    return "invalid parameters"


def make(
    name: str,
    params: ParamsLike | None = None,
    count: int | None = None,
    *,
    precision: str | Precision = "float64",
) -> DistributionVTable | None:
    """Construct a distribution by name; return ``None`` on any failure."""
    try:
        tier = resolve_precision(precision)
        records = as_parameters(params)
    except (TypeError, ValueError) as exc:
        logger.debug("make(%r) rejected its arguments: %s", name, exc)
        return None
    try:
        handle = _construct(name, records, count, tier)
    except InvalidCombinationError as exc:
        logger.debug("make(%r) failed (%s): %s", name, _failure_reason(exc), exc.message)
        return None
    except Exception as exc:  # noqa: BLE001 - the factory boundary never raises
        logger.debug("make(%r) failed (invalid parameters): %r", name, exc)
        return None
    return _bind(handle)


def make_float32(
    name: str, params: ParamsLike | None = None, count: int | None = None
) -> DistributionVTable | None:
    return make(name, params, count, precision="float32")


def make_float64(
    name: str, params: ParamsLike | None = None, count: int | None = None
) -> DistributionVTable | None:
    return make(name, params, count, precision="float64")


def make_longdouble(
    name: str, params: ParamsLike | None = None, count: int | None = None
) -> DistributionVTable | None:
    return make(name, params, count, precision="longdouble")


def diagnose(
    name: str,
    params: ParamsLike | None = None,
    count: int | None = None,
) -> InvalidCombinationError | None:
    """Explain why :func:`make` would reject ``name``/``params`` (``None`` if it would not)."""
    try:
        handle = _construct(name, as_parameters(params), count, resolve_precision(None))
    except InvalidCombinationError as exc:
        return exc
    except Exception as exc:  # noqa: BLE001
        return InvalidParameterError(name, str(exc) or type(exc).__name__)
    handle.release()
    return None


__all__ = [
    "DistributionHandle",
    "DistributionVTable",
    "as_parameters",
    "diagnose",
    "make",
    "make_float32",
    "make_float64",
    "make_longdouble",
]
