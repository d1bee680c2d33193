"""Caller-facing wrapper around the distribution factory."""

from __future__ import annotations

import weakref
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import numpy as np

from .config import load_settings
from .core import DistributionSummary, finite_or_none
from .distributions.base import Family
from .distributions.vtable import DistributionVTable, as_parameters, diagnose, make
from .errors import DistributionClosedError, InvalidCombinationError
from .sentinel import Precision, resolve_precision

if TYPE_CHECKING:
    from .divergence import KLDivergenceOptions

POINTWISE: tuple[str, ...] = (
    "pdf",
    "log_pdf",
    "cdf",
    "sf",
    "hazard",
    "chf",
    "quantile",
    "quantile_complement",
)

_SLOT_NAMES = {"log_pdf": "logpdf"}


class DynamicDistribution:
    """A distribution constructed at runtime from a name and aliased parameters.

    Parameters
    ----------
    name:
        Any registered family name or alias (case-insensitive), e.g. ``"gamma"``,
        ``"StudentT"`` or ``"chi-squared"``.
    parameters:
        Mapping of parameter keys to values; keys may use any accepted alias.
    precision:
        Floating-point tier (``"float32"``, ``"float64"`` or ``"longdouble"``).
        Defaults to :attr:`dynadist.config.Settings.precision`.

    Raises
    ------
    InvalidCombinationError
        When the name is unknown, a required parameter is missing, or the
        parameters are rejected by the family.
    """

    def __init__(
        self,
        name: str,
        parameters: Mapping[str, float] | None = None,
        *,
        precision: str | Precision | None = None,
    ) -> None:
        if precision is None:
            precision = load_settings().precision
        self._precision = resolve_precision(precision)
        self.name = name
        records = as_parameters(parameters)
        vtable = make(name, records, precision=self._precision)
        if vtable is None:
            raise diagnose(name, records) or InvalidCombinationError(
                f"Failed to construct distribution '{name}'.", name=name
            )
        self._vtable = vtable
        self._finalizer = weakref.finalize(self, vtable.free)

    # -- lifecycle -----------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    def close(self) -> None:
        """Release the underlying handle; later calls are no-ops."""
        self._finalizer()

    def __enter__(self) -> DynamicDistribution:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _table(self) -> DistributionVTable:
        if self.closed:
            raise DistributionClosedError(self.name)
        return self._vtable

    # -- metadata ------------------------------------------------------------------

    @property
    def family(self) -> Family:
        return self._vtable.ctx.family

    @property
    def family_name(self) -> str:
        return self.family.name

    @property
    def parameters(self) -> dict[str, float]:
        """Resolved parameters keyed by canonical name."""
        return dict(self._vtable.ctx.parameters)

    @property
    def precision(self) -> str:
        return self._precision.name

    @property
    def vtable(self) -> DistributionVTable:
        return self._table()

    def supports(self, capability: str) -> bool:
        return self._table().supports(_SLOT_NAMES.get(capability, capability))

    # -- pointwise -----------------------------------------------------------------

    def _point(self, slot: str, x: float) -> np.floating:
        fn = getattr(self._table(), slot)
        if fn is None:
            return self._precision.nan()
        return fn(x)

    def pdf(self, x: float) -> np.floating:
        return self._point("pdf", x)

    def log_pdf(self, x: float) -> np.floating:
        return self._point("logpdf", x)

    def cdf(self, x: float) -> np.floating:
        return self._point("cdf", x)

    def sf(self, x: float) -> np.floating:
        return self._point("sf", x)

    def hazard(self, x: float) -> np.floating:
        return self._point("hazard", x)

    def chf(self, x: float) -> np.floating:
        return self._point("chf", x)

    def quantile(self, p: float) -> np.floating:
        return self._point("quantile", p)

    def quantile_complement(self, q: float) -> np.floating:
        return self._point("quantile_complement", q)

    def evaluate(self, operation: str, values: Iterable[float]) -> np.ndarray:
        """Map a pointwise operation (e.g. ``"cdf"``) over ``values``."""
        if operation not in POINTWISE:
            raise ValueError(
                f"Unknown operation '{operation}'. Expected one of: {', '.join(POINTWISE)}."
            )
        method = getattr(self, operation)
        return np.array([method(x) for x in values], dtype=self._precision.dtype)

    # -- support -------------------------------------------------------------------

    @property
    def range(self) -> tuple[np.floating, np.floating]:
        fn = self._table().range
        if fn is None:
            return self._precision.cast(-np.inf), self._precision.cast(np.inf)
        return fn()

    @property
    def support_lower_bound(self) -> np.floating:
        return self.range[0]

    @property
    def support_upper_bound(self) -> np.floating:
        return self.range[1]

    @property
    def is_discrete(self) -> bool:
        return self.family.lattice is not None or self._vtable.ctx.is_discrete

    @property
    def lattice_step(self) -> float | None:
        lattice = self.family.lattice
        return lattice[1] if lattice else None

    @property
    def lattice_origin(self) -> float | None:
        lattice = self.family.lattice
        return lattice[0] if lattice else None

    # -- descriptive statistics ----------------------------------------------------

    def _statistic(self, slot: str) -> np.floating | None:
        fn = getattr(self._table(), slot)
        if fn is None:
            return None
        value = fn()
        if not np.isfinite(value):
            return None
        return value

    @property
    def mean(self) -> np.floating | None:
        return self._statistic("mean")

    @property
    def variance(self) -> np.floating | None:
        return self._statistic("variance")

    @property
    def skewness(self) -> np.floating | None:
        return self._statistic("skewness")

    @property
    def kurtosis(self) -> np.floating | None:
        return self._statistic("kurtosis")

    @property
    def kurtosis_excess(self) -> np.floating | None:
        return self._statistic("kurtosis_excess")

    @property
    def mode(self) -> np.floating | None:
        return self._statistic("mode")

    @property
    def entropy(self) -> np.floating | None:
        return self._statistic("entropy")

    @property
    def median(self) -> np.floating:
        fn = self._table().median
        if fn is None:
            return self.quantile(0.5)
        return fn()

    # -- conveniences --------------------------------------------------------------

    def kl_divergence(self, other: Any, options: KLDivergenceOptions | None = None) -> float | None:
        """Kullback-Leibler divergence ``D(self || other)``."""
        from .divergence import kl_divergence

        self._table()
        return kl_divergence(self, other, options)

    def summary(self) -> DistributionSummary:
        lower, upper = self.range
        return DistributionSummary(
            name=self.name,
            family=self.family_name,
            parameters=self.parameters,
            precision=self.precision,
            support_lower=float(lower),
            support_upper=float(upper),
            is_discrete=self.is_discrete,
            mean=finite_or_none(self.mean),
            variance=finite_or_none(self.variance),
            skewness=finite_or_none(self.skewness),
            kurtosis=finite_or_none(self.kurtosis),
            kurtosis_excess=finite_or_none(self.kurtosis_excess),
            mode=finite_or_none(self.mode),
            median=finite_or_none(self.median),
            entropy=finite_or_none(self.entropy),
        )

    def __repr__(self) -> str:
        params = ", ".join(f"{key}={value:g}" for key, value in self.parameters.items())
        state = ", closed" if self.closed else ""
        return f"DynamicDistribution({self.name!r}, {params}, precision={self.precision!r}{state})"


__all__ = ["DynamicDistribution", "POINTWISE"]
