"""Empirical distribution backed by observed samples."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import cached_property
from typing import Any

import numpy as np
from scipy import stats

from .core import ArrayLike, DistributionSummary
from .divergence import KLDivergenceOptions, SupportsDensity
from .divergence import kl_divergence as _generic_kl
from .errors import EmpiricalDataError

logger = logging.getLogger(__name__)

SMOOTHING_ALPHA = 0.5
LATTICE_TOLERANCE = 1e-6
DUPLICATE_FRACTION = 0.25
BOOTSTRAP_METHODS = ("percentile", "basic", "bca")


@dataclass(slots=True)
class BootstrapEstimate:
    """Point estimate with a bootstrap confidence interval."""

    value: float
    confidence_interval: tuple[float, float] | None
    standard_error: float | None
    n_resamples: int
    method: str


@dataclass(frozen=True, slots=True)
class _Lattice:
    is_discrete: bool
    step: float | None = None
    origin: float | None = None


def _detect_lattice(values: np.ndarray, total: int) -> _Lattice:
    """Decide whether sorted unique ``values`` look like lattice (discrete) support."""
    unique = values.size
    if unique == 1:
        return _Lattice(True, None, float(values[0]))
    if unique == total:
        return _Lattice(False)
    diffs = np.diff(values)
    diffs = diffs[diffs > 0]
    min_diff = float(diffs.min())
    ratios = diffs / min_diff
    if np.all(np.abs(ratios - np.round(ratios)) <= LATTICE_TOLERANCE):
        return _Lattice(True, min_diff, float(values[0]))
    if 1 - unique / total > DUPLICATE_FRACTION:
        return _Lattice(True, None, float(values[0]))
    return _Lattice(False)


def _smoothed(counts: np.ndarray, total: int, alpha: float = SMOOTHING_ALPHA) -> np.ndarray:
    return (counts + alpha) / (total + alpha * counts.size)


def _discrete_entropy(sample: np.ndarray) -> float:
    """Plug-in entropy of smoothed frequencies with the Miller-Madow correction."""
    _, counts = np.unique(sample, return_counts=True)
    probabilities = _smoothed(counts, sample.size)
    entropy = float(-np.sum(probabilities * np.log(probabilities)))
    return entropy + (counts.size - 1) / (2 * sample.size)


def _continuous_entropy(sample: np.ndarray) -> float:
    try:
        return float(stats.differential_entropy(sample))
    except ValueError:
        # Too few observations for the spacing estimator; use KDE resubstitution.
        if sample.size < 2 or np.ptp(sample) == 0:
            return 0.0
        kde = stats.gaussian_kde(sample, bw_method="silverman")
        return float(-np.mean(kde.logpdf(sample)))


class EmpiricalDistribution:
    """Nonparametric distribution estimated from a finite sample.

    Samples whose unique values sit on an evenly spaced grid, or that repeat
    heavily, are treated as discrete: the mass function is the additively
    smoothed relative frequency (``alpha = 0.5``) over the observed support
    points. Otherwise the density comes from a Gaussian KDE and the CDF is the
    empirical CDF of the sorted sample.
    """

    def __init__(self, samples: ArrayLike, *, bandwidth: float | str | None = None) -> None:
        data = np.asarray(samples, dtype=float).ravel()
        if data.size == 0:
            raise EmpiricalDataError("Empirical distribution requires at least one observation.")
        non_finite = int(np.count_nonzero(~np.isfinite(data)))
        if non_finite:
            raise EmpiricalDataError(
                "Empirical samples must be finite.", details={"non_finite": non_finite}
            )
        self.samples = np.sort(data)
        self.bandwidth = bandwidth if bandwidth is not None else "silverman"
        self.unique_values, self.counts = np.unique(self.samples, return_counts=True)
        lattice = _detect_lattice(self.unique_values, self.samples.size)
        self.is_discrete = lattice.is_discrete
        self.lattice_step = lattice.step
        self.lattice_origin = lattice.origin
        self.probabilities = _smoothed(self.counts, self.samples.size)
        self._cumulative = np.cumsum(self.probabilities)
        self._moments = self._compute_moments()

    @property
    def size(self) -> int:
        return int(self.samples.size)

    @property
    def support_lower_bound(self) -> float:
        return float(self.samples[0])

    @property
    def support_upper_bound(self) -> float:
        return float(self.samples[-1])

    @property
    def range(self) -> tuple[float, float]:
        return self.support_lower_bound, self.support_upper_bound

    @cached_property
    def _kde(self) -> stats.gaussian_kde:
        return stats.gaussian_kde(self.samples, bw_method=self.bandwidth)

    # -- pointwise -----------------------------------------------------------------

    @staticmethod
    def _require_finite(name: str, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError(f"'{name}' must be finite, got {value!r}.")
        return float(value)

    def _mass_at(self, x: float) -> float:
        index = int(np.searchsorted(self.unique_values, x))
        if index < self.unique_values.size and self.unique_values[index] == x:
            return float(self.probabilities[index])
        return 0.0

    def pdf(self, x: float) -> float:
        x = self._require_finite("x", x)
        if self.is_discrete:
            return self._mass_at(x)
        return float(self._kde(x)[0])

    def log_pdf(self, x: float) -> float:
        density = self.pdf(x)
        return math.log(density) if density > 0 else -math.inf

    def cdf(self, x: float) -> float:
        if math.isnan(x):
            raise ValueError("'x' must not be NaN.")
        if x < self.support_lower_bound:
            return 0.0
        if x >= self.support_upper_bound:
            return 1.0
        if self.is_discrete:
            index = int(np.searchsorted(self.unique_values, x, side="right"))
            return float(min(max(self._cumulative[index - 1], 0.0), 1.0))
        return int(np.searchsorted(self.samples, x, side="right")) / self.samples.size

    def sf(self, x: float) -> float:
        return max(0.0, 1.0 - self.cdf(x))

    def hazard(self, x: float) -> float:
        density = self.pdf(x)
        if density == 0:
            return 0.0
        survival = self.sf(x)
        return density / survival if survival > 0 else math.inf

    def chf(self, x: float) -> float:
        survival = self.sf(x)
        return -math.log(survival) if survival > 0 else math.inf

    def quantile(self, p: float) -> float:
        if not 0 <= p <= 1:
            raise ValueError(f"'p' must lie in [0, 1], got {p!r}.")
        if p == 0:
            return self.support_lower_bound
        if p == 1:
            return self.support_upper_bound
        if self.is_discrete:
            index = int(np.searchsorted(self._cumulative, p, side="left"))
            return float(self.unique_values[min(index, self.unique_values.size - 1)])
        return float(np.quantile(self.samples, p))

    def quantile_complement(self, q: float) -> float:
        if not 0 <= q <= 1:
            raise ValueError(f"'q' must lie in [0, 1], got {q!r}.")
        return self.quantile(1 - q)

    # -- descriptive statistics ----------------------------------------------------

    def _compute_moments(self) -> dict[str, float | None]:
        values, weights = self.unique_values, self.probabilities
        mean = float(np.sum(values * weights))
        centred = values - mean
        variance = float(np.sum(weights * centred**2))
        moments: dict[str, float | None] = {"mean": mean, "variance": variance}
        if variance > 0:
            sigma = math.sqrt(variance)
            moments["skewness"] = float(np.sum(weights * centred**3)) / sigma**3
            moments["kurtosis"] = float(np.sum(weights * centred**4)) / sigma**4
        else:
            moments["skewness"] = moments["kurtosis"] = None
        return moments

    @property
    def mean(self) -> float:
        return self._moments["mean"]  # type: ignore[return-value]

    @property
    def variance(self) -> float:
        return self._moments["variance"]  # type: ignore[return-value]

    @property
    def skewness(self) -> float | None:
        return self._moments["skewness"]

    @property
    def kurtosis(self) -> float | None:
        return self._moments["kurtosis"]

    @property
    def kurtosis_excess(self) -> float | None:
        kurtosis = self.kurtosis
        return None if kurtosis is None else kurtosis - 3

    @cached_property
    def mode(self) -> float:
        if self.is_discrete:
            # argmax keeps the first maximum, i.e. the smallest tied value.
            return float(self.unique_values[int(np.argmax(self.probabilities))])
        return float(self.samples[int(np.argmax(self._kde(self.samples)))])

    @property
    def median(self) -> float:
        return self.quantile(0.5)

    @cached_property
    def entropy(self) -> float:
        """Entropy in nats (Miller-Madow for discrete, spacing estimator for continuous)."""
        if self.is_discrete:
            return _discrete_entropy(self.samples)
        return _continuous_entropy(self.samples)

    @cached_property
    def is_likely_multimodal(self) -> bool:
        """Heuristic: more than one local maximum in the mass function or KDE grid."""
        if self.samples.size < 5:
            return False
        if self.is_discrete:
            heights = self.counts / self.samples.size
            inner = heights[1:-1]
            peaks = (inner >= heights[:-2]) & (inner > heights[2:])
            return int(np.count_nonzero(peaks)) > 1
        grid_count = min(128, max(16, self.samples.size * 6))
        grid = np.linspace(self.support_lower_bound, self.support_upper_bound, grid_count)
        density = self._kde(grid)
        middle = density[1:-1]
        peaks = (middle > density[:-2]) & (middle > density[2:])
        return int(np.count_nonzero(peaks)) > 1

    # -- divergence ----------------------------------------------------------------

    def _smoothed_probability(self, value: float) -> float:
        total = self.samples.size + SMOOTHING_ALPHA * self.unique_values.size
        mass = self._mass_at(value)
        return mass if mass > 0 else SMOOTHING_ALPHA / total

    def _empirical_kl(self, other: EmpiricalDistribution) -> float | None:
        if self.is_discrete or other.is_discrete:
            support = np.union1d(self.unique_values, other.unique_values)
            divergence = 0.0
            for value in support:
                p = self._smoothed_probability(value)
                q = max(other._smoothed_probability(value), 5e-324)
                divergence += p * (math.log(p) - math.log(q))
            return divergence
        if self.samples.size < 2 or other.samples.size < 2:
            return None
        log_p = self._kde.logpdf(self.samples)
        log_q = other._kde.logpdf(self.samples)
        value = float(np.mean(log_p - log_q))
        return value if math.isfinite(value) else None

    def kl_divergence(
        self, other: SupportsDensity, options: KLDivergenceOptions | None = None
    ) -> float | None:
        """``D(self || other)``; plug-in against another sample, numeric otherwise."""
        if isinstance(other, EmpiricalDistribution):
            return self._empirical_kl(other)
        return _generic_kl(self, other, options)

    # -- bootstrap -----------------------------------------------------------------

    @staticmethod
    def _bootstrap_method(method: str) -> str:
        key = method.lower()
        if key not in BOOTSTRAP_METHODS:
            raise ValueError(
                f"Unknown bootstrap method '{method}'. Expected one of: "
                f"{', '.join(BOOTSTRAP_METHODS)}."
            )
        return "BCa" if key == "bca" else key

    @staticmethod
    def _estimate(value: float, result: Any, n_resamples: int, method: str) -> BootstrapEstimate:
        low = float(result.confidence_interval.low)
        high = float(result.confidence_interval.high)
        interval = (low, high) if math.isfinite(low) and math.isfinite(high) else None
        standard_error = float(result.standard_error)
        return BootstrapEstimate(
            value=value,
            confidence_interval=interval,
            standard_error=standard_error if math.isfinite(standard_error) else None,
            n_resamples=n_resamples,
            method=method,
        )

    def entropy_estimate(
        self,
        *,
        confidence_level: float = 0.95,
        n_resamples: int = 200,
        method: str = "percentile",
        random_state: int | np.random.Generator | None = None,
    ) -> BootstrapEstimate:
        """Bootstrap confidence interval for :attr:`entropy`."""
        scipy_method = self._bootstrap_method(method)
        statistic = _discrete_entropy if self.is_discrete else _continuous_entropy
        result = stats.bootstrap(
            (self.samples,),
            statistic,
            vectorized=False,
            n_resamples=n_resamples,
            confidence_level=confidence_level,
            method=scipy_method,
            rng=random_state,
        )
        return self._estimate(self.entropy, result, n_resamples, scipy_method)

    def kl_divergence_estimate(
        self,
        other: EmpiricalDistribution,
        *,
        confidence_level: float = 0.95,
        n_resamples: int = 200,
        method: str = "percentile",
        random_state: int | np.random.Generator | None = None,
    ) -> BootstrapEstimate | None:
        """Bootstrap confidence interval for the divergence to another sample.

        The two samples are resampled independently; BCa needs a two-sample
        jackknife and falls back to the percentile interval.
        """
        point = self._empirical_kl(other)
        if point is None:
            return None
        scipy_method = self._bootstrap_method(method)
        if scipy_method == "BCa":
            logger.debug("Two-sample bootstrap does not support BCa; using percentile.")
            scipy_method = "percentile"

        def statistic(sample_p: np.ndarray, sample_q: np.ndarray) -> float:
            value = EmpiricalDistribution(sample_p)._empirical_kl(EmpiricalDistribution(sample_q))
            return 0.0 if value is None else value

        result = stats.bootstrap(
            (self.samples, other.samples),
            statistic,
            vectorized=False,
            paired=False,
            n_resamples=n_resamples,
            confidence_level=confidence_level,
            method=scipy_method,
            rng=random_state,
        )
        return self._estimate(point, result, n_resamples, scipy_method)

    def summary(self) -> DistributionSummary:
        return DistributionSummary(
            name="empirical",
            family="empirical",
            parameters={"n": float(self.samples.size)},
            support_lower=self.support_lower_bound,
            support_upper=self.support_upper_bound,
            is_discrete=self.is_discrete,
            mean=self.mean,
            variance=self.variance,
            skewness=self.skewness,
            kurtosis=self.kurtosis,
            kurtosis_excess=self.kurtosis_excess,
            mode=self.mode,
            median=self.median,
            entropy=self.entropy,
        )

    def __repr__(self) -> str:
        kind = "discrete" if self.is_discrete else "continuous"
        return f"EmpiricalDistribution(n={self.samples.size}, {kind})"


__all__ = ["BootstrapEstimate", "EmpiricalDistribution"]
