"""Typed convenience wrappers that validate parameters before construction.

A few wrappers also carry planning helpers that solve for a parameter, e.g.
:meth:`Beta.find_alpha` (method of moments) or
:meth:`StudentT.find_degrees_of_freedom` (sample size for a one-sided test).
"""

from __future__ import annotations

import math
from collections.abc import Callable

from scipy import optimize, special, stats

from .dynamic import DynamicDistribution
from .errors import InvalidParameterError
from .sentinel import Precision

MAX_BRACKET_EXPANSIONS = 64


def _require_finite(family: str, **values: float) -> None:
    for key, value in values.items():
        if not math.isfinite(value):
            raise InvalidParameterError(family, f"'{key}' must be finite", values)


def _require_positive(family: str, **values: float) -> None:
    _require_finite(family, **values)
    for key, value in values.items():
        if value <= 0:
            raise InvalidParameterError(family, f"'{key}' must be positive", values)


def _require_probability(family: str, p: float) -> None:
    if not 0 <= p <= 1:
        raise InvalidParameterError(family, "'p' must lie in [0, 1]", {"p": p})


def _require_open_unit(**values: float) -> None:
    for key, value in values.items():
        if not 0 < value < 1:
            raise ValueError(f"'{key}' must lie strictly between 0 and 1, got {value!r}.")


def _sign_change(f_a: float, f_b: float) -> bool:
    return math.isfinite(f_a) and math.isfinite(f_b) and (f_a < 0) != (f_b < 0)


def _bracket_root(fn: Callable[[float], float], hint: float, factor: float = 2.0) -> float:
    """Expand geometrically away from ``hint`` until ``fn`` changes sign, then solve.

    ``fn`` must be defined on ``(0, inf)``; the root is polished with
    :func:`scipy.optimize.brentq`.
    """
    start = float(hint) if hint > 0 else 1.0
    value = fn(start)
    if value == 0:
        return start
    lower = upper = start
    f_lower = f_upper = value
    for _ in range(MAX_BRACKET_EXPANSIONS):
        next_upper = upper * factor
        f_next = fn(next_upper)
        if _sign_change(f_upper, f_next):
            return float(optimize.brentq(fn, upper, next_upper, xtol=1e-12, rtol=1e-12))
        upper, f_upper = next_upper, f_next

        next_lower = lower / factor
        f_next = fn(next_lower)
        if _sign_change(f_next, f_lower):
            return float(optimize.brentq(fn, next_lower, lower, xtol=1e-300, rtol=1e-12))
        lower, f_lower = next_lower, f_next
    raise ValueError(f"No root found within a factor of {factor}**{MAX_BRACKET_EXPANSIONS} of {start}.")


class Gamma(DynamicDistribution):
    """Gamma distribution with shape ``k`` and scale ``theta``."""

    def __init__(
        self, shape: float, scale: float = 1.0, *, precision: str | Precision | None = None
    ) -> None:
        _require_positive("gamma", shape=shape, scale=scale)
        self.shape = float(shape)
        self.scale = float(scale)
        super().__init__("gamma", {"shape": shape, "scale": scale}, precision=precision)


class StudentT(DynamicDistribution):
    """Student's t with ``df`` degrees of freedom (``inf`` gives the standard normal)."""

    def __init__(self, df: float, *, precision: str | Precision | None = None) -> None:
        if math.isnan(df) or df <= 0:
            raise InvalidParameterError("student_t", "'df' must be positive", {"df": df})
        self.df = float(df)
        super().__init__("student_t", {"df": df}, precision=precision)

    @staticmethod
    def find_degrees_of_freedom(
        difference_from_mean: float,
        alpha: float,
        beta: float,
        sd: float,
        hint: float = 1.0,
    ) -> int:
        """Sample size for a one-sided t test.

        Returns the number of observations needed to detect a shift of
        ``difference_from_mean`` in a population with standard deviation
        ``sd`` at significance ``alpha`` (type I error) and type II error
        ``beta``. The degrees of freedom ``v`` solve
        ``(t_v.isf(alpha) + t_v.isf(beta))**2 * (sd / difference)**2 = v + 1``;
        the result is ``ceil(v) + 1``.
        """
        _require_open_unit(alpha=alpha, beta=beta)
        if not difference_from_mean or not math.isfinite(difference_from_mean):
            raise ValueError("'difference_from_mean' must be finite and non-zero.")
        if not sd > 0 or not math.isfinite(sd):
            raise ValueError("'sd' must be finite and positive.")
        ratio = (sd / difference_from_mean) ** 2

        def excess(df: float) -> float:
            dist = stats.t(df)
            critical = dist.isf(alpha) + dist.isf(beta)
            return critical * critical * ratio - (df + 1)

        return math.ceil(_bracket_root(excess, hint)) + 1


class FisherF(DynamicDistribution):
    def __init__(
        self, df1: float, df2: float, *, precision: str | Precision | None = None
    ) -> None:
        _require_positive("fisher_f", df1=df1, df2=df2)
        self.df1 = float(df1)
        self.df2 = float(df2)
        super().__init__("fisher_f", {"df1": df1, "df2": df2}, precision=precision)


class ChiSquared(DynamicDistribution):
    def __init__(self, df: float, *, precision: str | Precision | None = None) -> None:
        _require_positive("chi_squared", df=df)
        self.df = float(df)
        super().__init__("chi_squared", {"df": df}, precision=precision)

    @staticmethod
    def find_degrees_of_freedom(
        difference_from_variance: float,
        alpha: float,
        beta: float,
        variance: float,
        hint: float = 100.0,
    ) -> int:
        """Sample size for a one-sided chi-squared test on a variance.

        With ``r = 1 + difference_from_variance / variance``, the degrees of
        freedom ``v`` solve ``chi2_v.cdf(chi2_v.isf(alpha) / r) = beta`` for an
        increase (``sf(ppf(alpha) / r)`` for a decrease). The result is
        ``int(v) + 1``.
        """
        _require_open_unit(alpha=alpha, beta=beta)
        if not variance > 0 or not math.isfinite(variance):
            raise ValueError("'variance' must be finite and positive.")
        ratio = difference_from_variance / variance
        if not ratio or not math.isfinite(ratio) or ratio <= -1:
            raise ValueError("'difference_from_variance' must be non-zero and above -variance.")
        scale = 1 + ratio

        def shortfall(df: float) -> float:
            dist = stats.chi2(df)
            if ratio > 0:
                return float(dist.cdf(dist.isf(alpha) / scale)) - beta
            return float(dist.sf(dist.ppf(alpha) / scale)) - beta

        return int(_bracket_root(shortfall, hint)) + 1


class Arcsine(DynamicDistribution):
    """Arcsine distribution on ``[min_x, max_x]``."""

    def __init__(
        self,
        min_x: float = 0.0,
        max_x: float = 1.0,
        *,
        precision: str | Precision | None = None,
    ) -> None:
        _require_finite("arcsine", min_x=min_x, max_x=max_x)
        if not min_x < max_x:
            raise InvalidParameterError(
                "arcsine", "'min_x' must be below 'max_x'", {"min_x": min_x, "max_x": max_x}
            )
        self.min_x = float(min_x)
        self.max_x = float(max_x)
        super().__init__("arcsine", {"minx": min_x, "maxx": max_x}, precision=precision)


class Normal(DynamicDistribution):
    """Gaussian with location ``mu`` and standard deviation ``sigma``."""

    def __init__(
        self, mu: float = 0.0, sigma: float = 1.0, *, precision: str | Precision | None = None
    ) -> None:
        _require_finite("normal", mu=mu)
        _require_positive("normal", sigma=sigma)
        self.mu = float(mu)
        self.sigma = float(sigma)
        super().__init__("normal", {"mean": mu, "sd": sigma}, precision=precision)


def _moment_factor(mean: float, variance: float) -> float:
    _require_open_unit(mean=mean)
    if not 0 < variance < mean * (1 - mean):
        raise ValueError(
            f"'variance' must lie in (0, mean * (1 - mean)) = (0, {mean * (1 - mean):g})."
        )
    return mean * (1 - mean) / variance - 1


class Beta(DynamicDistribution):
    def __init__(
        self, alpha: float, beta: float, *, precision: str | Precision | None = None
    ) -> None:
        _require_positive("beta", alpha=alpha, beta=beta)
        self.alpha = float(alpha)
        self.beta = float(beta)
        super().__init__("beta", {"alpha": alpha, "beta": beta}, precision=precision)

    @staticmethod
    def find_alpha(mean: float, variance: float) -> float:
        """Method-of-moments ``alpha`` for the given mean and variance."""
        return mean * _moment_factor(mean, variance)

    @staticmethod
    def find_beta(mean: float, variance: float) -> float:
        """Method-of-moments ``beta`` for the given mean and variance."""
        return (1 - mean) * _moment_factor(mean, variance)

    @staticmethod
    def find_alpha_from_beta(beta: float, x: float, probability: float) -> float:
        """``alpha`` such that ``Beta(alpha, beta).cdf(x) == probability``."""
        if not beta > 0 or not math.isfinite(beta):
            raise ValueError("'beta' must be finite and positive.")
        _require_open_unit(x=x, probability=probability)
        return _bracket_root(lambda a: special.betainc(a, beta, x) - probability, 1.0)

    @staticmethod
    def find_beta_from_alpha(alpha: float, x: float, probability: float) -> float:
        """``beta`` such that ``Beta(alpha, beta).cdf(x) == probability``."""
        if not alpha > 0 or not math.isfinite(alpha):
            raise ValueError("'alpha' must be finite and positive.")
        _require_open_unit(x=x, probability=probability)
        return _bracket_root(lambda b: special.betainc(alpha, b, x) - probability, 1.0)


class Exponential(DynamicDistribution):
    def __init__(self, rate: float = 1.0, *, precision: str | Precision | None = None) -> None:
        _require_positive("exponential", rate=rate)
        self.rate = float(rate)
        super().__init__("exponential", {"lambda": rate}, precision=precision)


class Binomial(DynamicDistribution):
    """Number of successes in ``n`` trials."""

    def __init__(self, n: int, p: float, *, precision: str | Precision | None = None) -> None:
        if not math.isfinite(n) or n < 0 or int(n) != n:
            raise InvalidParameterError("binomial", "'n' must be a non-negative integer", {"n": n})
        _require_probability("binomial", p)
        self.n = int(n)
        self.p = float(p)
        super().__init__("binomial", {"n": n, "p": p}, precision=precision)


class Poisson(DynamicDistribution):
    def __init__(self, rate: float, *, precision: str | Precision | None = None) -> None:
        _require_positive("poisson", rate=rate)
        self.rate = float(rate)
        super().__init__("poisson", {"lambda": rate}, precision=precision)


__all__ = [
    "Arcsine",
    "Beta",
    "Binomial",
    "ChiSquared",
    "Exponential",
    "FisherF",
    "Gamma",
    "Normal",
    "Poisson",
    "StudentT",
]
