"""Kullback-Leibler divergence between distributions.

Works with any object exposing ``pdf``, ``sf``, ``support_lower_bound``,
``support_upper_bound`` and ``is_discrete``: :class:`~dynadist.dynamic.DynamicDistribution`,
the typed wrappers and :class:`~dynadist.empirical.EmpiricalDistribution` all qualify.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, replace
from typing import Any, Protocol

from scipy import integrate

from .errors import DynadistError
from .sentinel import FLOAT32, FLOAT64, Precision, resolve_precision

logger = logging.getLogger(__name__)

_DENSITY_FLOORS = {FLOAT32.name: 1e-9, FLOAT64.name: 1e-18}
_TAIL_CUTOFFS = {FLOAT32.name: 1e-6}


class SupportsDensity(Protocol):
    is_discrete: bool

    @property
    def support_lower_bound(self) -> Any: ...

    @property
    def support_upper_bound(self) -> Any: ...

    def pdf(self, x: float) -> Any: ...

    def sf(self, x: float) -> Any: ...


@dataclass(slots=True)
class KLDivergenceOptions:
    """Numerical settings for :func:`kl_divergence`."""

    density_floor: float = 1e-18
    discrete_tail_cutoff: float = 1e-9
    max_discrete_evaluations: int = 250_000
    integration_lower_bound: float | None = None
    integration_upper_bound: float | None = None
    quad_limit: int = 200

    @classmethod
    def automatic(cls, precision: str | Precision | None = None) -> KLDivergenceOptions:
        """Floors and cutoffs suited to a precision tier."""
        tier = resolve_precision(precision)
        return cls(
            density_floor=_DENSITY_FLOORS.get(tier.name, 1e-24),
            discrete_tail_cutoff=_TAIL_CUTOFFS.get(tier.name, 1e-9),
        )


def default_options(distribution: SupportsDensity) -> KLDivergenceOptions:
    """Automatic options with integration bounds aligned to the finite support."""
    options = KLDivergenceOptions.automatic(getattr(distribution, "precision", None))
    lower = float(distribution.support_lower_bound)
    upper = float(distribution.support_upper_bound)
    return replace(
        options,
        integration_lower_bound=lower if math.isfinite(lower) else None,
        integration_upper_bound=upper if math.isfinite(upper) else None,
    )


def _positive(value: Any) -> float:
    if value is None:
        return 0.0
    val = float(value)
    if not math.isfinite(val) or val <= 0:
        return 0.0
    return val


def _density(distribution: SupportsDensity, x: float) -> float:
    """Raw density as a float; evaluation errors count as zero."""
    try:
        return float(distribution.pdf(x))
    except (DynadistError, ValueError, ArithmeticError):
        return 0.0


def _survival(distribution: SupportsDensity, x: float) -> float:
    try:
        return _positive(distribution.sf(x))
    except (DynadistError, ValueError, ArithmeticError):
        return 0.0


def _shared_bounds(
    p: SupportsDensity, q: SupportsDensity, options: KLDivergenceOptions
) -> tuple[float, float] | None:
    lower = max(float(p.support_lower_bound), float(q.support_lower_bound))
    upper = min(float(p.support_upper_bound), float(q.support_upper_bound))
    if options.integration_lower_bound is not None:
        lower = max(lower, options.integration_lower_bound)
    if options.integration_upper_bound is not None:
        upper = min(upper, options.integration_upper_bound)
    if math.isnan(lower) or math.isnan(upper) or lower > upper:
        return None
    return lower, upper


def _normal_parameters(distribution: Any) -> tuple[float, float] | None:
    if getattr(distribution, "family_name", None) != "normal":
        return None
    params = distribution.vtable.ctx.parameters
    return float(params["mean"]), float(params["sd"])


def normal_kl(mean_p: float, sd_p: float, mean_q: float, sd_q: float) -> float:
    """Closed-form ``D(N(mean_p, sd_p) || N(mean_q, sd_q))``."""
    return (
        math.log(sd_q / sd_p)
        + (sd_p**2 + (mean_p - mean_q) ** 2) / (2 * sd_q**2)
        - 0.5
    )


def _continuous(
    p: SupportsDensity, q: SupportsDensity, options: KLDivergenceOptions
) -> float | None:
    bounds = _shared_bounds(p, q, options)
    if bounds is None or not bounds[0] < bounds[1]:
        return None
    floor = max(options.density_floor, 5e-324)
    saw_infinite = False

    def integrand(x: float) -> float:
        nonlocal saw_infinite
        density_p = _positive(_density(p, x))
        if density_p <= floor:
            return 0.0
        density_q = _density(q, x)
        if math.isinf(density_q):
            saw_infinite = True
            return 0.0
        density_q = max(_positive(density_q), floor)
        ratio = density_p / density_q
        if not math.isfinite(ratio) or ratio <= 0:
            return 0.0
        return density_p * math.log(ratio)

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", integrate.IntegrationWarning)
        value, _ = integrate.quad(integrand, bounds[0], bounds[1], limit=options.quad_limit)
    if saw_infinite:
        return math.inf
    return value if math.isfinite(value) else None


def _discrete(
    p: SupportsDensity, q: SupportsDensity, options: KLDivergenceOptions
) -> float | None:
    bounds = _shared_bounds(p, q, options)
    if bounds is None or not math.isfinite(bounds[0]):
        return None
    floor = max(options.density_floor, 5e-324)
    tail = max(options.discrete_tail_cutoff, 5e-324)
    start = math.ceil(bounds[0])
    end = math.floor(bounds[1]) if math.isfinite(bounds[1]) else None
    if end is not None and end < start:
        return None

    divergence = 0.0
    infinite = False
    index = start
    evaluations = 0
    while end is None or index <= end:
        density_p = _positive(_density(p, index))
        if density_p > floor:
            density_q = _positive(_density(q, index))
            if density_q <= 0:
                infinite = True
            else:
                ratio = density_p / max(density_q, floor)
                if math.isfinite(ratio) and ratio > 0:
                    divergence += density_p * math.log(ratio)

        evaluations += 1
        if evaluations >= options.max_discrete_evaluations:
            logger.debug("Discrete KL sum exceeded %d evaluations.", evaluations)
            return None
        if end is None and _survival(p, index) <= tail and _survival(q, index) <= tail:
            break
        index += 1

    if infinite:
        return math.inf
    return divergence


def kl_divergence(
    p: SupportsDensity,
    q: SupportsDensity,
    options: KLDivergenceOptions | None = None,
) -> float | None:
    """Return ``D(p || q)``, ``math.inf`` when ``q`` misses mass of ``p``, or ``None``.

    ``None`` means the divergence is not computable: the operands disagree on
    discreteness, share no support, or the numerical evaluation failed.
    """
    if options is None:
        options = default_options(p)
    if bool(p.is_discrete) != bool(q.is_discrete):
        return None
    if options.integration_lower_bound is None and options.integration_upper_bound is None:
        normal_p = _normal_parameters(p)
        normal_q = _normal_parameters(q)
        if normal_p is not None and normal_q is not None:
            return normal_kl(*normal_p, *normal_q)
    if p.is_discrete:
        return _discrete(p, q, options)
    return _continuous(p, q, options)


__all__ = ["KLDivergenceOptions", "SupportsDensity", "default_options", "kl_divergence", "normal_kl"]
