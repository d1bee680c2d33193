"""Built-in distribution families and registry bootstrap."""

from __future__ import annotations

import math
from collections.abc import Mapping
from pathlib import Path

from scipy import stats

from ..config import load_family_config, load_settings
from ..errors import MissingParameterError
from .base import (
    ENTRY_POINT_GROUP,
    SLOTS,
    Family,
    Parameter,
    ParameterSpec,
    clear_registry,
    find_family,
    find_param,
    get_family,
    iter_families,
    list_families,
    load_entry_points,
    register_family,
)

__all__ = [
    "ENTRY_POINT_GROUP",
    "SLOTS",
    "Family",
    "Parameter",
    "ParameterSpec",
    "STANDARD_FAMILIES",
    "clear_registry",
    "find_family",
    "find_param",
    "get_family",
    "iter_families",
    "list_families",
    "register_family",
]

NO_MOMENTS = frozenset({"mean", "variance", "skewness", "kurtosis", "kurtosis_excess"})
NO_ENTROPY = frozenset({"entropy"})
UNIT_LATTICE = (0.0, 1.0)

LOCATION = ParameterSpec("location", ("loc", "mu", "median", "x0"), default=0.0)
SCALE = ParameterSpec("scale", ("gamma", "sigma", "b"))
PROBABILITY = ParameterSpec("p", ("prob", "probability", "success", "theta"))
DEGREES_OF_FREEDOM = ParameterSpec("df", ("nu", "degreesoffreedom"))


def _constant(value: float):
    return lambda values: value


def _parameter(name: str):
    return lambda values: values[name]


def _gamma_mode(values: Mapping[str, float]) -> float:
    shape, scale = values["shape"], values["scale"]
    if shape < 1:
        raise ValueError("gamma mode is undefined for shape < 1")
    return (shape - 1) * scale


def _fisher_f_mode(values: Mapping[str, float]) -> float:
    df1, df2 = values["df1"], values["df2"]
    if df1 <= 2:
        raise ValueError("Fisher F mode requires df1 > 2")
    return df2 * (df1 - 2) / (df1 * (df2 + 2))


def _arcsine_mode(values: Mapping[str, float]) -> float:
    raise ValueError("the arcsine distribution has two modes, at minx and maxx")


def _beta_mode(values: Mapping[str, float]) -> float:
    alpha, beta = values["alpha"], values["beta"]
    if alpha <= 1 or beta <= 1:
        raise ValueError("beta mode requires alpha > 1 and beta > 1")
    return (alpha - 1) / (alpha + beta - 2)


def _chi_squared_mode(values: Mapping[str, float]) -> float:
    if values["df"] < 2:
        raise ValueError("chi-squared mode requires df >= 2")
    return values["df"] - 2


def _bernoulli_mode(values: Mapping[str, float]) -> float:
    return 0.0 if values["p"] <= 0.5 else 1.0


def _binomial_mode(values: Mapping[str, float]) -> float:
    return float(math.floor((values["n"] + 1) * values["p"]))


def _lognormal_mode(values: Mapping[str, float]) -> float:
    return math.exp(values["location"] - values["scale"] ** 2)


def _weibull_mode(values: Mapping[str, float]) -> float:
    shape, scale = values["shape"], values["scale"]
    if shape <= 1:
        return 0.0
    return scale * ((shape - 1) / shape) ** (1 / shape)


def _inverse_gamma_mode(values: Mapping[str, float]) -> float:
    return values["scale"] / (values["shape"] + 1)


def _poisson_mode(values: Mapping[str, float]) -> float:
    return float(math.floor(values["lambda"]))


def _negative_binomial_mode(values: Mapping[str, float]) -> float:
    r, p = values["successes"], values["p"]
    if r <= 1:
        return 0.0
    return float(math.floor((r - 1) * (1 - p) / p))


def _binomial_trials(values: dict[str, float]) -> dict[str, float]:
    n = values["n"]
    if not math.isfinite(n) or n < 0:
        raise ValueError("binomial n must be a finite, non-negative count")
    return {**values, "n": float(math.floor(n))}


def _exponential_rate(values: dict[str, float]) -> dict[str, float]:
    if "lambda" in values:
        return {"lambda": values["lambda"]}
    if "scale" not in values:
        raise MissingParameterError(
            "exponential", "lambda", ("lambda", "rate", "scale", "theta")
        )
    if values["scale"] == 0:
        raise ValueError("exponential scale must be non-zero")
    return {"lambda": 1.0 / values["scale"]}


def _positive_rate(values: dict[str, float]) -> dict[str, float]:
    if values["lambda"] <= 0:
        raise ValueError("poisson lambda must be positive")
    return values


STANDARD_FAMILIES = [
    Family(
        name="gamma",
        aliases=("gamma_distribution",),
        parameters=(
            ParameterSpec("shape", ("k",)),
            ParameterSpec("scale", ("theta",), default=1.0),
        ),
        builder=lambda v: stats.gamma(v["shape"], scale=v["scale"]),
        mode=_gamma_mode,
        notes="Gamma distribution (shape k, scale theta).",
    ),
    Family(
        name="student_t",
        aliases=("studentt", "students_t", "t", "t_distribution"),
        parameters=(DEGREES_OF_FREEDOM,),
        builder=lambda v: stats.t(v["df"]),
        mode=_constant(0.0),
        allow_infinite=frozenset({"df"}),
        notes="Student's t with nu degrees of freedom.",
    ),
    Family(
        name="fisher_f",
        aliases=("fisherf", "f", "f_distribution"),
        parameters=(
            ParameterSpec("df1", ("d1", "m", "degreesoffreedom1")),
            ParameterSpec("df2", ("d2", "n", "degreesoffreedom2")),
        ),
        builder=lambda v: stats.f(v["df1"], v["df2"]),
        mode=_fisher_f_mode,
        unsupported=NO_ENTROPY,
        notes="Fisher-Snedecor F distribution.",
    ),
    Family(
        name="arcsine",
        aliases=("arcsine_distribution",),
        parameters=(
            ParameterSpec("minx", ("min", "a", "lower")),
            ParameterSpec("maxx", ("max", "b", "upper")),
        ),
        builder=lambda v: stats.arcsine(loc=v["minx"], scale=v["maxx"] - v["minx"]),
        mode=_arcsine_mode,
        unsupported=NO_ENTROPY,
        notes="Arcsine distribution on [minx, maxx].",
    ),
    Family(
        name="beta",
        aliases=("beta_distribution",),
        parameters=(
            ParameterSpec("alpha", ("a", "p", "shape1")),
            ParameterSpec("beta", ("b", "q", "shape2")),
        ),
        builder=lambda v: stats.beta(v["alpha"], v["beta"]),
        mode=_beta_mode,
        unsupported=NO_ENTROPY,
        notes="Beta distribution on [0, 1].",
    ),
    Family(
        name="chi_squared",
        aliases=("chisquared", "chi2", "chi-squared", "chisquare"),
        parameters=(DEGREES_OF_FREEDOM,),
        builder=lambda v: stats.chi2(v["df"]),
        mode=_chi_squared_mode,
        unsupported=NO_ENTROPY,
        notes="Chi-squared with nu degrees of freedom.",
    ),
    Family(
        name="bernoulli",
        aliases=("bernoulli_distribution",),
        parameters=(PROBABILITY,),
        builder=lambda v: stats.bernoulli(v["p"]),
        mode=_bernoulli_mode,
        unsupported=NO_ENTROPY,
        lattice=UNIT_LATTICE,
        notes="Single trial with success probability p.",
    ),
    Family(
        name="binomial",
        aliases=("binomial_distribution",),
        parameters=(
            ParameterSpec("n", ("trials",)),
            ParameterSpec("p", ("prob", "probability", "success")),
        ),
        builder=lambda v: stats.binom(v["n"], v["p"]),
        mode=_binomial_mode,
        unsupported=NO_ENTROPY,
        lattice=UNIT_LATTICE,
        prepare=_binomial_trials,
        notes="Successes in n trials; n is truncated to a whole count.",
    ),
    Family(
        name="cauchy",
        aliases=("cauchy_distribution",),
        parameters=(LOCATION, SCALE),
        builder=lambda v: stats.cauchy(loc=v["location"], scale=v["scale"]),
        mode=_parameter("location"),
        unsupported=NO_MOMENTS,
        notes="Cauchy-Lorentz distribution; moments are undefined.",
    ),
    Family(
        name="exponential",
        aliases=("exponential_distribution", "exp"),
        parameters=(
            ParameterSpec("lambda", ("rate",), required=False),
            ParameterSpec("scale", ("theta",), required=False),
        ),
        builder=lambda v: stats.expon(scale=1.0 / v["lambda"]),
        mode=_constant(0.0),
        prepare=_exponential_rate,
        notes="Exponential with rate lambda (or lambda = 1/scale).",
    ),
    Family(
        name="extreme_value",
        aliases=("extremevalue", "gumbel", "extreme_value_distribution"),
        parameters=(
            ParameterSpec("location", ("loc", "mu"), default=0.0),
            SCALE,
        ),
        builder=lambda v: stats.gumbel_r(loc=v["location"], scale=v["scale"]),
        mode=_parameter("location"),
        unsupported=NO_ENTROPY,
        notes="Type I extreme value (Gumbel, maximum) distribution.",
    ),
    Family(
        name="geometric",
        aliases=("geometric_distribution",),
        parameters=(PROBABILITY,),
        builder=lambda v: stats.geom(v["p"], loc=-1),
        mode=_constant(0.0),
        unsupported=NO_ENTROPY,
        lattice=UNIT_LATTICE,
        notes="Failures before the first success.",
    ),
    Family(
        name="holtsmark",
        aliases=("holtsmark_distribution",),
        parameters=(LOCATION, SCALE),
        builder=lambda v: stats.levy_stable(1.5, 0.0, loc=v["location"], scale=v["scale"]),
        mode=_parameter("location"),
        unsupported=NO_ENTROPY | {"skewness", "kurtosis", "kurtosis_excess"},
        notes="Symmetric alpha-stable law with alpha = 3/2.",
    ),
    Family(
        name="normal",
        aliases=(
            "normal_distribution",
            "gauss",
            "gaussian",
            "gaussian_distribution",
            "gauss_distribution",
        ),
        parameters=(
            ParameterSpec("mean", ("mu", "location", "loc"), default=0.0),
            ParameterSpec("sd", ("sigma", "stddev", "standard_deviation", "scale"), default=1.0),
        ),
        builder=lambda v: stats.norm(loc=v["mean"], scale=v["sd"]),
        mode=_parameter("mean"),
        notes="Gaussian distribution.",
    ),
    Family(
        name="lognormal",
        aliases=("log_normal", "lognormal_distribution"),
        parameters=(
            ParameterSpec("location", ("loc", "mu"), default=0.0),
            ParameterSpec("scale", ("sigma",), default=1.0),
        ),
        builder=lambda v: stats.lognorm(v["scale"], scale=math.exp(v["location"])),
        mode=_lognormal_mode,
        notes="log X is normal with the given location and scale.",
    ),
    Family(
        name="logistic",
        aliases=("logistic_distribution",),
        parameters=(
            ParameterSpec("location", ("loc", "mu"), default=0.0),
            ParameterSpec("scale", ("s",), default=1.0),
        ),
        builder=lambda v: stats.logistic(loc=v["location"], scale=v["scale"]),
        mode=_parameter("location"),
    ),
    Family(
        name="laplace",
        aliases=("laplace_distribution", "double_exponential"),
        parameters=(
            ParameterSpec("location", ("loc", "mu"), default=0.0),
            ParameterSpec("scale", ("b",), default=1.0),
        ),
        builder=lambda v: stats.laplace(loc=v["location"], scale=v["scale"]),
        mode=_parameter("location"),
    ),
    Family(
        name="uniform",
        aliases=("uniform_distribution",),
        parameters=(
            ParameterSpec("lower", ("min", "a"), default=0.0),
            ParameterSpec("upper", ("max", "b"), default=1.0),
        ),
        builder=lambda v: stats.uniform(loc=v["lower"], scale=v["upper"] - v["lower"]),
        mode=_parameter("lower"),
        notes="Continuous uniform on [lower, upper].",
    ),
    Family(
        name="triangular",
        aliases=("triangular_distribution",),
        parameters=(
            ParameterSpec("lower", ("min", "a"), default=-1.0),
            ParameterSpec("mode", ("c",), default=0.0),
            ParameterSpec("upper", ("max", "b"), default=1.0),
        ),
        builder=lambda v: stats.triang(
            (v["mode"] - v["lower"]) / (v["upper"] - v["lower"]),
            loc=v["lower"],
            scale=v["upper"] - v["lower"],
        ),
        mode=_parameter("mode"),
        unsupported=NO_ENTROPY,
    ),
    Family(
        name="weibull",
        aliases=("weibull_distribution",),
        parameters=(
            ParameterSpec("shape", ("k", "alpha")),
            ParameterSpec("scale", ("lambda", "beta"), default=1.0),
        ),
        builder=lambda v: stats.weibull_min(v["shape"], scale=v["scale"]),
        mode=_weibull_mode,
    ),
    Family(
        name="rayleigh",
        aliases=("rayleigh_distribution",),
        parameters=(ParameterSpec("scale", ("sigma",), default=1.0),),
        builder=lambda v: stats.rayleigh(scale=v["scale"]),
        mode=_parameter("scale"),
    ),
    Family(
        name="pareto",
        aliases=("pareto_distribution",),
        parameters=(
            ParameterSpec("scale", ("xm", "x_m", "location")),
            ParameterSpec("shape", ("alpha",)),
        ),
        builder=lambda v: stats.pareto(v["shape"], scale=v["scale"]),
        mode=_parameter("scale"),
        unsupported=NO_ENTROPY,
        notes="Pareto type I with minimum xm.",
    ),
    Family(
        name="inverse_gamma",
        aliases=("inversegamma", "inv_gamma"),
        parameters=(
            ParameterSpec("shape", ("alpha", "k")),
            ParameterSpec("scale", ("beta", "theta"), default=1.0),
        ),
        builder=lambda v: stats.invgamma(v["shape"], scale=v["scale"]),
        mode=_inverse_gamma_mode,
        unsupported=NO_ENTROPY,
    ),
    Family(
        name="poisson",
        aliases=("poisson_distribution",),
        parameters=(ParameterSpec("lambda", ("mean", "mu", "rate")),),
        builder=lambda v: stats.poisson(v["lambda"]),
        mode=_poisson_mode,
        lattice=UNIT_LATTICE,
        prepare=_positive_rate,
    ),
    Family(
        name="negative_binomial",
        aliases=(
            "negativebinomial",
            "neg_binomial",
            "nbinom",
            "negative_binomial_distribution",
        ),
        parameters=(
            ParameterSpec("successes", ("r", "n")),
            ParameterSpec("p", ("prob", "probability", "success")),
        ),
        builder=lambda v: stats.nbinom(v["successes"], v["p"]),
        mode=_negative_binomial_mode,
        unsupported=NO_ENTROPY,
        lattice=UNIT_LATTICE,
        notes="Failures before the r-th success.",
    ),
]


def _register_builtin() -> None:
    for family in STANDARD_FAMILIES:
        register_family(family, overwrite=True)


def _load_config_files() -> None:
    project_root = Path(__file__).resolve().parents[3]
    config_dir = project_root / "config" / "families"
    paths = [config_dir] if config_dir.exists() else []
    load_family_config([*paths, *load_settings().family_paths])


_register_builtin()
load_entry_points()
_load_config_files()
