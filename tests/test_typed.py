import math

import pytest
from scipy import stats

from dynadist import DynamicDistribution
from dynadist.errors import InvalidParameterError
from dynadist.typed import (
    Arcsine,
    Beta,
    Binomial,
    ChiSquared,
    Exponential,
    FisherF,
    Gamma,
    Normal,
    Poisson,
    StudentT,
)


def test_gamma_wrapper() -> None:
    dist = Gamma(2.5, 1.2)
    assert isinstance(dist, DynamicDistribution)
    assert dist.shape == 2.5 and dist.scale == 1.2
    assert dist.family_name == "gamma"
    assert dist.pdf(2.0) == pytest.approx(stats.gamma(2.5, scale=1.2).pdf(2.0))
    assert Gamma(3.0).mean == pytest.approx(3.0)


def test_student_t_and_fisher_f() -> None:
    t = StudentT(5.0)
    assert t.variance == pytest.approx(5.0 / 3.0)
    f = FisherF(5.0, 10.0)
    assert f.mean == pytest.approx(1.25)
    assert f.entropy is None


def test_arcsine_defaults_and_ordering() -> None:
    dist = Arcsine()
    assert dist.cdf(0.5) == pytest.approx(0.5)
    assert dist.range == (0.0, 1.0)
    with pytest.raises(InvalidParameterError, match="below"):
        Arcsine(1.0, 1.0)


def test_normal_beta_exponential_poisson() -> None:
    assert Normal(1.0, 2.0).variance == pytest.approx(4.0)
    assert Beta(2.0, 2.0).mean == pytest.approx(0.5)
    assert Exponential(4.0).mean == pytest.approx(0.25)
    assert Exponential().rate == 1.0
    assert Poisson(2.5).variance == pytest.approx(2.5)


def test_binomial_requires_whole_trials() -> None:
    dist = Binomial(10, 0.3)
    assert dist.n == 10
    assert dist.mean == pytest.approx(3.0)
    with pytest.raises(InvalidParameterError):
        Binomial(2.5, 0.3)
    with pytest.raises(InvalidParameterError):
        Binomial(math.inf, 0.3)
    with pytest.raises(InvalidParameterError):
        Binomial(10, 1.5)


@pytest.mark.parametrize(
    "factory",
    [
        lambda: Gamma(-1.0),
        lambda: Gamma(2.0, math.nan),
        lambda: StudentT(0.0),
        lambda: FisherF(1.0, -2.0),
        lambda: Normal(0.0, 0.0),
        lambda: Normal(math.inf, 1.0),
        lambda: Beta(0.0, 1.0),
        lambda: Exponential(-2.0),
        lambda: Poisson(0.0),
    ],
)
def test_invalid_arguments_are_rejected(factory) -> None:
    with pytest.raises(InvalidParameterError):
        factory()


def test_student_t_accepts_infinite_degrees_of_freedom() -> None:
    dist = StudentT(math.inf)
    assert dist.pdf(0.0) == pytest.approx(1.0 / math.sqrt(2.0 * math.pi))
    with pytest.raises(InvalidParameterError):
        StudentT(math.nan)


def test_chi_squared_wrapper() -> None:
    dist = ChiSquared(4.0)
    assert dist.family_name == "chi_squared"
    assert dist.mean == pytest.approx(4.0)
    with pytest.raises(InvalidParameterError):
        ChiSquared(math.inf)


def test_beta_moment_finders() -> None:
    assert Beta.find_alpha(0.4, 0.04) == pytest.approx(2.0)
    assert Beta.find_beta(0.4, 0.04) == pytest.approx(3.0)
    fitted = Beta(Beta.find_alpha(0.25, 0.01), Beta.find_beta(0.25, 0.01))
    assert fitted.mean == pytest.approx(0.25)
    assert fitted.variance == pytest.approx(0.01)
    with pytest.raises(ValueError):
        Beta.find_alpha(0.5, 0.3)
    with pytest.raises(ValueError):
        Beta.find_beta(1.5, 0.01)


def test_beta_quantile_finders() -> None:
    probability = stats.beta(2.0, 3.0).cdf(0.4)
    assert Beta.find_alpha_from_beta(3.0, 0.4, probability) == pytest.approx(2.0, rel=1e-8)
    assert Beta.find_beta_from_alpha(2.0, 0.4, probability) == pytest.approx(3.0, rel=1e-8)
    probability = stats.beta(0.5, 7.5).cdf(0.05)
    assert Beta.find_alpha_from_beta(7.5, 0.05, probability) == pytest.approx(0.5, rel=1e-8)
    with pytest.raises(ValueError):
        Beta.find_alpha_from_beta(3.0, 1.2, 0.5)


def test_student_t_sample_size() -> None:
    difference, alpha, beta, sd = 0.5, 0.05, 0.1, 1.0
    n = StudentT.find_degrees_of_freedom(difference, alpha, beta, sd)
    assert isinstance(n, int)
    assert 34 <= n <= 38

    def excess(df: float) -> float:
        critical = stats.t(df).isf(alpha) + stats.t(df).isf(beta)
        return critical**2 * (sd / difference) ** 2 - (df + 1)

    # The solved degrees of freedom lie in (n - 2, n - 1].
    assert excess(n - 2) > 0
    assert excess(n - 1) <= 0
    assert StudentT.find_degrees_of_freedom(difference, alpha, beta, sd, hint=200.0) == n
    with pytest.raises(ValueError):
        StudentT.find_degrees_of_freedom(0.0, alpha, beta, sd)
    with pytest.raises(ValueError):
        StudentT.find_degrees_of_freedom(difference, 1.5, beta, sd)


def test_chi_squared_sample_size() -> None:
    alpha, beta, variance = 0.05, 0.1, 4.0
    n = ChiSquared.find_degrees_of_freedom(2.0, alpha, beta, variance)

    def shortfall(df: float) -> float:
        dist = stats.chi2(df)
        return dist.cdf(dist.isf(alpha) / 1.5) - beta

    # The solved degrees of freedom lie in [n - 1, n).
    assert shortfall(n - 1) >= 0
    assert shortfall(n) < 0

    smaller = ChiSquared.find_degrees_of_freedom(-2.0, alpha, beta, variance)

    def decrease_shortfall(df: float) -> float:
        dist = stats.chi2(df)
        return dist.sf(dist.ppf(alpha) / 0.5) - beta

    assert decrease_shortfall(smaller - 1) >= 0
    assert decrease_shortfall(smaller) < 0
    with pytest.raises(ValueError):
        ChiSquared.find_degrees_of_freedom(-4.0, alpha, beta, variance)
