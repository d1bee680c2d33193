import math

import numpy as np
import pytest

from dynadist import DynamicDistribution
from dynadist.empirical import BootstrapEstimate, EmpiricalDistribution
from dynadist.errors import EmpiricalDataError

COUNTS = [0, 1, 1, 2, 2, 2, 3]


def test_discrete_sample_uses_smoothed_frequencies() -> None:
    dist = EmpiricalDistribution(COUNTS)
    assert dist.is_discrete
    assert dist.lattice_step == 1.0
    assert dist.lattice_origin == 0.0
    np.testing.assert_allclose(dist.probabilities, np.array([1.5, 2.5, 3.5, 1.5]) / 9)
    assert dist.pdf(2.0) == pytest.approx(3.5 / 9)
    assert dist.pdf(2.5) == 0.0
    assert dist.log_pdf(2.5) == -math.inf
    assert dist.cdf(1.0) == pytest.approx(4 / 9)
    assert dist.cdf(-1.0) == 0.0
    assert dist.cdf(3.0) == 1.0
    assert dist.sf(1.0) == pytest.approx(5 / 9)


def test_discrete_statistics() -> None:
    dist = EmpiricalDistribution(COUNTS)
    assert dist.quantile(0.5) == 2.0
    assert dist.median == 2.0
    assert dist.quantile(0.0) == 0.0
    assert dist.quantile(1.0) == 3.0
    assert dist.quantile_complement(0.5) == 2.0
    assert dist.mode == 2.0
    assert dist.mean == pytest.approx(14 / 9)
    probabilities = np.array([1.5, 2.5, 3.5, 1.5]) / 9
    plug_in = -float(np.sum(probabilities * np.log(probabilities)))
    assert dist.entropy == pytest.approx(plug_in + 3 / 14)


def test_continuous_sample() -> None:
    rng = np.random.default_rng(42)
    sample = rng.normal(size=500)
    dist = EmpiricalDistribution(sample)
    assert not dist.is_discrete
    assert dist.lattice_step is None
    assert dist.mean == pytest.approx(sample.mean())
    assert dist.variance == pytest.approx(sample.var())
    assert dist.median == pytest.approx(np.median(sample))
    assert dist.cdf(0.0) == pytest.approx(0.5, abs=0.06)
    assert dist.pdf(0.0) == pytest.approx(1 / math.sqrt(2 * math.pi), abs=0.06)
    assert dist.entropy == pytest.approx(0.5 * math.log(2 * math.pi * math.e), abs=0.1)
    assert dist.range == (sample.min(), sample.max())


def test_invalid_samples_raise() -> None:
    with pytest.raises(EmpiricalDataError):
        EmpiricalDistribution([])
    with pytest.raises(EmpiricalDataError) as excinfo:
        EmpiricalDistribution([1.0, math.nan, math.inf])
    assert excinfo.value.details == {"non_finite": 2}


def test_invalid_arguments_raise() -> None:
    dist = EmpiricalDistribution(COUNTS)
    with pytest.raises(ValueError):
        dist.pdf(math.nan)
    with pytest.raises(ValueError):
        dist.cdf(math.nan)
    with pytest.raises(ValueError):
        dist.quantile(1.5)
    with pytest.raises(ValueError):
        dist.quantile_complement(-0.1)


def test_constant_sample_is_a_point_mass() -> None:
    dist = EmpiricalDistribution([2.0, 2.0, 2.0])
    assert dist.is_discrete
    assert dist.lattice_step is None
    assert dist.pdf(2.0) == pytest.approx(1.0)
    assert dist.variance == 0.0
    assert dist.skewness is None
    assert dist.kurtosis_excess is None


def test_multimodality_heuristic() -> None:
    assert not EmpiricalDistribution(COUNTS).is_likely_multimodal
    assert EmpiricalDistribution([0, 1, 1, 1, 2, 3, 3, 3, 4]).is_likely_multimodal
    rng = np.random.default_rng(7)
    bimodal = np.concatenate([rng.normal(-5.0, 1.0, 200), rng.normal(5.0, 1.0, 200)])
    assert EmpiricalDistribution(bimodal).is_likely_multimodal


def test_empirical_kl_divergence() -> None:
    dist = EmpiricalDistribution(COUNTS)
    assert dist.kl_divergence(EmpiricalDistribution(COUNTS)) == pytest.approx(0.0)
    shifted = EmpiricalDistribution([1, 2, 2, 3, 3, 3, 4])
    assert dist.kl_divergence(shifted) > 0
    poisson = DynamicDistribution("poisson", {"lambda": 1.5})
    value = dist.kl_divergence(poisson)
    assert value is not None
    assert math.isfinite(value)
    assert value >= 0


def test_entropy_bootstrap() -> None:
    rng = np.random.default_rng(3)
    dist = EmpiricalDistribution(rng.poisson(3.0, size=80))
    estimate = dist.entropy_estimate(n_resamples=50, random_state=0)
    assert isinstance(estimate, BootstrapEstimate)
    assert estimate.value == dist.entropy
    assert estimate.method == "percentile"
    assert estimate.n_resamples == 50
    assert estimate.confidence_interval is not None
    low, high = estimate.confidence_interval
    assert low <= high
    with pytest.raises(ValueError, match="Unknown bootstrap method"):
        dist.entropy_estimate(method="jackknife")


def test_kl_bootstrap_falls_back_from_bca() -> None:
    rng = np.random.default_rng(11)
    p = EmpiricalDistribution(rng.poisson(3.0, size=60))
    q = EmpiricalDistribution(rng.poisson(4.0, size=60))
    estimate = p.kl_divergence_estimate(q, n_resamples=40, method="bca", random_state=1)
    assert estimate is not None
    assert estimate.method == "percentile"
    assert estimate.value == pytest.approx(p.kl_divergence(q))


def test_summary() -> None:
    summary = EmpiricalDistribution(COUNTS).summary()
    assert summary.family == "empirical"
    assert summary.is_discrete
    assert summary.parameters == {"n": 7.0}
    assert summary.mode == 2.0
