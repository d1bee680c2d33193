import gc
import importlib
import math

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from dynadist import DynamicDistribution, summarise
from dynadist.distributions import Family, ParameterSpec, clear_registry, register_family
from dynadist.errors import (
    DistributionClosedError,
    DistributionError,
    InvalidCombinationError,
    InvalidParameterError,
    MissingParameterError,
    UnknownDistributionError,
)


def _reload_registry() -> None:
    import dynadist.distributions as dist_module

    clear_registry()
    importlib.reload(dist_module)


def test_construct_and_evaluate() -> None:
    dist = DynamicDistribution("gamma", {"shape": 2.5, "scale": 1.2})
    expected = stats.gamma(2.5, scale=1.2)
    assert dist.family_name == "gamma"
    assert dist.parameters == {"shape": 2.5, "scale": 1.2}
    assert dist.pdf(2.0) == pytest.approx(expected.pdf(2.0))
    assert dist.log_pdf(2.0) == pytest.approx(expected.logpdf(2.0))
    assert dist.cdf(2.0) == pytest.approx(expected.cdf(2.0))
    assert dist.sf(2.0) == pytest.approx(expected.sf(2.0))
    assert dist.quantile(0.3) == pytest.approx(expected.ppf(0.3))
    assert dist.quantile_complement(0.3) == pytest.approx(expected.isf(0.3))
    assert dist.chf(2.0) == pytest.approx(-math.log(expected.sf(2.0)))
    assert dist.hazard(2.0) == pytest.approx(expected.pdf(2.0) / expected.sf(2.0))


def test_unknown_name_raises() -> None:
    with pytest.raises(UnknownDistributionError, match="Unknown distribution 'nope'"):
        DynamicDistribution("nope", {"x": 1.0})


def test_missing_parameter_names_the_aliases() -> None:
    with pytest.raises(MissingParameterError) as excinfo:
        DynamicDistribution("arcsine", {})
    error = excinfo.value
    assert error.parameter == "minx"
    assert error.aliases == ("minx", "min", "a", "lower")
    assert isinstance(error, InvalidCombinationError)
    assert isinstance(error, DistributionError)
    assert error.to_dict()["error"]["code"] == "MISSING_PARAMETER"


def test_invalid_parameters_raise() -> None:
    with pytest.raises(InvalidParameterError):
        DynamicDistribution("gamma", {"shape": -1.0})
    with pytest.raises(InvalidParameterError, match="must be finite"):
        DynamicDistribution("gamma", {"shape": math.inf})
    with pytest.raises(MissingParameterError):
        DynamicDistribution("exponential", {})


def test_invalid_precision_raises() -> None:
    with pytest.raises(ValueError, match="Unknown precision"):
        DynamicDistribution("gamma", {"shape": 2.0}, precision="quad")


def test_precision_defaults_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DYNADIST_PRECISION", "float32")
    dist = DynamicDistribution("normal", {})
    assert dist.precision == "float32"
    assert isinstance(dist.pdf(0.0), np.float32)


def test_descriptive_statistics_are_optional() -> None:
    fisher = DynamicDistribution("fisherf", {"df1": 5.0, "df2": 10.0})
    assert fisher.entropy is None
    assert fisher.mean == pytest.approx(10.0 / 8.0)
    arcsine = DynamicDistribution("arcsine", {"minx": 0.0, "maxx": 1.0})
    assert arcsine.entropy is None
    assert arcsine.mode is None
    cauchy = DynamicDistribution("cauchy", {"scale": 1.0})
    assert cauchy.mean is None and cauchy.variance is None
    heavy = DynamicDistribution("student_t", {"df": 2.0})
    assert heavy.mean == pytest.approx(0.0)
    assert heavy.variance is None


def test_student_t_mode_and_median() -> None:
    dist = DynamicDistribution("StudentT", {"nu": 5.0})
    assert dist.mode == 0.0
    assert dist.quantile(0.5) == pytest.approx(0.0, abs=1e-12)
    assert dist.median == pytest.approx(0.0, abs=1e-12)


def test_unsupported_slots_fall_back() -> None:
    register_family(
        Family(
            name="sparse_normal",
            aliases=(),
            parameters=(ParameterSpec("sd", default=1.0),),
            builder=lambda values: stats.norm(scale=values["sd"]),
            unsupported=frozenset({"median", "hazard", "range"}),
        )
    )
    try:
        dist = DynamicDistribution("sparse_normal", {"sd": 2.0})
        assert np.isnan(dist.hazard(0.0))
        assert dist.median == pytest.approx(0.0, abs=1e-12)
        assert dist.mode is None
        assert dist.range == (-np.inf, np.inf)
        assert not dist.supports("hazard")
        assert dist.supports("log_pdf")
    finally:
        _reload_registry()


def test_support_and_lattice() -> None:
    binomial = DynamicDistribution("binomial", {"n": 10.0, "p": 0.4})
    assert binomial.is_discrete
    assert binomial.lattice_step == 1.0
    assert binomial.lattice_origin == 0.0
    assert binomial.support_lower_bound == 0.0
    assert binomial.support_upper_bound == 10.0
    gamma = DynamicDistribution("gamma", {"shape": 2.0})
    assert not gamma.is_discrete
    assert gamma.lattice_step is None and gamma.lattice_origin is None
    assert gamma.range == (0.0, np.inf)


def test_close_is_idempotent_and_blocks_use() -> None:
    dist = DynamicDistribution("normal", {"mean": 0.0, "sd": 1.0})
    handle = dist.vtable.ctx
    dist.close()
    dist.close()
    assert dist.closed
    assert handle.released
    with pytest.raises(DistributionClosedError):
        dist.pdf(0.0)
    with pytest.raises(DistributionClosedError):
        _ = dist.mean
    assert "closed" in repr(dist)


def test_context_manager_releases_handle() -> None:
    with DynamicDistribution("exponential", {"rate": 2.0}) as dist:
        handle = dist.vtable.ctx
        assert dist.mean == pytest.approx(0.5)
    assert handle.released
    assert dist.closed


def test_garbage_collection_releases_handle() -> None:
    dist = DynamicDistribution("poisson", {"lambda": 3.0})
    handle = dist.vtable.ctx
    del dist
    gc.collect()
    assert handle.released


def test_evaluate_maps_operations() -> None:
    dist = DynamicDistribution("normal", {})
    values = dist.evaluate("cdf", [-1.0, 0.0, 1.0])
    assert isinstance(values, np.ndarray)
    np.testing.assert_allclose(values, stats.norm.cdf([-1.0, 0.0, 1.0]))
    assert dist.evaluate("log_pdf", [0.0])[0] == pytest.approx(stats.norm.logpdf(0.0))
    with pytest.raises(ValueError, match="Unknown operation"):
        dist.evaluate("teleport", [0.0])


def test_summary_and_frame() -> None:
    dist = DynamicDistribution("gamma", {"shape": 4.0, "scale": 0.5})
    summary = dist.summary()
    assert summary.family == "gamma"
    assert summary.mean == pytest.approx(2.0)
    assert summary.support_lower == 0.0
    frame = summary.to_frame()
    assert isinstance(frame, pd.DataFrame)
    assert len(frame) == 1
    assert frame.loc[0, "param_shape"] == 4.0
    assert frame.loc[0, "variance"] == pytest.approx(1.0)

    cauchy = DynamicDistribution("cauchy", {"scale": 1.0})
    assert cauchy.summary().mean is None

    stacked = summarise([dist, cauchy])
    assert list(stacked["family"]) == ["gamma", "cauchy"]


def test_kl_divergence_delegates() -> None:
    p = DynamicDistribution("normal", {"mean": 0.0, "sd": 1.0})
    q = DynamicDistribution("normal", {"mean": 1.0, "sd": 2.0})
    assert p.kl_divergence(q) == pytest.approx(math.log(2.0) + 2.0 / 8.0 - 0.5)
    assert p.kl_divergence(p) == pytest.approx(0.0)


def test_name_is_kept_as_given() -> None:
    dist = DynamicDistribution("Chi-Squared", {"df": 3.0})
    assert dist.name == "Chi-Squared"
    assert dist.family_name == "chi_squared"
    assert not hasattr(dist, "name_normalized")


def test_kl_divergence_against_closed_normal_raises() -> None:
    p = DynamicDistribution("normal", {"mean": 0.0, "sd": 1.0})
    q = DynamicDistribution("normal", {"mean": 1.0, "sd": 2.0})
    q.close()
    with pytest.raises(DistributionClosedError):
        p.kl_divergence(q)
