"""Top-level package exports for dynadist."""

from __future__ import annotations

from importlib import metadata

__version__ = "0.1.0"

try:
    __version__ = metadata.version("dynadist")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev fallback
    pass

from . import core as core  # noqa: F401
from . import distributions as distributions  # noqa: F401
from .core import DistributionSummary, summarise  # noqa: F401
from .distributions import Parameter, find_param  # noqa: F401
from .distributions.vtable import (  # noqa: F401
    DistributionHandle,
    DistributionVTable,
    make,
    make_float32,
    make_float64,
    make_longdouble,
)
from .divergence import KLDivergenceOptions, kl_divergence  # noqa: F401
from .dynamic import DynamicDistribution  # noqa: F401
from .empirical import EmpiricalDistribution  # noqa: F401
from .errors import (  # noqa: F401
    DistributionClosedError,
    DistributionError,
    DynadistError,
    EmpiricalDataError,
    InvalidCombinationError,
    InvalidParameterError,
    MissingParameterError,
    UnknownDistributionError,
)
from .sentinel import guarded  # noqa: F401

__all__ = [
    "__version__",
    "core",
    "distributions",
    "DistributionSummary",
    "summarise",
    "Parameter",
    "find_param",
    "DistributionHandle",
    "DistributionVTable",
    "make",
    "make_float32",
    "make_float64",
    "make_longdouble",
    "KLDivergenceOptions",
    "kl_divergence",
    "DynamicDistribution",
    "EmpiricalDistribution",
    "DynadistError",
    "DistributionError",
    "InvalidCombinationError",
    "UnknownDistributionError",
    "MissingParameterError",
    "InvalidParameterError",
    "DistributionClosedError",
    "EmpiricalDataError",
    "guarded",
]
