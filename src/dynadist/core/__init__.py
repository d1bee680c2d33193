"""Core dataclasses and shared type aliases for dynadist modules."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol, TypeAlias

import numpy as np
import pandas as pd

ArrayLike: TypeAlias = np.ndarray | Sequence[float]

STATISTICS: tuple[str, ...] = (
    "mean",
    "variance",
    "skewness",
    "kurtosis",
    "kurtosis_excess",
    "mode",
    "median",
    "entropy",
)


def finite_or_none(value: Any) -> float | None:
    """Return ``value`` as a float, or ``None`` when it is absent or non-finite."""
    if value is None:
        return None
    val = float(value)
    if math.isnan(val) or math.isinf(val):
        return None
    return val


@dataclass(slots=True)
class DistributionSummary:
    """Support and descriptive statistics of one distribution."""

    name: str
    family: str
    parameters: dict[str, float] = field(default_factory=dict)
    precision: str = "float64"
    support_lower: float = -math.inf
    support_upper: float = math.inf
    is_discrete: bool = False
    mean: float | None = None
    variance: float | None = None
    skewness: float | None = None
    kurtosis: float | None = None
    kurtosis_excess: float | None = None
    mode: float | None = None
    median: float | None = None
    entropy: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_frame(self) -> pd.DataFrame:
        """Return a one-row data frame; parameters are spread into ``param_*`` columns."""
        record = self.to_dict()
        parameters = record.pop("parameters")
        record.update({f"param_{key}": value for key, value in parameters.items()})
        return pd.DataFrame.from_records([record])


class Summarisable(Protocol):
    def summary(self) -> DistributionSummary: ...


def summarise(distributions: Iterable[Summarisable]) -> pd.DataFrame:
    """Stack the summaries of several distributions into one data frame."""
    frames = [dist.summary().to_frame() for dist in distributions]
    if not frames:
        return pd.DataFrame(columns=["name", "family", *STATISTICS])
    return pd.concat(frames, ignore_index=True)


__all__ = [
    "ArrayLike",
    "DistributionSummary",
    "STATISTICS",
    "Summarisable",
    "finite_or_none",
    "summarise",
]
