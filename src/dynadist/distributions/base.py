"""Family declarations, alias lookup and the global family registry."""

from __future__ import annotations

import logging
import os
import string
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from importlib import import_module, metadata
from pathlib import Path
from typing import Any

import numpy as np
import yaml
from scipy import stats

from ..errors import InvalidParameterError, MissingParameterError

Frozen = Any  # scipy.stats frozen rv_continuous / rv_discrete instance
Builder = Callable[[Mapping[str, float]], Frozen]
ModeFn = Callable[[Mapping[str, float]], float]
PrepareFn = Callable[[dict[str, float]], dict[str, float]]

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "dynadist.families"

SLOTS: tuple[str, ...] = (
    "pdf",
    "logpdf",
    "cdf",
    "sf",
    "hazard",
    "chf",
    "quantile",
    "quantile_complement",
    "range",
    "mean",
    "variance",
    "skewness",
    "kurtosis",
    "kurtosis_excess",
    "mode",
    "median",
    "entropy",
)

_ASCII_FOLD = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def fold(text: str) -> str:
    """Lower-case ASCII letters only (no locale awareness, no trimming)."""
    return text.translate(_ASCII_FOLD)


@dataclass(frozen=True, slots=True)
class Parameter:
    """A caller-supplied ``(key, value)`` pair."""

    key: str
    value: float


def find_param(
    params: Sequence[Parameter],
    keys: Iterable[str],
    count: int | None = None,
) -> tuple[bool, float | None]:
    """Return the value of the first record whose key matches any of ``keys``.

    Only the first ``count`` records are searched (all of them when ``count`` is
    ``None``). Keys compare case-insensitively; the first match in caller order
    wins, so duplicate spellings resolve to whichever the caller listed first.
    """
    candidates = {fold(key) for key in keys}
    limit = len(params) if count is None else max(0, min(count, len(params)))
    for index in range(limit):
        record = params[index]
        if fold(record.key) in candidates:
            return True, record.value
    return False, None


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """One logical parameter: canonical name, accepted spellings and default."""

    name: str
    aliases: tuple[str, ...] = ()
    required: bool = True
    default: float | None = None
    keyword: str | None = None

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.name, *self.aliases)

    def describe(self) -> str:
        text = "|".join(self.keys)
        if self.default is not None:
            text += f" = {self.default:g}"
        elif not self.required:
            text += " (optional)"
        return text


@dataclass(frozen=True, slots=True)
class Family:
    """Declarative description of a distribution family."""

    name: str
    aliases: tuple[str, ...]
    parameters: tuple[ParameterSpec, ...]
    builder: Builder
    mode: ModeFn | None = None
    unsupported: frozenset[str] = field(default_factory=frozenset)
    lattice: tuple[float, float] | None = None
    prepare: PrepareFn | None = None
    notes: str | None = None
    allow_infinite: frozenset[str] = field(default_factory=frozenset)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(fold(item) for item in (self.name, *self.aliases)))

    @property
    def is_discrete(self) -> bool:
        return self.lattice is not None

    def matches(self, name: str) -> bool:
        return fold(name) in self.names

    def supports(self, slot: str) -> bool:
        if slot == "mode" and self.mode is None:
            return False
        return slot not in self.unsupported

    def resolve(self, params: Sequence[Parameter], count: int | None = None) -> dict[str, float]:
        """Resolve every logical parameter, raising when a required one is absent."""
        values: dict[str, float] = {}
        for spec in self.parameters:
            found, value = find_param(params, spec.keys, count)
            if found:
                values[spec.name] = float(value)  # type: ignore[arg-type]
            elif spec.default is not None:
                values[spec.name] = float(spec.default)
            elif spec.required:
                raise MissingParameterError(self.name, spec.name, spec.keys)
        return values

    def build(self, values: Mapping[str, float]) -> tuple[dict[str, float], Frozen]:
        """Validate resolved values and freeze the backing SciPy distribution."""
        resolved = dict(values)
        for key, value in resolved.items():
            if np.isnan(value):
                raise InvalidParameterError(self.name, f"'{key}' is NaN", resolved)
            if np.isinf(value) and key not in self.allow_infinite:
                raise InvalidParameterError(self.name, f"'{key}' must be finite", resolved)
        try:
            if self.prepare is not None:
                resolved = self.prepare(resolved)
            with np.errstate(all="ignore"):
                frozen = self.builder(resolved)
                lower, upper = frozen.support()
        except (ValueError, ArithmeticError, TypeError) as exc:
            raise InvalidParameterError(self.name, str(exc), resolved) from exc
        if np.isnan(lower) or np.isnan(upper):
            raise InvalidParameterError(self.name, "outside the family's domain", resolved)
        return resolved, frozen

    def parameter_summary(self) -> str:
        return "; ".join(spec.describe() for spec in self.parameters)


_REGISTRY: dict[str, Family] = {}


def list_families() -> list[str]:
    """Return registered family names in lookup order."""
    return [family.name for family in _REGISTRY.values()]


def iter_families() -> Iterable[Family]:
    return tuple(_REGISTRY.values())


def find_family(name: str) -> Family | None:
    """Return the first registered family answering to ``name`` (or ``None``)."""
    key = fold(name)
    for family in _REGISTRY.values():
        if key in family.names:
            return family
    return None


def get_family(name: str) -> Family:
    """Retrieve a family by any of its names."""
    family = find_family(name)
    if family is None:
        raise KeyError(f"Unknown distribution '{name}'.")
    return family


def register_family(family: Family, *, overwrite: bool = False) -> None:
    """Register a family in the global registry."""
    key = fold(family.name)
    if key in _REGISTRY and not overwrite:
        raise ValueError(f"Distribution '{family.name}' already registered.")
    for other_key, other in _REGISTRY.items():
        if other_key == key:
            continue
        shared = set(family.names) & set(other.names)
        if shared:
            logger.debug(
                "Family '%s' shares names %s with '%s'; the earlier registration wins.",
                family.name,
                sorted(shared),
                other.name,
            )
    _REGISTRY[key] = family


def clear_registry() -> None:
    """Reset the registry (primarily for testing)."""
    _REGISTRY.clear()


def _scipy_builder(dist_name: str, specs: Sequence[ParameterSpec]) -> Builder:
    dist = getattr(stats, dist_name, None)
    if not isinstance(dist, stats.rv_continuous | stats.rv_discrete):
        raise ValueError(f"'{dist_name}' is not a scipy.stats distribution.")
    keywords = {spec.name: spec.keyword or spec.name for spec in specs}

    def build(values: Mapping[str, float]) -> Frozen:
        return dist(**{keywords[key]: value for key, value in values.items()})

    return build


def _parameter_from_mapping(item: Any) -> ParameterSpec:
    if isinstance(item, str):
        return ParameterSpec(name=item)
    default = item.get("default")
    return ParameterSpec(
        name=str(item["name"]),
        aliases=tuple(str(alias) for alias in item.get("aliases", [])),
        required=bool(item.get("required", default is None)),
        default=None if default is None else float(default),
        keyword=item.get("keyword"),
    )


def _family_from_mapping(candidate: Mapping[str, Any]) -> Family:
    specs = tuple(_parameter_from_mapping(item) for item in candidate.get("parameters", []))
    if "builder" in candidate:
        builder = _load_object(candidate["builder"])
    else:
        builder = _scipy_builder(str(candidate["scipy"]), specs)
    mode = _load_object(candidate["mode"]) if candidate.get("mode") else None
    lattice = candidate.get("lattice")
    if isinstance(lattice, Mapping):
        lattice = (lattice.get("origin", 0.0), lattice.get("step", 1.0))
    unsupported = frozenset(str(slot) for slot in candidate.get("unsupported", []))
    unknown = unsupported - set(SLOTS)
    if unknown:
        raise ValueError(f"Unknown capability slots: {sorted(unknown)}")
    return Family(
        name=str(candidate["name"]),
        aliases=tuple(str(alias) for alias in candidate.get("aliases", [])),
        parameters=specs,
        builder=builder,
        mode=mode,
        unsupported=unsupported,
        lattice=None if lattice is None else (float(lattice[0]), float(lattice[1])),
        notes=candidate.get("notes"),
        allow_infinite=frozenset(str(key) for key in candidate.get("allow_infinite", [])),
    )


def _iter_families(candidate: Any) -> Iterable[Family]:
    if isinstance(candidate, Family):
        yield candidate
    elif isinstance(candidate, Mapping) and "name" in candidate and (
        "scipy" in candidate or "builder" in candidate
    ):
        yield _family_from_mapping(candidate)
    elif isinstance(candidate, Iterable) and not isinstance(candidate, str | bytes):
        for item in candidate:
            yield from _iter_families(item)
    elif callable(candidate):
        yield from _iter_families(candidate())
    else:
        raise TypeError(
            "Unsupported family specification. Expected Family, iterable of Family "
            "instances, a callable returning them, or a mapping with name and scipy/builder keys."
        )


def _load_object(path: str) -> Any:
    module_name, _, attribute = path.partition(":")
    if not attribute:
        module_name, _, attribute = path.rpartition(".")
    if not module_name or not attribute:
        raise ValueError(f"Invalid import path '{path}'. Expected 'module:callable'.")
    module = import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError as exc:
        raise AttributeError(f"Module '{module_name}' has no attribute '{attribute}'.") from exc


def load_entry_points(group: str = ENTRY_POINT_GROUP) -> list[str]:
    """Discover third-party families via entry points."""
    loaded: list[str] = []
    try:
        candidates = metadata.entry_points().select(group=group)
    except Exception as exc:  # pragma: no cover - discovery failure
        logger.debug("Entry point discovery failed: %s", exc)
        return loaded

    for ep in candidates:
        try:
            for family in _iter_families(ep.load()):
                register_family(family, overwrite=True)
                loaded.append(family.name)
        except Exception as exc:  # pragma: no cover - plugin failure
            logger.warning("Failed to load family entry point '%s': %s", ep.name, exc)
    return loaded


def load_yaml_config(path: str | os.PathLike[str]) -> list[str]:
    """Register additional families from a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        logger.debug("Skipping family config %s (file not found)", path)
        return []

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        logger.warning("Failed to parse family config %s: %s", path, exc)
        return []

    registered: list[str] = []
    for item in data.get("families", []):
        try:
            if "callable" in item:
                factory = _load_object(item["callable"])
                produced = factory(*item.get("args", []), **item.get("kwargs", {}))
            else:
                produced = item
            for family in _iter_families(produced):
                register_family(family, overwrite=item.get("overwrite", True))
                registered.append(family.name)
        except Exception as exc:
            logger.warning("Failed to register family from %s (spec=%s): %s", path, item, exc)
    return registered


__all__ = [
    "ENTRY_POINT_GROUP",
    "SLOTS",
    "Builder",
    "Family",
    "Parameter",
    "ParameterSpec",
    "clear_registry",
    "find_family",
    "find_param",
    "fold",
    "get_family",
    "iter_families",
    "list_families",
    "load_entry_points",
    "load_yaml_config",
    "register_family",
]
