"""Runtime settings and extra family configuration sources."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from .distributions.base import load_yaml_config
from .sentinel import FLOAT64, resolve_precision

logger = logging.getLogger(__name__)

PRECISION_ENV = "DYNADIST_PRECISION"
FAMILIES_ENV = "DYNADIST_FAMILIES"


@dataclass(slots=True)
class Settings:
    """Defaults applied when callers do not pass them explicitly."""

    precision: str = FLOAT64.name
    family_paths: tuple[Path, ...] = ()


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read :class:`Settings` from the environment."""
    env = os.environ if environ is None else environ
    raw_precision = env.get(PRECISION_ENV, FLOAT64.name)
    try:
        precision = resolve_precision(raw_precision).name
    except ValueError as exc:
        logger.warning("Ignoring %s=%r: %s", PRECISION_ENV, raw_precision, exc)
        precision = FLOAT64.name
    paths = tuple(Path(item) for item in env.get(FAMILIES_ENV, "").split(os.pathsep) if item)
    return Settings(precision=precision, family_paths=paths)


def load_family_config(paths: Iterable[str | os.PathLike[str]]) -> list[str]:
    """Register families from YAML files, or from every ``*.yaml`` in a directory."""
    registered: list[str] = []
    for item in paths:
        path = Path(item)
        if path.is_dir():
            for child in sorted(path.glob("*.yaml")):
                registered.extend(load_yaml_config(child))
        else:
            registered.extend(load_yaml_config(path))
    return registered


__all__ = ["FAMILIES_ENV", "PRECISION_ENV", "Settings", "load_family_config", "load_settings"]
