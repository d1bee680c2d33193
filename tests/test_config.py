import importlib
import logging
import os
from pathlib import Path

import pytest

from dynadist.config import load_family_config, load_settings
from dynadist.distributions import clear_registry, find_family

_FAMILY_YAML = """
families:
  - name: {name}
    scipy: {scipy}
    parameters:
      - name: scale
        default: 1.0
"""


def _reload_registry() -> None:
    import dynadist.distributions as dist_module

    clear_registry()
    importlib.reload(dist_module)


def test_default_settings() -> None:
    settings = load_settings({})
    assert settings.precision == "float64"
    assert settings.family_paths == ()


def test_settings_from_environment(tmp_path: Path) -> None:
    first = tmp_path / "a.yaml"
    second = tmp_path / "b.yaml"
    settings = load_settings(
        {
            "DYNADIST_PRECISION": "single",
            "DYNADIST_FAMILIES": os.pathsep.join([str(first), "", str(second)]),
        }
    )
    assert settings.precision == "float32"
    assert settings.family_paths == (first, second)


def test_invalid_precision_falls_back(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="dynadist.config"):
        settings = load_settings({"DYNADIST_PRECISION": "quad"})
    assert settings.precision == "float64"
    assert "DYNADIST_PRECISION" in caplog.text


def test_load_family_config_accepts_directories(tmp_path: Path) -> None:
    (tmp_path / "one.yaml").write_text(
        _FAMILY_YAML.format(name="config_halfnorm", scipy="halfnorm"), encoding="utf-8"
    )
    (tmp_path / "two.yaml").write_text(
        _FAMILY_YAML.format(name="config_rayleigh", scipy="rayleigh"), encoding="utf-8"
    )
    (tmp_path / "ignored.txt").write_text("not yaml", encoding="utf-8")
    try:
        registered = load_family_config([tmp_path, tmp_path / "missing.yaml"])
        assert registered == ["config_halfnorm", "config_rayleigh"]
        assert find_family("CONFIG_HALFNORM") is not None
    finally:
        _reload_registry()
    assert find_family("config_halfnorm") is None


def test_registry_bootstrap_reads_family_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "extra.yaml").write_text(
        _FAMILY_YAML.format(name="env_halfnorm", scipy="halfnorm"), encoding="utf-8"
    )
    monkeypatch.setenv("DYNADIST_FAMILIES", str(tmp_path))
    try:
        _reload_registry()
        assert find_family("env_halfnorm") is not None
    finally:
        monkeypatch.delenv("DYNADIST_FAMILIES")
        _reload_registry()
    assert find_family("env_halfnorm") is None
