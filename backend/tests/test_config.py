"""Tests for sigmoid parameter resolution and collection settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from headroom.system.config import (
    DEFAULT_PARAMS,
    ReserveConfig,
    env_prefix,
    load_config,
    resolve_all_params,
    resolve_params,
)
from headroom.system.models import SignalKind

EXPECTED_DEFAULTS = {
    SignalKind.CPU_USAGE: (0.65, 8.0),
    SignalKind.CPU_IOWAIT: (0.20, 20.0),
    SignalKind.CPU_LOAD: (1.2, 5.0),
    SignalKind.MEMORY_USAGE: (0.85, 18.0),
    SignalKind.MEMORY_PRESSURE: (0.30, 12.0),
    SignalKind.DISK_IO: (0.70, 10.0),
    SignalKind.NETWORK_BANDWIDTH: (0.80, 6.0),
    SignalKind.NETWORK_DROPPED: (0.02, 100.0),
    SignalKind.FD_USAGE: (0.90, 25.0),
    SignalKind.PROCESS_COUNT: (0.80, 12.0),
}


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for kind in SignalKind:
        monkeypatch.delenv(f"{env_prefix(kind)}_MIDPOINT", raising=False)
        monkeypatch.delenv(f"{env_prefix(kind)}_STEEPNESS", raising=False)
    for name in (
        "HEADROOM_SAMPLING_INTERVAL_S",
        "HEADROOM_COMMAND_TIMEOUT_S",
        "HEADROOM_NETWORK_CAPACITY_BYTES_S",
        "HEADROOM_DISK_THROUGHPUT_BYTES_S",
        "HEADROOM_PROC_ROOT",
        "HEADROOM_SYS_ROOT",
    ):
        monkeypatch.delenv(name, raising=False)


# -------------------------------------------------------------------
# Sigmoid parameters
# -------------------------------------------------------------------

class TestResolveParams:

    def test_defaults_cover_every_kind(self):
        assert set(DEFAULT_PARAMS) == set(SignalKind)

    @pytest.mark.parametrize("kind", list(SignalKind))
    def test_defaults_without_overrides(self, kind):
        params = resolve_params(kind)
        assert (params.midpoint, params.steepness) == EXPECTED_DEFAULTS[kind]

    def test_env_var_names(self):
        assert env_prefix(SignalKind.CPU_USAGE) == "HEADROOM_CPU_USAGE"
        assert env_prefix(SignalKind.NETWORK_DROPPED) == "HEADROOM_NETWORK_DROPPED"

    def test_override_from_environment(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_CPU_USAGE_MIDPOINT", "0.5")
        monkeypatch.setenv("HEADROOM_CPU_USAGE_STEEPNESS", "12")
        params = resolve_params(SignalKind.CPU_USAGE)
        assert params.midpoint == 0.5
        assert params.steepness == 12.0

    def test_halves_resolve_independently(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_MEMORY_USAGE_STEEPNESS", "30")
        params = resolve_params(SignalKind.MEMORY_USAGE)
        assert params.midpoint == 0.85
        assert params.steepness == 30.0

    @pytest.mark.parametrize("raw", ["abc", "", "   ", "nan", "NaN", "inf", "-inf", "1e999", "0.5x"])
    def test_invalid_override_falls_back_silently(self, monkeypatch, raw):
        monkeypatch.setenv("HEADROOM_DISK_IO_MIDPOINT", raw)
        assert resolve_params(SignalKind.DISK_IO).midpoint == 0.70

    def test_explicit_mapping_ignores_process_environment(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_FD_USAGE_MIDPOINT", "0.1")
        params = resolve_params(SignalKind.FD_USAGE, env={"HEADROOM_FD_USAGE_STEEPNESS": "5"})
        assert params.midpoint == 0.90
        assert params.steepness == 5.0

    def test_other_kinds_unaffected(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_CPU_LOAD_MIDPOINT", "2.0")
        resolved = resolve_all_params()
        assert resolved[SignalKind.CPU_LOAD].midpoint == 2.0
        assert resolved[SignalKind.CPU_USAGE] == DEFAULT_PARAMS[SignalKind.CPU_USAGE]
        assert set(resolved) == set(SignalKind)

    def test_default_table_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_PARAMS[SignalKind.CPU_USAGE] = DEFAULT_PARAMS[SignalKind.DISK_IO]


# -------------------------------------------------------------------
# ReserveConfig / load_config
# -------------------------------------------------------------------

class TestLoadConfig:

    def test_defaults(self):
        cfg = load_config()
        assert cfg == ReserveConfig()
        assert cfg.sampling_interval_s == 0.5
        assert cfg.command_timeout_s == 5.0
        assert cfg.network_capacity_bytes_s == 125_000_000.0
        assert cfg.proc_root == Path("/proc")
        assert cfg.sys_root == Path("/sys")

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HEADROOM_SAMPLING_INTERVAL_S", "0.25")
        monkeypatch.setenv("HEADROOM_NETWORK_CAPACITY_BYTES_S", "1250000000")
        monkeypatch.setenv("HEADROOM_PROC_ROOT", str(tmp_path))
        cfg = load_config()
        assert cfg.sampling_interval_s == 0.25
        assert cfg.network_capacity_bytes_s == 1_250_000_000.0
        assert cfg.proc_root == tmp_path

    def test_unparseable_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_COMMAND_TIMEOUT_S", "soon")
        assert load_config().command_timeout_s == 5.0

    def test_out_of_range_value_is_rejected(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_SAMPLING_INTERVAL_S", "0")
        with pytest.raises(ValidationError):
            load_config()

    @pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "Infinity"])
    def test_non_finite_value_uses_default(self, monkeypatch, raw):
        monkeypatch.setenv("HEADROOM_COMMAND_TIMEOUT_S", raw)
        monkeypatch.setenv("HEADROOM_DISK_THROUGHPUT_BYTES_S", raw)
        cfg = load_config()
        assert cfg.command_timeout_s == 5.0
        assert cfg.disk_throughput_bytes_s == 500_000_000.0

    def test_model_rejects_non_finite(self):
        with pytest.raises(ValidationError):
            ReserveConfig(command_timeout_s=float("inf"))
        with pytest.raises(ValidationError):
            ReserveConfig(network_capacity_bytes_s=float("nan"))

    def test_command_timeout_is_bounded(self, monkeypatch):
        monkeypatch.setenv("HEADROOM_COMMAND_TIMEOUT_S", "1e300")
        with pytest.raises(ValidationError):
            load_config()
