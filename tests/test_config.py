"""Tests for configuration and logging setup."""

import pytest
import structlog

from fpbs.config import D1D2_DRAIN_TICKS, CompletionPolicy, PipelineConfig
from fpbs.observability import setup_logging


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.watchdog_ticks == 200
        assert config.divider_watchdog_ticks == 48
        assert config.stage_timeout_ticks == 256
        assert config.norm_cdf_latency == 3
        assert config.completion_policy is CompletionPolicy.EXPLICIT_VALID
        assert config.max_request_ticks == 5 * 256 + 8

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"watchdog_ticks": 0},
            {"divider_watchdog_ticks": 0},
            {"norm_cdf_latency": -1},
            {"watchdog_ticks": 300, "stage_timeout_ticks": 300},
            {"watchdog_ticks": 60, "stage_timeout_ticks": 72},
            {"watchdog_ticks": 60, "stage_timeout_ticks": 80, "norm_cdf_latency": 11},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            PipelineConfig(**kwargs)

    def test_stage_timeout_covers_d1d2_drain(self):
        config = PipelineConfig(watchdog_ticks=60, stage_timeout_ticks=60 + D1D2_DRAIN_TICKS + 3 + 1)
        assert config.stage_timeout_ticks == 73


class TestFromEnv:
    def test_unset_keeps_defaults(self, monkeypatch):
        for var in [
            "FPBS_WATCHDOG_TICKS",
            "FPBS_DIVIDER_WATCHDOG_TICKS",
            "FPBS_STAGE_TIMEOUT_TICKS",
            "FPBS_NORM_CDF_LATENCY",
            "FPBS_COMPLETION_POLICY",
        ]:
            monkeypatch.delenv(var, raising=False)
        assert PipelineConfig.from_env() == PipelineConfig()

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("FPBS_WATCHDOG_TICKS", "64")
        monkeypatch.setenv("FPBS_STAGE_TIMEOUT_TICKS", "128")
        monkeypatch.setenv("FPBS_NORM_CDF_LATENCY", "0")
        monkeypatch.setenv("FPBS_COMPLETION_POLICY", "Settled_NonZero")
        config = PipelineConfig.from_env()
        assert config.watchdog_ticks == 64
        assert config.stage_timeout_ticks == 128
        assert config.norm_cdf_latency == 0
        assert config.completion_policy is CompletionPolicy.SETTLED_NONZERO

    def test_explicit_mapping(self):
        config = PipelineConfig.from_env({"FPBS_DIVIDER_WATCHDOG_TICKS": "40", "FPBS_WATCHDOG_TICKS": " "})
        assert config.divider_watchdog_ticks == 40
        assert config.watchdog_ticks == 200

    def test_malformed_integer(self):
        with pytest.raises(ValueError, match="FPBS_WATCHDOG_TICKS"):
            PipelineConfig.from_env({"FPBS_WATCHDOG_TICKS": "many"})

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="FPBS_COMPLETION_POLICY"):
            PipelineConfig.from_env({"FPBS_COMPLETION_POLICY": "eventually"})


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _restore_structlog(self):
        yield
        structlog.reset_defaults()

    def test_configures_structlog(self):
        setup_logging(json=True, level="debug")
        assert structlog.is_configured()

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging(level="chatty")
