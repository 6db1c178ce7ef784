"""Tests for layered configuration loading."""

import json
import os

import pytest

from stakerank.curation.config import (
    CurveConfig,
    StakeRankConfig,
    get_config,
    reset_config,
    set_config,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in [k for k in os.environ if k.startswith("STAKERANK_")]:
        monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


class TestDefaults:
    def test_defaults(self):
        config = StakeRankConfig.load()
        params = config.curve.to_parameters()
        assert params.max == 2_040_644
        assert params.safe_max == 1_999_831
        assert config.logging.level == "INFO"
        assert config.storage.state_file.endswith("ledger.json")

    def test_to_json(self):
        data = json.loads(StakeRankConfig().to_json())
        assert data["curve"]["ceiling"] == 588


class TestFiles:
    """JSON, TOML and YAML files are all accepted."""

    def test_json(self, tmp_path):
        path = tmp_path / "stakerank.json"
        path.write_text(json.dumps({"curve": {"ceiling": 600}}))
        assert StakeRankConfig.load(path).curve.ceiling == 600

    def test_toml(self, tmp_path):
        path = tmp_path / "stakerank.toml"
        path.write_text('[curve]\nceiling = 700\n\n[logging]\nformat = "json"\n')
        config = StakeRankConfig.load(path)
        assert config.curve.ceiling == 700
        assert config.logging.format == "json"

    def test_yaml(self, tmp_path):
        path = tmp_path / "stakerank.yaml"
        path.write_text("storage:\n  state_file: /tmp/ledger.json\n")
        assert StakeRankConfig.load(path).storage.state_file == "/tmp/ledger.json"

    def test_missing_file_uses_defaults(self, tmp_path):
        assert StakeRankConfig.load(tmp_path / "absent.toml").curve.ceiling == 588

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="mapping"):
            StakeRankConfig.load(path)

    def test_unknown_keys_ignored(self, tmp_path, caplog):
        path = tmp_path / "stakerank.json"
        path.write_text(json.dumps({"curve": {"ceiling": 600, "bogus": 1}}))
        assert StakeRankConfig.load(path).curve.ceiling == 600
        assert "curve.bogus" in caplog.text


class TestEnvironment:
    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "stakerank.json"
        path.write_text(json.dumps({"curve": {"ceiling": 600}}))
        monkeypatch.setenv("STAKERANK_CURVE_CEILING", "650")
        monkeypatch.setenv("STAKERANK_LOGGING_REDACT", "false")
        monkeypatch.setenv("STAKERANK_STORAGE_STATE_FILE", "/var/ledger.json")
        config = StakeRankConfig.load(path)
        assert config.curve.ceiling == 650
        assert config.logging.redact is False
        assert config.storage.state_file == "/var/ledger.json"

    def test_unrelated_env_ignored(self, monkeypatch):
        monkeypatch.setenv("STAKERANK_LOG_LEVEL", "DEBUG")
        assert StakeRankConfig.load().logging.level == "INFO"

    def test_parse_env_value(self):
        assert StakeRankConfig._parse_env_value("42") == 42
        assert StakeRankConfig._parse_env_value("yes") is True
        assert StakeRankConfig._parse_env_value("no") is False
        assert StakeRankConfig._parse_env_value("json") == "json"


class TestValidation:
    def test_invalid_level(self, monkeypatch):
        monkeypatch.setenv("STAKERANK_LOGGING_LEVEL", "LOUD")
        with pytest.raises(ValueError, match="logging level"):
            StakeRankConfig.load()

    def test_invalid_format(self, monkeypatch):
        monkeypatch.setenv("STAKERANK_LOGGING_FORMAT", "xml")
        with pytest.raises(ValueError, match="logging format"):
            StakeRankConfig.load()

    def test_non_positive_curve(self):
        with pytest.raises(ValueError):
            CurveConfig(ceiling=0)

    def test_zero_max_curve(self, monkeypatch):
        monkeypatch.setenv("STAKERANK_CURVE_TOTAL", "10")
        monkeypatch.setenv("STAKERANK_CURVE_CEILING", "1")
        with pytest.raises(ValueError, match="max is zero"):
            StakeRankConfig.load()


def test_global_config():
    config = StakeRankConfig(curve=CurveConfig(ceiling=600))
    set_config(config)
    assert get_config() is config
    reset_config()
    assert get_config().curve.ceiling == 588
