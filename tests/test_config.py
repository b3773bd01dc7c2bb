"""Tests for pool settings and the invariant checker."""

import json
import pytest
from pathlib import Path

from stakepool.config import DEFAULT_CONFIG, PARAMS_FILE, PoolSettings
from stakepool.invariants import check, check_params
from stakepool.staking.interest import WAD


def _write_params(config_dir: Path, **overrides) -> Path:
    params = json.loads((DEFAULT_CONFIG / PARAMS_FILE).read_text(encoding="utf-8"))
    params.update(overrides)
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / PARAMS_FILE).write_text(json.dumps(params), encoding="utf-8")
    return config_dir


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "STAKEPOOL_DATA_DIR",
        "STAKEPOOL_LOG_LEVEL",
        "STAKEPOOL_POOL_ACCOUNT",
        "STAKEPOOL_PRIVATE_KEY",
    ):
        # setenv first so values loaded from a .env file are undone afterwards.
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestPoolSettings:
    def test_shipped_defaults(self, tmp_path: Path) -> None:
        settings = PoolSettings.from_config_dir(env_file=tmp_path / "missing.env")
        assert settings.pool_account == "staking_pool"
        assert settings.period_length == 3600
        assert settings.duration == 720 * 3600
        assert settings.rate_per_period == 22_500_000_000_000
        assert settings.hard_cap == 5_000_000 * WAD
        assert settings.contribution_limit == 50_000 * WAD
        assert settings.private_key is None

    def test_env_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STAKEPOOL_POOL_ACCOUNT", "vault")
        monkeypatch.setenv("STAKEPOOL_DATA_DIR", str(tmp_path / "state"))
        monkeypatch.setenv("STAKEPOOL_LOG_LEVEL", "DEBUG")
        settings = PoolSettings.from_config_dir(env_file=tmp_path / "missing.env")
        assert settings.pool_account == "vault"
        assert settings.data_dir == tmp_path / "state"
        assert settings.log_level == "DEBUG"

    def test_dotenv_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("STAKEPOOL_POOL_ACCOUNT=from_dotenv\n", encoding="utf-8")
        settings = PoolSettings.from_config_dir(env_file=env_file)
        assert settings.pool_account == "from_dotenv"

    def test_missing_parameter(self, tmp_path: Path) -> None:
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / PARAMS_FILE).write_text(json.dumps({"pool_account": "p"}), encoding="utf-8")
        with pytest.raises(ValueError, match="Missing pool parameter"):
            PoolSettings.from_config_dir(config_dir, env_file=tmp_path / "missing.env")

    def test_limit_above_cap_rejected(self, tmp_path: Path) -> None:
        config_dir = _write_params(tmp_path / "config", contribution_limit="6000000")
        with pytest.raises(ValueError, match="contribution_limit"):
            PoolSettings.from_config_dir(config_dir, env_file=tmp_path / "missing.env")


class TestInvariantChecks:
    def test_shipped_params_pass(self) -> None:
        assert check() == 0

    def test_wrong_period_length(self) -> None:
        errors: list[str] = []
        params = json.loads((DEFAULT_CONFIG / PARAMS_FILE).read_text(encoding="utf-8"))
        params["period_length_seconds"] = 60
        check_params(params, errors)
        assert any("period_length_seconds" in e for e in errors)

    def test_partial_period_duration(self) -> None:
        errors: list[str] = []
        params = json.loads((DEFAULT_CONFIG / PARAMS_FILE).read_text(encoding="utf-8"))
        params["duration_seconds"] = 3600 * 10 + 1
        check_params(params, errors)
        assert errors == ["duration_seconds should be a whole number of periods"]

    def test_rate_out_of_range(self) -> None:
        errors: list[str] = []
        params = json.loads((DEFAULT_CONFIG / PARAMS_FILE).read_text(encoding="utf-8"))
        params["rate_per_period"] = "1.5"
        check_params(params, errors)
        assert "rate_per_period must be in (0, 1)" in errors

    def test_missing_key(self) -> None:
        errors: list[str] = []
        check_params({}, errors)
        assert "Missing pool parameter: hard_cap" in errors

    def test_check_reports_failure(self, tmp_path: Path, capsys) -> None:
        config_dir = _write_params(tmp_path / "config", hard_cap="0")
        assert check(config_dir=config_dir) == 1
        assert "Invariant check failed:" in capsys.readouterr().out
