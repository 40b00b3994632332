from __future__ import annotations

from pathlib import Path

import pytest

from uptime_monitor.config import _ENV_OVERRIDES, MonitoringConfig, load_config


def test_defaults_when_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)

    config = load_config(str(tmp_path / "missing.yaml"))

    assert config == MonitoringConfig()
    assert config.check_interval_seconds == 30
    assert config.batch_size == 10
    assert config.alerting.down_after_failures == 3
    assert config.remediation.backend == "simulated"


def test_yaml_values_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "monitoring.yaml"
    path.write_text(
        "environment: staging\n"
        "batch_size: 4\n"
        "alerting:\n"
        "  notify_on_recovery: true\n"
        "notifications:\n"
        "  smtp_host: mail.internal\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", " 123:abc ")
    monkeypatch.setenv("MONITORING_STATE_PATH", str(tmp_path / "state.json"))

    config = load_config(str(path))

    assert config.environment == "staging"
    assert config.batch_size == 4
    assert config.alerting.notify_on_recovery is True
    assert config.log_level == "DEBUG"
    assert config.notifications.smtp_host == "mail.internal"
    assert config.notifications.smtp_port == 2525
    assert config.notifications.telegram_bot_token == "123:abc"
    assert config.registry.state_path == str(tmp_path / "state.json")


def test_config_path_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text("check_interval_seconds: 45\n", encoding="utf-8")
    monkeypatch.setenv("MONITORING_CONFIG", str(path))
    monkeypatch.delenv("CHECK_INTERVAL_SECONDS", raising=False)

    assert load_config().check_interval_seconds == 45


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "monitoring.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_repository_config_file_loads(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    path = Path(__file__).resolve().parents[1] / "config" / "monitoring.yaml"

    config = load_config(str(path))

    assert config.registry.targets_file == "config/targets.yaml"
    assert config.cleanup_cron == "0 2 * * *"
