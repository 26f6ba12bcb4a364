"""Unit tests for settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from membership_triggers.config import OverseerSettings


def test_defaults() -> None:
    settings = OverseerSettings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.marker_root == "/autoscaling"
    assert settings.marker_retry_attempts == 3
    assert settings.marker_retry_backoff_seconds == 0.1
    assert settings.coordination_root is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MEMBERSHIP_TRIGGERS_MARKER_ROOT", "cluster/autoscaling/")
    monkeypatch.setenv("MEMBERSHIP_TRIGGERS_MARKER_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("MEMBERSHIP_TRIGGERS_COORDINATION_ROOT", str(tmp_path))

    settings = OverseerSettings(_env_file=None)

    assert settings.marker_root == "/cluster/autoscaling"
    assert settings.marker_retry_attempts == 5
    assert settings.coordination_root == tmp_path


def test_env_file_is_read(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("MEMBERSHIP_TRIGGERS_LOG_LEVEL=DEBUG\n", encoding="utf-8")

    assert OverseerSettings(_env_file=env_file).log_level == "DEBUG"


@pytest.mark.parametrize(
    "kwargs",
    [{"marker_root": "/"}, {"marker_retry_attempts": 0}, {"marker_retry_backoff_seconds": -1}],
)
def test_invalid_values_are_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        OverseerSettings(_env_file=None, **kwargs)
