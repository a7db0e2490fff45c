"""Tests for IncidentConfig."""

import pytest
from pydantic import ValidationError

from incident_commander.config import IncidentConfig


def test_defaults(monkeypatch):
    monkeypatch.delenv("P1_CHANNELS", raising=False)
    config = IncidentConfig(_env_file=None)
    assert config.dm_throttle_seconds == 300
    assert config.p1_channels == []
    assert config.statuspage_enabled is False


def test_comma_separated_lists_from_env(monkeypatch):
    monkeypatch.setenv("P1_CHANNELS", "C-ENG, C-EXEC,,")
    monkeypatch.setenv("P1_DM_RECIPIENTS", "U-CTO")
    config = IncidentConfig(_env_file=None)
    assert config.p1_channels == ["C-ENG", "C-EXEC"]
    assert config.p1_dm_recipients == ["U-CTO"]


def test_statuspage_enabled_needs_both_settings():
    assert IncidentConfig(_env_file=None, statuspage_api_key="k").statuspage_enabled is False
    assert IncidentConfig(_env_file=None, statuspage_api_key="k", statuspage_page_id="p").statuspage_enabled


def test_throttle_window_must_be_positive():
    with pytest.raises(ValidationError):
        IncidentConfig(_env_file=None, dm_throttle_seconds=0)
