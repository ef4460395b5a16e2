import logging

import pytest

from kadre.config import get_settings
from kadre.monitoring import timed


def test_timed_logs_success(caplog):
    logger = logging.getLogger("triage.test")
    with caplog.at_level(logging.INFO, logger="triage.test"):
        with timed(logger, "extract", update_id="u1"):
            pass

    payload = caplog.records[-1].step
    assert payload["step"] == "extract"
    assert payload["status"] == "success"
    assert payload["update_id"] == "u1"
    assert payload["duration_ms"] >= 0


def test_timed_logs_and_reraises_errors(caplog):
    logger = logging.getLogger("triage.test")
    with caplog.at_level(logging.INFO, logger="triage.test"):
        with pytest.raises(ValueError):
            with timed(logger, "materialize"):
                raise ValueError("bad row")

    payload = caplog.records[-1].step
    assert payload["status"] == "error"
    assert payload["error"] == "bad row"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("ENGAGEMENT_LOOKBACK_WEEKS", "6")
    monkeypatch.setenv("ASSISTANT_MAX_ITERATIONS", "not-a-number")
    monkeypatch.setenv("OPENAI_FAST_MODEL", "tiny")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.engagement_lookback_weeks == 6
    assert settings.assistant_max_iterations == 5
    assert settings.fast_model == "tiny"
    assert settings.openai_api_key is None
    assert settings.cron_secret == "cron-secret"
