import logging

from studio_match.config import load_settings
from studio_match.logging_config import setup_logging


def test_load_settings(monkeypatch):
    """Settings are read from the environment."""
    monkeypatch.setenv("STUDIO_MATCH_URL", "https://example.supabase.co/")
    monkeypatch.setenv("STUDIO_MATCH_ANON_KEY", "anon")
    monkeypatch.delenv("STUDIO_MATCH_PREFS_PATH", raising=False)
    monkeypatch.delenv("STUDIO_MATCH_DEBOUNCE", raising=False)
    s = load_settings()
    assert s.url == "https://example.supabase.co"
    assert s.anon_key == "anon"
    assert s.prefs_path == "studio_match_prefs.json"
    assert s.debounce == 0.5
    assert s.poll_interval == 30.0


def test_load_settings_bad_numbers(monkeypatch):
    """Unparseable or negative numbers fall back to the defaults."""
    monkeypatch.setenv("STUDIO_MATCH_DEBOUNCE", "soon")
    monkeypatch.setenv("STUDIO_MATCH_POLL_INTERVAL", "-4")
    monkeypatch.setenv("STUDIO_MATCH_SESSION_TIMEOUT", "2.5")
    s = load_settings()
    assert s.debounce == 0.5
    assert s.poll_interval == 30.0
    assert s.session_timeout == 2.5


def test_setup_logging_idempotent():
    """Calling setup twice returns the same configured logger."""
    logger1 = setup_logging(logging.DEBUG)
    logger2 = setup_logging(logging.DEBUG)
    assert logger1 is logger2
    assert logger1.handlers  # at least one handler installed
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_accepts_level_names(monkeypatch):
    """Level names are accepted as well as numbers."""
    monkeypatch.setenv("STUDIO_MATCH_LOG_LEVEL", "debug")
    logger = setup_logging(load_settings().log_level)
    assert logger.level == logging.DEBUG

    assert setup_logging("chatty").level == logging.INFO
    setup_logging(logging.INFO)
