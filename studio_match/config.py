import os
from dataclasses import dataclass


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


@dataclass(frozen=True)
class Settings:
    url: str
    anon_key: str = ""
    prefs_path: str = "studio_match_prefs.json"
    # Realtime bursts inside this window collapse into one recount
    debounce: float = 0.5
    poll_interval: float = 30.0
    session_timeout: float = 5.0
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        url=os.getenv("STUDIO_MATCH_URL", "").strip().rstrip("/"),
        anon_key=os.getenv("STUDIO_MATCH_ANON_KEY", "").strip(),
        prefs_path=os.getenv("STUDIO_MATCH_PREFS_PATH", "").strip()
        or "studio_match_prefs.json",
        debounce=_float_env("STUDIO_MATCH_DEBOUNCE", 0.5),
        poll_interval=_float_env("STUDIO_MATCH_POLL_INTERVAL", 30.0),
        session_timeout=_float_env("STUDIO_MATCH_SESSION_TIMEOUT", 5.0),
        log_level=os.getenv("STUDIO_MATCH_LOG_LEVEL", "").strip() or "INFO",
    )
