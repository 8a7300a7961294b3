import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    # unknown names come back as "Level <name>"
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach a stdout handler to the ``studio_match`` logger.

    ``level`` may be a number or a name such as ``"debug"``. Calling this
    again only adjusts the level.
    """
    logger = logging.getLogger("studio_match")
    logger.setLevel(_resolve_level(level))
    if logger.handlers:
        return logger
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    # request lines from the HTTP client only matter when debugging transport
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger
