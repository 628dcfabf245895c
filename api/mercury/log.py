"""Process-wide logging setup."""

import logging

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stderr handler on the root logger.

    Call once at startup. Replaces existing root handlers so repeated calls
    don't duplicate output.
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {level}. Valid: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(level_upper)
    root.handlers = [handler]

    # uvicorn's access log duplicates ours
    logging.getLogger("uvicorn.access").disabled = True
