# logging_config.py – un seul handler stdout pour le service et uvicorn

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Trop bavards en INFO (une ligne par requête HTTP / par statement SQL)
QUIET_LOGGERS = ("aiohttp", "sqlalchemy.engine", "uvicorn.access")


def resolve_level(level) -> int:
    """Numeric level for a name like "debug"; unknown names give INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level or "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level="INFO") -> int:
    """
    Route every logger to stdout at ``level`` and return that level.

    uvicorn is started with ``log_config=None`` so its loggers propagate here.
    The sync summaries stay visible even when the root level is WARNING.
    """
    log_level = resolve_level(level)
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("rpf.services.sync").setLevel(min(log_level, logging.INFO))

    logging.getLogger(__name__).info("Logging initialized at level %s", logging.getLevelName(log_level))
    return log_level
