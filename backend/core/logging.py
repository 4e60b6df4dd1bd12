import logging

from .config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-batch progress is logged at DEBUG by these modules.
_INGESTION_LOGGERS = (
    "ingestion.ingestion_service",
    "ingestion.change_detection",
    "ingestion.realm_status",
)


def setup_logging(settings: Settings) -> int:
    """Configure root, uvicorn and ingestion loggers from ``settings.log_level``.

    Unknown level names fall back to INFO. SQLAlchemy engine output is only
    shown when running at DEBUG. Returns the numeric level applied.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", *_INGESTION_LOGGERS):
        logging.getLogger(logger_name).setLevel(level)

    if level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured for %s (env=%s, level=%s)",
        settings.app_name,
        settings.env,
        logging.getLevelName(level),
    )
    return level
