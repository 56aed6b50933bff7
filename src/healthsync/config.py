import logging
import os
import sys
from dataclasses import dataclass

import structlog


@dataclass(frozen=True)
class Settings:
    mongodb_uri: str
    db_name: str
    range_batch_size: int
    summary_limit: int
    log_level: str


def load_settings() -> Settings:
    """Read settings from the environment, falling back to local defaults."""
    return Settings(
        mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017/"),
        db_name=os.getenv("HEALTHSYNC_DB_NAME", "healthapp"),
        range_batch_size=int(os.getenv("HEALTHSYNC_RANGE_BATCH_SIZE", "1000")),
        summary_limit=int(os.getenv("HEALTHSYNC_SUMMARY_LIMIT", "100")),
        log_level=os.getenv("HEALTHSYNC_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str):
    """Route structlog through stdlib logging on stderr, filtered at ``level``.

    stdout stays reserved for the JSON the entry scripts print.
    """
    logging.basicConfig(stream=sys.stderr, format="%(message)s")
    logging.getLogger().setLevel(level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
