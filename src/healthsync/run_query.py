import asyncio
import sys
from typing import Any, List, Optional

import structlog

from healthsync.config import configure_logging, load_settings
from healthsync.errors import HealthSyncError
from healthsync.models.payload import SeriesResult
from healthsync.services.query import QueryService
from healthsync.storage.store import MongoMetricStore

logger = structlog.get_logger(__name__)

USAGE = "usage: python -m healthsync.run_query <userId> <kind> [period] [start] [end]"


async def fetch_series(
    user_id: str, kind: str, period: Optional[str] = None, start: Any = None, end: Any = None
) -> SeriesResult:
    settings = load_settings()
    store = MongoMetricStore(settings)
    try:
        return await QueryService(store, settings=settings).series(user_id, kind, period, start=start, end=end)
    finally:
        store.close()


def main(argv: List[str]) -> int:
    configure_logging(load_settings().log_level)
    if len(argv) < 3:
        print(USAGE, file=sys.stderr)
        return 2

    period, start, end = (argv[3:] + [None, None, None])[:3]
    try:
        result = asyncio.run(fetch_series(argv[1], argv[2], period, start, end))
    except HealthSyncError as e:
        logger.error("query_failed", error=str(e))
        return 1
    print(result.model_dump_json(indent=2))
    return 0


def main_cli():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    main_cli()
