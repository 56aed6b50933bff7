import asyncio
import json
import os
import sys
from typing import Any, Dict, List
from urllib.parse import urlparse

import structlog

from healthsync.config import configure_logging, load_settings
from healthsync.models.payload import BatchResult
from healthsync.services.ingestion import IngestionService
from healthsync.storage.store import MongoMetricStore

logger = structlog.get_logger(__name__)


def load_raw_data(file_uri: str) -> List[Dict[str, Any]]:
    """Load payloads from a JSON file, handling both file:// URIs and regular paths"""
    parsed = urlparse(file_uri)
    file_path = os.path.abspath(parsed.path) if parsed.scheme == "file" else file_uri

    try:
        with open(file_path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error("invalid_json", path=file_path, error=str(e))
        raise

    # a single payload or a list of payloads
    payloads = data if isinstance(data, list) else [data]
    logger.info("payloads_loaded", count=len(payloads), path=file_path)
    return payloads


async def ingest_file(file_uri: str) -> BatchResult:
    settings = load_settings()
    store = MongoMetricStore(settings)
    try:
        await store.ensure_indexes()
        service = IngestionService(store)
        return await service.ingest_batch(load_raw_data(file_uri))
    finally:
        store.close()


def main(argv: List[str]) -> int:
    configure_logging(load_settings().log_level)
    if len(argv) < 2:
        print("usage: python -m healthsync.run_ingest <file-or-file-uri>", file=sys.stderr)
        return 2

    result = asyncio.run(ingest_file(argv[1]))
    print(result.model_dump_json(indent=2))
    return 0 if result.failed == 0 else 1


def main_cli():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    main_cli()
