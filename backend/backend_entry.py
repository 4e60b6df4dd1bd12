"""
Backend entrypoint: API server, or one-shot ingestion of local workbooks.

Run from backend dir:
  python backend_entry.py                          -> uvicorn on HOST:PORT (default 127.0.0.1:8000)
  python backend_entry.py --ingest FILE [FILE ...]  -> ingest snapshot files in order, exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

# Ensure backend dir is on path so "from main import app" works
_backend_dir = Path(__file__).resolve().parent
if str(_backend_dir) not in sys.path:
    sys.path.insert(0, str(_backend_dir))

logger = logging.getLogger("backend_entry")


async def ingest_files(paths: Sequence[Path]) -> int:
    """Create the schema if needed and ingest each file; returns the number that failed."""
    from core.config import get_settings
    from core.database import dispose_database, get_database_manager, init_database
    from core.errors import ServiceError
    from services.upload_service import process_upload

    settings = get_settings()
    await init_database(settings.database_url)
    manager = get_database_manager()
    await manager.create_schema()

    failures = 0
    try:
        for path in paths:
            try:
                async with manager.session() as session:
                    result = await process_upload(
                        session, path.name, path.read_bytes(), settings=settings
                    )
            except (ServiceError, OSError) as e:
                failures += 1
                logger.error("%s: %s", path.name, getattr(e, "message", None) or e)
                continue
            summary = result["snapshot"]
            logger.info(
                "%s: snapshot %s, %s players, %s row errors",
                path.name,
                summary["snapshot_id"],
                summary["rows_processed"],
                len(summary["errors"]),
            )
    finally:
        await dispose_database()
    return failures


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Backend entry: server or ingestion")
    parser.add_argument("--ingest", nargs="+", metavar="FILE", help="Ingest workbooks and exit")
    parser.add_argument("--host", default=os.environ.get("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8000")))
    args = parser.parse_args(argv)

    from core.config import get_settings
    from core.logging import setup_logging

    setup_logging(get_settings())

    if args.ingest:
        failures = asyncio.run(ingest_files([Path(p) for p in args.ingest]))
        return 1 if failures else 0

    logger.info("Starting API on %s:%s", args.host, args.port)
    from main import app
    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
