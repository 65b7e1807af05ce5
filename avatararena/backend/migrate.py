"""Create the PostgreSQL tables backing the key-value store."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlsplit

from avatararena.backend.config import load_settings

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("db_schema.sql")


def load_schema() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


def apply_schema(database_url: str, schema_sql: str | None = None) -> None:
    """Run the schema script; every statement in it is idempotent."""
    import psycopg

    statements = schema_sql if schema_sql is not None else load_schema()
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(statements)
        conn.commit()
    logger.info("Applied key-value schema on %s", urlsplit(database_url).hostname or "local socket")


def main() -> int:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level)
    if not settings.database_url:
        logger.error("AVATARARENA_DATABASE_URL is required for migration")
        return 1
    apply_schema(settings.database_url)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
