"""Rebuild the search index from the relational store.

Exit codes: 0 on success, 1 when the database is unreachable, 2 when the
search index is not configured or the rebuild failed.
"""
import argparse
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def check_database(engine):
    from sqlalchemy import text
    from sqlalchemy.exc import OperationalError
    from catalog.utils import retry

    @retry(OperationalError, tries=3, delay=1, backoff=2)
    def ping():
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    ping()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--index", help="override OPENSEARCH_RESOURCES_INDEX")
    args = parser.parse_args(argv)

    from dataclasses import replace
    from catalog.config import IndexSettings
    from catalog.db import SessionLocal, engine
    from catalog.search_index import build_search_index
    from catalog.sync import IndexSyncer
    from catalog.utils import logger

    try:
        check_database(engine)
    except Exception as e:
        logger.error("Database unreachable: %s", e)
        return 1

    settings = IndexSettings.from_env()
    if args.index:
        settings = replace(settings, index_name=args.index)
    search_index = build_search_index(settings)
    if search_index is None:
        logger.error("Search index is not configured (set OPENSEARCH_URL)")
        return 2

    try:
        result = IndexSyncer(SessionLocal, search_index).reindex_all()
    except Exception as e:
        logger.exception("Reindex failed: %s", e)
        return 2
    if result.errors:
        logger.error("Reindex finished with %d failed documents", len(result.errors))
        return 2
    print(f"Reindexed {result.count} resources into {settings.index_name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
