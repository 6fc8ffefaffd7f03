from __future__ import annotations

import argparse
import json
import logging
from datetime import timedelta
from pathlib import Path

import psycopg

from pika_core.config import Settings, load_settings
from pika_core.db import connect
from pika_core.errors import StoreError
from pika_core.loaders import LoadError, import_entities, load_schemas
from pika_core.migrations.runner import apply_migrations, pending_migrations
from pika_core.repositories import (
    DocumentStore,
    EntityStore,
    SchemaRegistry,
    SearchIndex,
    SourceRepository,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="pika")
    ap.add_argument("--dsn", default=None, help="overrides PG_DSN / POSTGRES_* settings")
    ap.add_argument("--schema", default=None, help="overrides PG_SCHEMA")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_migrate = sub.add_parser("migrate")
    ap_migrate.add_argument("--check", action="store_true", help="list pending migrations only")

    ap_schemas = sub.add_parser("load-schemas")
    ap_schemas.add_argument("path", type=Path)

    ap_import = sub.add_parser("import")
    ap_import.add_argument("path", type=Path)

    ap_source = sub.add_parser("add-source")
    ap_source.add_argument("url")

    sub.add_parser("stale-sources")

    ap_search = sub.add_parser("search")
    ap_search.add_argument("query")
    ap_search.add_argument("--limit", type=int, default=20)

    sub.add_parser("reindex")

    ap_entity = sub.add_parser("entity")
    ap_entity.add_argument("schema_name")
    ap_entity.add_argument("entity_id")

    return ap


def search_index(conn: psycopg.Connection, settings: Settings) -> SearchIndex:
    return SearchIndex(conn, config=settings.search_config)


def source_repository(conn: psycopg.Connection, settings: Settings) -> SourceRepository:
    return SourceRepository(conn, DocumentStore(conn, search_index(conn, settings)))


def _run(args: argparse.Namespace, settings: Settings) -> None:
    dsn = args.dsn or settings.postgres().build_dsn()
    schema = args.schema or settings.pg_schema

    if args.cmd == "migrate" and args.check:
        with connect(dsn, schema=schema) as conn:
            for version in pending_migrations(conn):
                print(version)
        return
    if args.cmd == "migrate":
        applied = apply_migrations(dsn, schema=schema)
        print(f"applied {len(applied)} migration(s)")
        return

    with connect(dsn, schema=schema) as conn:
        index = search_index(conn, settings)
        if args.cmd == "load-schemas":
            schemas = load_schemas(SchemaRegistry(conn), args.path)
            print(f"registered {len(schemas)} schema(s)")
        elif args.cmd == "import":
            count = import_entities(EntityStore(conn), args.path)
            print(f"imported {count} entities")
        elif args.cmd == "add-source":
            source = source_repository(conn, settings).add_source(args.url)
            print(f"{source.id}\t{source.url}")
        elif args.cmd == "stale-sources":
            sources = source_repository(conn, settings).stale_sources(
                timedelta(hours=settings.crawl_max_age_hours)
            )
            for s in sources:
                print(f"{s.id}\t{s.url}")
        elif args.cmd == "search":
            for hit in index.search(args.query, limit=args.limit):
                print(f"{hit.document_id}\t{hit.relevance:.4f}\t{hit.url}\t{hit.title or ''}")
        elif args.cmd == "reindex":
            print(f"reindexed {index.rebuild()} document(s)")
        elif args.cmd == "entity":
            entity = EntityStore(conn).get_entity(args.schema_name, args.entity_id)
            print(json.dumps({"schema": entity.schema, "id": entity.id, "properties": entity.properties}, indent=2))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        _run(args, settings)
    except (StoreError, LoadError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
