from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import psycopg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: str
    path: Path

    def read(self) -> str:
        return self.path.read_text(encoding="utf-8")


def _migrations_dir() -> Path:
    return Path(__file__).resolve().parent / "sql"


def discover_migrations() -> list[Migration]:
    return [Migration(version=p.stem, path=p) for p in sorted(_migrations_dir().glob("*.sql"))]


def _ensure_schema(conn: psycopg.Connection, schema: str) -> None:
    conn.execute(f'create schema if not exists "{schema}"')
    conn.execute(f'set search_path to "{schema}"')


def _ensure_migrations_table(conn: psycopg.Connection) -> None:
    conn.execute(
        """
        create table if not exists schema_migrations (
          version text primary key,
          applied_at timestamptz not null default now()
        )
        """
    )


def applied_versions(conn: psycopg.Connection) -> set[str]:
    rows = conn.execute("select version from schema_migrations").fetchall()
    return {r[0] for r in rows}


def pending_migrations(
    conn: psycopg.Connection,
    migrations: Iterable[Migration] | None = None,
) -> list[str]:
    """
    Versions not yet recorded in schema_migrations, in apply order. A schema that was never
    migrated reports every version.
    """
    if migrations is None:
        migrations = discover_migrations()
    exists = conn.execute("select to_regclass('schema_migrations') is not null").fetchone()[0]
    done = applied_versions(conn) if exists else set()
    return [m.version for m in migrations if m.version not in done]


def apply_migrations(
    dsn: str,
    *,
    schema: str = "public",
    migrations: Iterable[Migration] | None = None,
) -> list[str]:
    """
    Creates the schema/entity/document tables and the search index in `schema`.

    Idempotent: recorded versions are skipped, and each migration commits together with its
    schema_migrations row so a failing file leaves earlier ones applied and itself absent.
    """
    if migrations is None:
        migrations = discover_migrations()

    applied: list[str] = []
    with psycopg.connect(dsn) as conn:
        conn.execute("set timezone to 'UTC'")
        _ensure_schema(conn, schema)
        _ensure_migrations_table(conn)
        conn.commit()
        done = applied_versions(conn)

        for mig in migrations:
            if mig.version in done:
                continue
            with conn.transaction():
                conn.execute(mig.read())
                conn.execute(
                    "insert into schema_migrations(version) values (%s)",
                    (mig.version,),
                )
            conn.commit()
            logger.info("applied migration %s to schema %s", mig.version, schema)
            applied.append(mig.version)

    return applied
