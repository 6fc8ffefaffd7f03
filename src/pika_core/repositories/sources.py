from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import psycopg

from pika_core.errors import SourceInUse, UnknownSource
from pika_core.models import Source
from pika_core.repositories.documents import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=12)


def _row_to_source(row: tuple) -> Source:
    return Source(id=row[0], url=row[1], crawl_date=row[2], force_crawl=row[3])


class SourceRepository:
    def __init__(self, conn: psycopg.Connection, documents: DocumentStore | None = None):
        self._conn = conn
        self._documents = documents or DocumentStore(conn)

    @property
    def documents(self) -> DocumentStore:
        return self._documents

    def add_source(self, url: str) -> Source:
        row = self._conn.execute(
            """
            insert into source(url) values (%s)
            on conflict (url) do update set url = excluded.url
            returning id, url, crawl_date, force_crawl
            """,
            (url,),
        ).fetchone()
        self._conn.commit()
        return _row_to_source(row)

    def get_source(self, source_id: int) -> Source:
        row = self._conn.execute(
            "select id, url, crawl_date, force_crawl from source where id=%s",
            (source_id,),
        ).fetchone()
        if not row:
            raise UnknownSource(source_id)
        return _row_to_source(row)

    def list_sources(self) -> list[Source]:
        rows = self._conn.execute(
            "select id, url, crawl_date, force_crawl from source order by id"
        ).fetchall()
        return [_row_to_source(r) for r in rows]

    def stale_sources(
        self,
        max_age: timedelta = DEFAULT_MAX_AGE,
        *,
        now: datetime | None = None,
    ) -> list[Source]:
        """
        Sources due for a crawl: never crawled, crawled longer than `max_age` ago, or flagged.
        """
        cutoff = (now or datetime.now(timezone.utc)) - max_age
        rows = self._conn.execute(
            """
            select id, url, crawl_date, force_crawl
            from source
            where crawl_date is null or crawl_date < %s or force_crawl
            order by id
            """,
            (cutoff,),
        ).fetchall()
        return [_row_to_source(r) for r in rows]

    def mark_crawled(self, source_id: int, crawled_at: datetime | None = None) -> None:
        cur = self._conn.execute(
            "update source set crawl_date=%s, force_crawl=false where id=%s",
            (crawled_at or datetime.now(timezone.utc), source_id),
        )
        if cur.rowcount == 0:
            self._conn.rollback()
            raise UnknownSource(source_id)
        self._conn.commit()

    def request_recrawl(self, source_id: int) -> None:
        cur = self._conn.execute("update source set force_crawl=true where id=%s", (source_id,))
        if cur.rowcount == 0:
            self._conn.rollback()
            raise UnknownSource(source_id)
        self._conn.commit()

    def delete_source(self, source_id: int, *, cascade: bool = False) -> int:
        """
        Removes a source. Returns the number of documents deleted along with it.
        """
        with self._conn.transaction():
            row = self._conn.execute(
                "select id from source where id=%s for update",
                (source_id,),
            ).fetchone()
            if not row:
                raise UnknownSource(source_id)
            count = self._conn.execute(
                "select count(*) from documents where source_id=%s",
                (source_id,),
            ).fetchone()[0]
            if count and not cascade:
                raise SourceInUse(source_id, count)
            deleted = self._documents.delete_for_source(source_id) if count else 0
            self._conn.execute("delete from source where id=%s", (source_id,))
        self._conn.commit()
        logger.info("deleted source %s with %d document(s)", source_id, deleted)
        return deleted
