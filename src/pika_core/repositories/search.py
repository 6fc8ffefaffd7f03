from __future__ import annotations

import logging
from collections.abc import Iterator

import psycopg

from pika_core.models import SearchHit

logger = logging.getLogger(__name__)

_TSV = (
    "setweight(to_tsvector(%(config)s::regconfig, coalesce(%(title)s::text, '')), 'A')"
    " || setweight(to_tsvector(%(config)s::regconfig, %(content)s::text), 'B')"
)


class SearchIndex:
    """
    Full-text projection of documents(title, content), one row per document id.

    add/replace/remove never commit: they run inside the caller's document transaction so
    the row and its index entry become visible together.
    """

    def __init__(self, conn: psycopg.Connection, *, config: str = "english"):
        self._conn = conn
        self._config = config

    @property
    def config(self) -> str:
        return self._config

    def add(self, document_id: int, title: str | None, content: str) -> None:
        self._conn.execute(
            f"""
            insert into document_search(document_id, title, content, search_tsv, updated_at)
            values (%(document_id)s, %(title)s, %(content)s, {_TSV}, now())
            """,
            {"document_id": document_id, "title": title, "content": content, "config": self._config},
        )

    def replace(self, document_id: int, title: str | None, content: str) -> None:
        self.remove(document_id)
        self.add(document_id, title, content)

    def remove(self, document_id: int) -> None:
        self._conn.execute("delete from document_search where document_id=%s", (document_id,))

    def search(self, query: str, *, limit: int | None = None) -> Iterator[SearchHit]:
        """
        Yields hits by descending relevance, ties broken by ascending document id.
        """
        if not query.strip():
            return
        sql = """
            with q as (select plainto_tsquery(%(config)s::regconfig, %(query)s::text) as tsq)
            select
              i.document_id,
              ts_rank(i.search_tsv, q.tsq) as relevance,
              d.url,
              d.title,
              ts_headline(
                %(config)s::regconfig, i.content, q.tsq,
                'StartSel=<b>, StopSel=</b>, MaxWords=16, MinWords=4'
              ) as snippet
            from document_search i
            cross join q
            join documents d on d.id = i.document_id
            where i.search_tsv @@ q.tsq
            order by relevance desc, i.document_id asc
        """
        params: dict[str, object] = {"config": self._config, "query": query}
        if limit is not None:
            sql += " limit %(limit)s"
            params["limit"] = limit
        with self._conn.cursor() as cur:
            cur.execute(sql, params)
            for row in cur:
                yield SearchHit(
                    document_id=row[0],
                    relevance=float(row[1]),
                    url=row[2],
                    title=row[3],
                    snippet=row[4],
                )

    def count(self) -> int:
        row = self._conn.execute("select count(*) from document_search").fetchone()
        return int(row[0]) if row else 0

    def rebuild(self) -> int:
        """
        Recomputes every entry from the documents table alone.
        """
        with self._conn.transaction():
            self._conn.execute("lock table document_search in exclusive mode")
            self._conn.execute("delete from document_search")
            cur = self._conn.execute(
                """
                insert into document_search(document_id, title, content, search_tsv, updated_at)
                select
                  d.id, d.title, d.content,
                  setweight(to_tsvector(%(config)s::regconfig, coalesce(d.title, '')), 'A')
                    || setweight(to_tsvector(%(config)s::regconfig, d.content), 'B'),
                  now()
                from documents d
                """,
                {"config": self._config},
            )
            rebuilt = cur.rowcount
        self._conn.commit()
        logger.info("rebuilt search index: %d document(s)", rebuilt)
        return rebuilt
