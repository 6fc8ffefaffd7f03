from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

import psycopg

from pika_core.db import lock_key
from pika_core.errors import IndexSyncFailed, NotFound, UnknownSource
from pika_core.models import Document
from pika_core.repositories.search import SearchIndex
from pika_core.util import content_fingerprint

logger = logging.getLogger(__name__)

_COLUMNS = "id, source_id, url, hash, retrieved_date, etag, title, content"


def _row_to_document(row: tuple) -> Document:
    return Document(
        id=row[0],
        source_id=row[1],
        url=row[2],
        hash=row[3],
        retrieved_date=row[4],
        etag=row[5],
        title=row[6],
        content=row[7],
    )


def sync_index(document_id: int | None, step: Callable[[], None]) -> None:
    """
    Runs one index update inside the document transaction. A database failure there is
    re-raised as IndexSyncFailed so the enclosing transaction rolls back the row write too.
    """
    try:
        step()
    except psycopg.Error as exc:
        raise IndexSyncFailed(document_id, str(exc)) from exc


class DocumentStore:
    def __init__(self, conn: psycopg.Connection, index: SearchIndex | None = None):
        self._conn = conn
        self._index = index or SearchIndex(conn)

    @property
    def index(self) -> SearchIndex:
        return self._index

    def upsert_document(
        self,
        source_id: int,
        content: str,
        *,
        url: str | None = None,
        title: str | None = None,
        etag: str | None = None,
        retrieved_at: datetime | None = None,
    ) -> Document:
        """
        Stores crawled content for `url` (the source URL when omitted).

        Unchanged content (same fingerprint) only refreshes retrieved_date and etag (a missing
        etag keeps the stored one); changed content replaces the row and its search index entry.
        The owning source of an existing document never changes.
        """
        retrieved_at = retrieved_at or datetime.now(timezone.utc)
        digest = content_fingerprint(content)

        with self._conn.transaction():
            source = self._conn.execute(
                "select url from source where id=%s for share",
                (source_id,),
            ).fetchone()
            if not source:
                raise UnknownSource(source_id)
            doc_url = url or source[0]
            lock_key(self._conn, f"document:{doc_url}")

            existing = self._conn.execute(
                "select id, hash from documents where url=%s for update",
                (doc_url,),
            ).fetchone()

            if existing is None:
                row = self._conn.execute(
                    f"""
                    insert into documents (source_id, url, hash, retrieved_date, etag, title, content)
                    values (%s, %s, %s, %s, %s, %s, %s)
                    returning {_COLUMNS}
                    """,
                    (source_id, doc_url, digest, retrieved_at, etag, title, content),
                ).fetchone()
                doc = _row_to_document(row)
                sync_index(doc.id, lambda: self._index.add(doc.id, title, content))
                logger.debug("inserted document %s (%s)", doc.id, doc_url)
            elif existing[1] == digest:
                row = self._conn.execute(
                    f"""
                    update documents
                    set retrieved_date=%s, etag=coalesce(%s::text, etag)
                    where id=%s
                    returning {_COLUMNS}
                    """,
                    (retrieved_at, etag, existing[0]),
                ).fetchone()
                doc = _row_to_document(row)
                logger.debug("document %s unchanged; refreshed retrieval metadata", doc.id)
            else:
                row = self._conn.execute(
                    f"""
                    update documents
                    set hash=%s, retrieved_date=%s, etag=%s, title=%s, content=%s
                    where id=%s
                    returning {_COLUMNS}
                    """,
                    (digest, retrieved_at, etag, title, content, existing[0]),
                ).fetchone()
                doc = _row_to_document(row)
                sync_index(doc.id, lambda: self._index.replace(doc.id, title, content))
                logger.debug("updated document %s with new content", doc.id)
        self._conn.commit()
        return doc

    def get_document(self, document_id: int) -> Document:
        row = self._conn.execute(
            f"select {_COLUMNS} from documents where id=%s",
            (document_id,),
        ).fetchone()
        if not row:
            raise NotFound(f"Document not found: {document_id}")
        return _row_to_document(row)

    def get_document_by_url(self, url: str) -> Document:
        row = self._conn.execute(
            f"select {_COLUMNS} from documents where url=%s",
            (url,),
        ).fetchone()
        if not row:
            raise NotFound(f"Document not found: {url}")
        return _row_to_document(row)

    def list_documents(self, source_id: int) -> list[Document]:
        rows = self._conn.execute(
            f"select {_COLUMNS} from documents where source_id=%s order by id",
            (source_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def delete_document(self, document_id: int) -> None:
        with self._conn.transaction():
            self._delete(document_id)
        self._conn.commit()

    def _delete(self, document_id: int) -> None:
        found = self._conn.execute("select url from documents where id=%s", (document_id,)).fetchone()
        if not found:
            raise NotFound(f"Document not found: {document_id}")
        # same lock order as upsert_document: url key first, then the row
        lock_key(self._conn, f"document:{found[0]}")
        row = self._conn.execute(
            "select id from documents where id=%s for update",
            (document_id,),
        ).fetchone()
        if not row:
            raise NotFound(f"Document not found: {document_id}")
        sync_index(document_id, lambda: self._index.remove(document_id))
        self._conn.execute("delete from documents where id=%s", (document_id,))
        logger.debug("deleted document %s", document_id)

    def delete_for_source(self, source_id: int) -> int:
        """
        Deletes every document of a source with its index entries. Caller owns the transaction.
        """
        rows = self._conn.execute(
            "select id from documents where source_id=%s order by id",
            (source_id,),
        ).fetchall()
        for (document_id,) in rows:
            self._delete(document_id)
        return len(rows)
