"""PostgresML document store: documents, pipelines and vector recall over psycopg.

Chunking and embedding run inside the database through ``pgml.chunk`` and
``pgml.embed``; vectors are stored with pgvector and searched by cosine
distance.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

import psycopg
import structlog
from psycopg.types.json import Jsonb
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .errors import StoreError
from .models import DocumentUnit, Pipeline, RecallHit

logger = structlog.get_logger(__name__)


class DocumentStore(Protocol):
    """The remote store operations used by the embedding pipeline and search."""

    def add_pipeline(self, pipeline: Pipeline) -> bool: ...

    def upsert_documents(self, documents: Sequence[DocumentUnit]) -> None: ...

    def get_documents(self, filter: Dict[str, Any], limit: Optional[int] = None) -> List[Dict[str, Any]]: ...

    def delete_documents(self, filter: Dict[str, Any]) -> int: ...

    def vector_recall(self, text: str, pipeline: Pipeline, limit: int) -> List[RecallHit]: ...


SCHEMA_STATEMENTS = [
    "CREATE EXTENSION IF NOT EXISTS vector",
    "CREATE EXTENSION IF NOT EXISTS pgml",
    """
    CREATE TABLE IF NOT EXISTS supersearch_document (
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        text TEXT NOT NULL,
        metadata JSONB NOT NULL DEFAULT '{}',
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (collection, id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS supersearch_pipeline (
        collection TEXT NOT NULL,
        name TEXT NOT NULL,
        model TEXT NOT NULL,
        model_parameters JSONB NOT NULL DEFAULT '{}',
        splitter TEXT NOT NULL,
        splitter_parameters JSONB NOT NULL DEFAULT '{}',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (collection, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS supersearch_chunk (
        collection TEXT NOT NULL,
        pipeline TEXT NOT NULL,
        document_id TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        text TEXT NOT NULL,
        embedding vector NOT NULL,
        PRIMARY KEY (collection, pipeline, document_id, chunk_index),
        FOREIGN KEY (collection, document_id)
            REFERENCES supersearch_document (collection, id) ON DELETE CASCADE,
        FOREIGN KEY (collection, pipeline)
            REFERENCES supersearch_pipeline (collection, name) ON DELETE CASCADE
    )
    """,
]

INSERT_PIPELINE_SQL = """
    INSERT INTO supersearch_pipeline (collection, name, model, model_parameters, splitter, splitter_parameters)
    VALUES (%(collection)s, %(name)s, %(model)s, %(model_parameters)s, %(splitter)s, %(splitter_parameters)s)
    ON CONFLICT (collection, name) DO NOTHING
"""

UPSERT_DOCUMENT_SQL = """
    INSERT INTO supersearch_document (collection, id, text, metadata)
    VALUES (%(collection)s, %(id)s, %(text)s, %(metadata)s)
    ON CONFLICT (collection, id) DO UPDATE SET
        text = EXCLUDED.text,
        metadata = EXCLUDED.metadata,
        updated_at = now()
"""

DELETE_CHUNKS_SQL = """
    DELETE FROM supersearch_chunk
    WHERE collection = %(collection)s AND document_id = ANY(%(ids)s)
"""

# Chunk and embed documents under pipelines; callers append the row filter.
EMBED_CHUNKS_SQL = """
    INSERT INTO supersearch_chunk (collection, pipeline, document_id, chunk_index, text, embedding)
    SELECT d.collection, p.name, d.id, c.chunk_index, c.chunk,
           pgml.embed(p.model, c.chunk, p.model_parameters)::vector
    FROM supersearch_document d
    JOIN supersearch_pipeline p ON p.collection = d.collection
    CROSS JOIN LATERAL pgml.chunk(p.splitter, d.text, p.splitter_parameters) AS c(chunk_index, chunk)
    WHERE d.collection = %(collection)s
"""

VECTOR_RECALL_SQL = """
    WITH query AS (
        SELECT pgml.embed(p.model, %(query)s, p.model_parameters)::vector AS embedding
        FROM supersearch_pipeline p
        WHERE p.collection = %(collection)s AND p.name = %(pipeline)s
    )
    SELECT 1 - (c.embedding <=> query.embedding) AS score, c.text, d.metadata
    FROM supersearch_chunk c
    JOIN supersearch_document d ON d.collection = c.collection AND d.id = c.document_id
    CROSS JOIN query
    WHERE c.collection = %(collection)s AND c.pipeline = %(pipeline)s
    ORDER BY c.embedding <=> query.embedding
    LIMIT %(limit)s
"""


class PostgresDocumentStore:
    """Document collection stored in a PostgresML database.

    Every call opens its own connection and runs in a single transaction, so
    the store can be shared by concurrent PDF workers.
    """

    def __init__(self, database_url: str, collection: str):
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        self.collection = collection
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    @retry(
        retry=retry_if_exception_type(psycopg.OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.database_url)

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[psycopg.Cursor]:
        """Cursor inside one transaction; psycopg errors become StoreError."""
        try:
            self.ensure_schema()
            with self._connect() as conn:
                with conn.cursor() as cur:
                    yield cur
        except psycopg.Error as e:
            logger.error("store_operation_failed", operation=operation, error=str(e))
            raise StoreError(operation, str(e)) from e

    def ensure_schema(self) -> None:
        """Create extensions and tables once per store instance."""
        with self._schema_lock:
            if self._schema_ready:
                return
            with self._connect() as conn:
                with conn.cursor() as cur:
                    for statement in SCHEMA_STATEMENTS:
                        cur.execute(statement)
            self._schema_ready = True
            logger.info("store_schema_ready", collection=self.collection)

    def add_pipeline(self, pipeline: Pipeline) -> bool:
        """
        Register a pipeline for the collection.

        A pipeline that did not exist yet is backfilled: every document already
        in the collection is chunked and embedded under it.

        Returns:
            True if the pipeline was created, False if it already existed
        """
        with self._cursor("add_pipeline") as cur:
            cur.execute(INSERT_PIPELINE_SQL, {
                "collection": self.collection,
                "name": pipeline.name,
                "model": pipeline.model_name,
                "model_parameters": Jsonb(pipeline.model_parameters),
                "splitter": pipeline.splitter_name,
                "splitter_parameters": Jsonb(pipeline.splitter_parameters),
            })
            created = cur.rowcount == 1
            if created:
                cur.execute(EMBED_CHUNKS_SQL + " AND p.name = %(pipeline)s", {
                    "collection": self.collection,
                    "pipeline": pipeline.name,
                })
                logger.info("pipeline_added", collection=self.collection, pipeline=pipeline.name,
                            backfilled_chunks=cur.rowcount)
            else:
                logger.info("pipeline_exists", collection=self.collection, pipeline=pipeline.name)
        return created

    def upsert_documents(self, documents: Sequence[DocumentUnit]) -> None:
        """Insert or replace documents and re-embed them under every pipeline."""
        if not documents:
            return

        ids = [doc.id for doc in documents]
        with self._cursor("upsert_documents") as cur:
            cur.executemany(UPSERT_DOCUMENT_SQL, [
                {
                    "collection": self.collection,
                    "id": doc.id,
                    "text": doc.text,
                    "metadata": Jsonb(doc.metadata()),
                }
                for doc in documents
            ])
            cur.execute(DELETE_CHUNKS_SQL, {"collection": self.collection, "ids": ids})
            cur.execute(EMBED_CHUNKS_SQL + " AND d.id = ANY(%(ids)s)", {
                "collection": self.collection,
                "ids": ids,
            })
        logger.info("documents_upserted", collection=self.collection, count=len(documents))

    def get_documents(self, filter: Dict[str, Any], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Documents whose metadata contains ``filter``.

        Args:
            filter: Metadata key/values that must all match, e.g. ``{"path": "a.md"}``
            limit: Maximum number of documents to return (optional)
        """
        query = """
            SELECT id, text, metadata FROM supersearch_document
            WHERE collection = %(collection)s AND metadata @> %(filter)s
            ORDER BY updated_at
        """
        params: Dict[str, Any] = {"collection": self.collection, "filter": Jsonb(filter)}
        if limit:
            query += " LIMIT %(limit)s"
            params["limit"] = limit

        with self._cursor("get_documents") as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        return [{"id": row[0], "text": row[1], "metadata": row[2]} for row in rows]

    def delete_documents(self, filter: Dict[str, Any]) -> int:
        """Delete documents whose metadata contains ``filter``; chunks cascade."""
        with self._cursor("delete_documents") as cur:
            cur.execute("""
                DELETE FROM supersearch_document
                WHERE collection = %(collection)s AND metadata @> %(filter)s
            """, {"collection": self.collection, "filter": Jsonb(filter)})
            deleted = cur.rowcount
        logger.info("documents_deleted", collection=self.collection, count=deleted)
        return deleted

    def vector_recall(self, text: str, pipeline: Pipeline, limit: int) -> List[RecallHit]:
        """Closest chunks to ``text`` under ``pipeline``, best first."""
        with self._cursor("vector_recall") as cur:
            cur.execute(VECTOR_RECALL_SQL, {
                "query": text,
                "collection": self.collection,
                "pipeline": pipeline.name,
                "limit": limit,
            })
            rows = cur.fetchall()
        return [RecallHit(score=row[0], content=row[1], metadata=row[2] or {}) for row in rows]
