"""SQLite implementation of the document store."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from knowledge_hub.models.knowledge import DocumentVersion, KnowledgeDocument
from knowledge_hub.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class SQLiteDocumentStore(DocumentStore):
    """Persists documents and version snapshots as JSON rows in SQLite."""

    def __init__(self, db_path: str):
        """Initialize SQLite store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialized = False

    async def open(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()
        self._initialized = True

    async def close(self) -> None:
        # Connections are per-operation, nothing is held open.
        self._initialized = False

    @contextmanager
    def _get_connection(self):
        """Get database connection with context management."""
        if not self._initialized:
            raise RuntimeError(f"SQLiteDocumentStore at {self.db_path} is not open")
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            conn.close()

    def _init_schema(self):
        """Initialize database schema if not exists."""
        self._initialized = True
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    document_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    doc_type TEXT NOT NULL CHECK(
                        doc_type IN ('markdown', 'pdf', 'excel', 'csv', 'word', 'txt')
                    ),
                    publishing_status TEXT NOT NULL CHECK(
                        publishing_status IN ('draft', 'published', 'archived')
                    ),
                    created_at TIMESTAMP NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS document_tags (
                    document_id TEXT NOT NULL
                        REFERENCES documents(document_id) ON DELETE CASCADE,
                    tag TEXT NOT NULL,
                    PRIMARY KEY (document_id, tag)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS document_versions (
                    version_id TEXT PRIMARY KEY,
                    document_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    data TEXT NOT NULL
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_doc_type ON documents(doc_type)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_tag ON document_tags(tag)")
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_version_doc "
                "ON document_versions(document_id, version)"
            )

            logger.info(f"Database schema initialized at {self.db_path}")

    @staticmethod
    def _to_document(row: sqlite3.Row) -> KnowledgeDocument:
        return KnowledgeDocument.model_validate_json(row["data"])

    async def get_document(self, document_id: str) -> KnowledgeDocument | None:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT data FROM documents WHERE document_id = ?", (document_id,)
            ).fetchone()
            return self._to_document(row) if row else None

    async def save_document(self, document: KnowledgeDocument) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO documents
                    (document_id, title, doc_type, publishing_status, created_at, data)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(document_id) DO UPDATE SET
                    title = excluded.title,
                    doc_type = excluded.doc_type,
                    publishing_status = excluded.publishing_status,
                    data = excluded.data
                """,
                (
                    document.id,
                    document.title,
                    document.type,
                    document.publishing_status,
                    document.metadata.created.isoformat(),
                    document.model_dump_json(),
                ),
            )
            cursor.execute("DELETE FROM document_tags WHERE document_id = ?", (document.id,))
            cursor.executemany(
                "INSERT OR IGNORE INTO document_tags (document_id, tag) VALUES (?, ?)",
                [(document.id, tag) for tag in document.metadata.tags],
            )

    async def delete_document(self, document_id: str) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM documents WHERE document_id = ?", (document_id,))
            cursor.execute(
                "DELETE FROM document_versions WHERE document_id = ?", (document_id,)
            )
            logger.debug(f"Deleted document {document_id} and {cursor.rowcount} versions")

    async def get_all_documents(self) -> list[KnowledgeDocument]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT data FROM documents ORDER BY created_at, rowid"
            ).fetchall()
            return [self._to_document(row) for row in rows]

    async def get_documents_by_type(self, doc_type: str) -> list[KnowledgeDocument]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT data FROM documents WHERE doc_type = ? ORDER BY created_at, rowid",
                (doc_type,),
            ).fetchall()
            return [self._to_document(row) for row in rows]

    async def get_documents_by_tag(self, tag: str) -> list[KnowledgeDocument]:
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT d.data FROM documents d
                JOIN document_tags t ON t.document_id = d.document_id
                WHERE t.tag = ?
                ORDER BY d.created_at, d.rowid
                """,
                (tag,),
            ).fetchall()
            return [self._to_document(row) for row in rows]

    async def save_version(self, version: DocumentVersion) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO document_versions
                    (version_id, document_id, version, created_at, data)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    version.id,
                    version.document_id,
                    version.version,
                    version.created.isoformat(),
                    version.model_dump_json(),
                ),
            )

    async def get_version_history(self, document_id: str) -> list[DocumentVersion]:
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT data FROM document_versions
                WHERE document_id = ?
                ORDER BY version DESC
                """,
                (document_id,),
            ).fetchall()
            return [DocumentVersion.model_validate_json(row["data"]) for row in rows]
