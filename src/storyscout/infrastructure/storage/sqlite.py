"""SQLite record store implementation."""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Self

from storyscout.core.exceptions import StorageError
from storyscout.core.models import Publication
from storyscout.core.protocols import PublicationFilter
from storyscout.utils.datetime import utc_now
from storyscout.utils.text import is_pdf_url

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS publications (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    authors TEXT,
    abstract TEXT,
    doi TEXT,
    url TEXT,
    published_at TEXT,
    publication_type TEXT,
    institute TEXT,
    open_access INTEGER NOT NULL DEFAULT 0,
    citation TEXT,
    enrichment_status TEXT NOT NULL DEFAULT 'pending',
    enriched_abstract TEXT,
    enriched_keywords TEXT,
    enriched_journal TEXT,
    enriched_source TEXT,
    full_text_snippet TEXT,
    word_count INTEGER NOT NULL DEFAULT 0,
    analysis_status TEXT NOT NULL DEFAULT 'pending',
    press_score REAL,
    public_accessibility REAL,
    societal_relevance REAL,
    novelty_factor REAL,
    storytelling_potential REAL,
    media_timeliness REAL,
    pitch_suggestion TEXT,
    target_audience TEXT,
    suggested_angle TEXT,
    reasoning TEXT,
    llm_model TEXT,
    analysis_cost REAL,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_publications_enrichment ON publications(enrichment_status);
CREATE INDEX IF NOT EXISTS idx_publications_analysis ON publications(analysis_status);
CREATE INDEX IF NOT EXISTS idx_publications_created ON publications(created_at);
"""

COLUMNS = tuple(Publication.model_fields)
ORDERABLE = {"created_at", "published_at", "press_score"}


def _to_db(column: str, value: Any) -> Any:
    """Convert a model value to its column representation."""
    if value is None:
        return None
    if column == "enriched_keywords":
        return json.dumps(list(value), ensure_ascii=False)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _from_row(row: sqlite3.Row) -> Publication:
    data = dict(row)
    if data.get("enriched_keywords"):
        data["enriched_keywords"] = json.loads(data["enriched_keywords"])
    data["open_access"] = bool(data.get("open_access"))
    return Publication.model_validate(data)


class PublicationStorage:
    """SQLite store for publication records.

    A single connection is shared by the CLI thread and one job worker
    thread, so every statement runs under a lock.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.create_function("is_pdf_url", 1, lambda url: int(is_pdf_url(url)), deterministic=True)
        return self._conn

    def initialize(self) -> None:
        """Initialize database schema."""
        with self._lock:
            conn = self.connect()
            conn.executescript(SCHEMA)
            conn.commit()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit context manager and close resources."""
        self.close()

    # Writes

    def insert(self, publications: Iterable[Publication]) -> int:
        """Insert or replace full records. Returns the number written."""
        placeholders = ", ".join("?" for _ in COLUMNS)
        updates = ", ".join(f"{col} = excluded.{col}" for col in COLUMNS if col != "id")
        sql = (
            f"INSERT INTO publications ({', '.join(COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}"
        )
        now = utc_now()
        rows = []
        for pub in publications:
            values = pub.model_dump()
            values["created_at"] = values.get("created_at") or now
            rows.append(tuple(_to_db(col, values[col]) for col in COLUMNS))
        try:
            with self._lock:
                conn = self.connect()
                conn.executemany(sql, rows)
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to insert publications: {exc}") from exc
        return len(rows)

    def update(self, publication_id: str, fields: dict[str, Any]) -> None:
        """Persist ``fields`` on one record; ``updated_at`` is stamped when absent."""
        unknown = set(fields) - set(COLUMNS)
        if unknown:
            raise StorageError(f"Unknown publication fields: {sorted(unknown)}")
        fields = dict(fields)
        fields.setdefault("updated_at", utc_now())

        assignments = ", ".join(f"{col} = ?" for col in fields)
        params = [_to_db(col, value) for col, value in fields.items()]
        params.append(publication_id)
        try:
            with self._lock:
                conn = self.connect()
                cur = conn.execute(f"UPDATE publications SET {assignments} WHERE id = ?", params)
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to update publication {publication_id}: {exc}") from exc
        if cur.rowcount == 0:
            raise StorageError(f"Publication {publication_id} not found")

    # Reads

    def get(self, publication_id: str) -> Publication | None:
        """Fetch one record by id."""
        with self._lock:
            row = self.connect().execute("SELECT * FROM publications WHERE id = ?", (publication_id,)).fetchone()
        return _from_row(row) if row else None

    def query(
        self,
        criteria: PublicationFilter,
        order: str = "created_at",
        limit: int | None = None,
    ) -> list[Publication]:
        """Return matching records ordered by ``order`` descending, nulls last."""
        if order not in ORDERABLE:
            raise StorageError(f"Cannot order publications by {order!r}")

        clauses: list[str] = []
        params: list[Any] = []
        if criteria.enrichment_statuses is not None:
            clauses.append(f"enrichment_status IN ({', '.join('?' for _ in criteria.enrichment_statuses)})")
            params.extend(s.value for s in criteria.enrichment_statuses)
        if criteria.analysis_statuses is not None:
            clauses.append(f"analysis_status IN ({', '.join('?' for _ in criteria.analysis_statuses)})")
            params.extend(s.value for s in criteria.analysis_statuses)
        if criteria.has_doi is True:
            clauses.append("doi IS NOT NULL AND doi != ''")
        elif criteria.has_doi is False:
            clauses.append("(doi IS NULL OR doi = '')")
        if criteria.pdf_url_or_abstract:
            clauses.append("(is_pdf_url(url) OR (abstract IS NOT NULL AND abstract != ''))")
        if criteria.min_word_count:
            clauses.append("word_count >= ?")
            params.append(criteria.min_word_count)

        sql = "SELECT * FROM publications"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY {order} IS NULL, {order} DESC, rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        try:
            with self._lock:
                rows = self.connect().execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"Publication query failed: {exc}") from exc
        return [_from_row(row) for row in rows]

    def count(self) -> int:
        """Total number of records."""
        with self._lock:
            return self.connect().execute("SELECT COUNT(*) FROM publications").fetchone()[0]


__all__ = ["PublicationStorage", "SCHEMA"]
