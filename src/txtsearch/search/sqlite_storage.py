"""SQLite FTS5 segment storage for the document index.

Each index build produces one immutable segment: a SQLite database holding an
FTS5 table of documents plus a small metadata table. The store follows the
repository pattern from Cosmic Python:

- SegmentWriter collects documents and produces segment data
- SegmentStore persists segment data and tracks the latest segment in a
  manifest, so readers only ever open a fully committed build
- Segment is the read handle used by the search engine

Tokenization, the inverted index and bm25 scoring all belong to FTS5.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
import re
import sqlite3
import threading
from typing import Any
from uuid import uuid4

from txtsearch.domain.search import Document
from txtsearch.search.fields import INDEX_COLUMNS, STORED_ONLY_COLUMNS


logger = logging.getLogger(__name__)

DOCUMENTS_TABLE = "documents"
DEFAULT_TOKENIZER = "unicode61 remove_diacritics 2"
SEGMENT_FORMAT_VERSION = "fts5-v1"
STORED_COLUMNS: tuple[str, ...] = INDEX_COLUMNS + STORED_ONLY_COLUMNS

_TOKENIZER_PATTERN = re.compile(r"^[A-Za-z0-9_ ]+$")


def validate_tokenizer(tokenizer: str) -> str:
    """Return the tokenizer spec if it is safe to embed in the table DDL."""
    normalized = " ".join(tokenizer.split())
    if not normalized or not _TOKENIZER_PATTERN.match(normalized):
        msg = f"Invalid FTS5 tokenizer spec '{tokenizer}'"
        raise ValueError(msg)
    return normalized


def _apply_read_pragmas(conn: sqlite3.Connection, *, busy_timeout_ms: int = 30000) -> None:
    conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
    conn.execute("PRAGMA cache_size = -16384")
    conn.execute("PRAGMA mmap_size = 67108864")
    conn.execute("PRAGMA temp_store = MEMORY")
    conn.execute("PRAGMA query_only = 1")


def _apply_write_pragmas(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA cache_size = -16384")
    conn.execute("PRAGMA temp_store = MEMORY")


class SQLiteConnectionPool:
    """Thread-local read connections to one segment database."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield this thread's connection, opening it on first use."""
        connection = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._create_connection()
            self._local.connection = connection
        yield connection

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, cached_statements=32)
        try:
            _apply_read_pragmas(conn)
        except sqlite3.Error:
            conn.close()
            raise
        with self._lock:
            self._connections.append(conn)
        return conn

    def close_all(self) -> None:
        """Close every connection handed out by this pool."""
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as exc:
                logger.warning("Failed to close SQLite connection for %s: %s", self.db_path, exc)
        self._local = threading.local()


@dataclass(slots=True)
class Segment:
    """Read handle on one committed index segment."""

    db_path: Path
    segment_id: str
    created_at: datetime
    doc_count: int
    tokenizer: str
    _pool: SQLiteConnectionPool | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self._pool is None:
            self._pool = SQLiteConnectionPool(self.db_path)

    def match(self, expression: str, weights: Sequence[float]) -> list[tuple[int, float]]:
        """Return (rowid, score) for every document matching ``expression``.

        Scores are negated FTS5 bm25 values, so larger is better.

        Raises:
            sqlite3.Error: propagated unchanged for the engine to classify.
        """
        placeholders = ", ".join("?" for _ in weights)
        weight_args = f", {placeholders}" if placeholders else ""
        query = (
            f"SELECT rowid, -bm25({DOCUMENTS_TABLE}{weight_args}) FROM {DOCUMENTS_TABLE} "
            f"WHERE {DOCUMENTS_TABLE} MATCH ?"
        )
        params = (*(float(weight) for weight in weights), expression)
        with self._pool.get_connection() as conn:
            return [(int(rowid), float(score)) for rowid, score in conn.execute(query, params)]

    def get_stored_field(self, rowid: int, column: str) -> str | None:
        if column not in STORED_COLUMNS:
            msg = f"Unknown stored field '{column}'. Available: {list(STORED_COLUMNS)}"
            raise ValueError(msg)
        with self._pool.get_connection() as conn:
            row = conn.execute(f"SELECT {column} FROM {DOCUMENTS_TABLE} WHERE rowid = ?", (rowid,)).fetchone()
        return None if row is None else row[0]

    def get_document(self, rowid: int) -> Document | None:
        with self._pool.get_connection() as conn:
            row = conn.execute(
                f"SELECT filename, content, path FROM {DOCUMENTS_TABLE} WHERE rowid = ?",
                (rowid,),
            ).fetchone()
        if row is None:
            return None
        filename, content, path = row
        return Document(filename=filename, content=content or "", path=path)

    def close(self) -> None:
        if self._pool:
            self._pool.close_all()


class SegmentStore:
    """Directory of segment databases plus a manifest naming the live one."""

    MANIFEST_FILENAME = "manifest.json"
    DB_SUFFIX = ".db"
    TMP_SUFFIX = ".tmp"

    def __init__(self, directory: str | Path, *, create: bool = True) -> None:
        self.directory = Path(directory)
        if create:
            self.directory.mkdir(parents=True, exist_ok=True)
        self._manifest_path = self.directory / self.MANIFEST_FILENAME

    def save(self, segment_data: dict[str, Any]) -> Path:
        """Write a segment database, then point the manifest at it.

        The database is built under a temporary name and renamed into place
        once committed, so a concurrent reader never opens a partial segment.
        """
        segment_id = segment_data.get("segment_id") or uuid4().hex
        tokenizer = validate_tokenizer(segment_data.get("tokenizer") or DEFAULT_TOKENIZER)
        db_path = self._db_path(segment_id)
        tmp_path = db_path.with_name(db_path.name + self.TMP_SUFFIX)
        if tmp_path.exists():
            tmp_path.unlink()

        conn = None
        try:
            conn = sqlite3.connect(tmp_path, cached_statements=0)
            _apply_write_pragmas(conn)
            self._create_schema(conn, tokenizer)
            self._store_metadata(conn, segment_id, tokenizer, segment_data)
            self._store_documents(conn, segment_data)
            conn.commit()
            conn.execute(f"INSERT INTO {DOCUMENTS_TABLE}({DOCUMENTS_TABLE}) VALUES ('optimize')")
            conn.commit()
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        except sqlite3.Error as exc:
            if conn is not None:
                conn.close()
                conn = None
            self._remove_quietly(tmp_path)
            raise RuntimeError(f"Failed to save SQLite segment: {exc}") from exc
        finally:
            if conn is not None:
                try:
                    conn.close()
                except sqlite3.Error as close_error:
                    logger.warning("Failed to close SQLite connection for %s: %s", tmp_path, close_error)

        os.replace(tmp_path, db_path)
        self._update_manifest(segment_id, segment_data)
        logger.info("Saved segment %s with %d document(s)", segment_id, segment_data.get("doc_count", 0))
        return db_path

    def _create_schema(self, conn: sqlite3.Connection, tokenizer: str) -> None:
        columns = ", ".join((*INDEX_COLUMNS, *(f"{column} UNINDEXED" for column in STORED_ONLY_COLUMNS)))
        conn.executescript(f"""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE VIRTUAL TABLE IF NOT EXISTS {DOCUMENTS_TABLE} USING fts5(
                {columns},
                tokenize = '{tokenizer}'
            );
        """)

    def _store_metadata(
        self,
        conn: sqlite3.Connection,
        segment_id: str,
        tokenizer: str,
        segment_data: dict[str, Any],
    ) -> None:
        created_at = segment_data.get("created_at") or datetime.now(timezone.utc).isoformat()
        metadata = [
            ("segment_id", segment_id),
            ("created_at", created_at),
            ("doc_count", str(int(segment_data.get("doc_count", 0)))),
            ("tokenizer", tokenizer),
            ("format_version", SEGMENT_FORMAT_VERSION),
        ]
        conn.executemany("INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)", metadata)

    def _store_documents(self, conn: sqlite3.Connection, segment_data: dict[str, Any]) -> None:
        rows = [
            (rowid, document["filename"], document.get("content", ""), document.get("path"))
            for rowid, document in enumerate(segment_data.get("documents", []), start=1)
        ]
        if rows:
            conn.executemany(
                f"INSERT INTO {DOCUMENTS_TABLE} (rowid, filename, content, path) VALUES (?, ?, ?, ?)",
                rows,
            )

    def _update_manifest(self, segment_id: str, segment_data: dict[str, Any]) -> None:
        manifest_data = {
            "latest_segment_id": segment_id,
            "created_at": segment_data.get("created_at", datetime.now(timezone.utc).isoformat()),
            "doc_count": int(segment_data.get("doc_count", 0)),
        }
        tmp_manifest = self._manifest_path.with_name(self.MANIFEST_FILENAME + self.TMP_SUFFIX)
        tmp_manifest.write_text(json.dumps(manifest_data), encoding="utf-8")
        os.replace(tmp_manifest, self._manifest_path)

    def load(self, segment_id: str) -> Segment | None:
        """Load a segment by id, or None when it is missing or unreadable."""
        db_path = self._db_path(segment_id)
        if not db_path.exists():
            return None

        conn = None
        try:
            conn = sqlite3.connect(db_path)
            metadata = dict(conn.execute("SELECT key, value FROM metadata").fetchall())
            conn.execute(f"SELECT rowid FROM {DOCUMENTS_TABLE} LIMIT 1").fetchall()
        except sqlite3.Error as exc:
            logger.warning("Segment %s is unreadable: %s", db_path, exc)
            return None
        finally:
            if conn is not None:
                conn.close()

        created_at_str = metadata.get("created_at") or datetime.now(timezone.utc).isoformat()
        try:
            created_at = datetime.fromisoformat(created_at_str.replace("Z", "+00:00"))
        except ValueError:
            created_at = datetime.now(timezone.utc)

        return Segment(
            db_path=db_path,
            segment_id=segment_id,
            created_at=created_at,
            doc_count=int(metadata.get("doc_count") or 0),
            tokenizer=metadata.get("tokenizer") or DEFAULT_TOKENIZER,
        )

    def latest(self) -> Segment | None:
        latest_id = self.latest_segment_id()
        return self.load(latest_id) if latest_id else None

    def latest_segment_id(self) -> str | None:
        """Return the manifest's segment id, falling back to the newest file."""
        if self._manifest_path.exists():
            try:
                manifest = json.loads(self._manifest_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Ignoring unreadable manifest %s: %s", self._manifest_path, exc)
            else:
                segment_id = manifest.get("latest_segment_id")
                if segment_id:
                    return str(segment_id)

        db_files = list(self.directory.glob(f"*{self.DB_SUFFIX}"))
        if not db_files:
            return None
        try:
            return max(db_files, key=lambda p: p.stat().st_mtime).stem
        except OSError:
            return None

    def prune_to_segment_ids(self, keep_segment_ids: Sequence[str]) -> None:
        """Remove segment files (and SQLite sidecars) not in the keep list."""
        keep = set(keep_segment_ids)
        for db_file in self.directory.glob(f"*{self.DB_SUFFIX}"):
            if db_file.stem in keep:
                continue
            self._remove_quietly(db_file)
            for sidecar in self.directory.glob(f"{db_file.name}-*"):
                self._remove_quietly(sidecar)

    def _remove_quietly(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove %s: %s", path, exc)

    def _db_path(self, segment_id: str) -> Path:
        return self.directory / f"{segment_id}{self.DB_SUFFIX}"


class SegmentWriter:
    """Collects documents for one segment build."""

    def __init__(self, *, tokenizer: str = DEFAULT_TOKENIZER, segment_id: str | None = None) -> None:
        self.tokenizer = validate_tokenizer(tokenizer)
        self.segment_id = segment_id or uuid4().hex
        self.created_at = datetime.now(timezone.utc)
        self._documents: dict[str, dict[str, Any]] = {}

    def add_document(self, document: Document) -> str:
        """Add a document; its key (path or filename) must be unique."""
        key = document.key
        if key in self._documents:
            raise ValueError(f"Duplicate document for path '{key}'")
        self._documents[key] = {
            "filename": document.filename,
            "content": document.content,
            "path": key,
        }
        return key

    def __len__(self) -> int:
        return len(self._documents)

    def build(self) -> dict[str, Any]:
        """Build segment data for SegmentStore.save."""
        return {
            "segment_id": self.segment_id,
            "created_at": self.created_at.isoformat(),
            "tokenizer": self.tokenizer,
            "documents": list(self._documents.values()),
            "doc_count": len(self._documents),
        }
