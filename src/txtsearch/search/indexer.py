"""Filesystem indexer that commits plain-text documents into a segment.

The indexer walks a data directory for text files, turns each one into a
:class:`Document` (bare file name plus UTF-8 text) and hands the batch to the
segment store. A file that cannot be read is logged, counted as skipped and
recorded in the build result; the rest of the build carries on.

Segment ids are a content fingerprint of the indexed corpus, so rebuilding an
unchanged directory reproduces the same segment id.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from txtsearch.domain.search import Document
from txtsearch.exceptions import EngineIOError
from txtsearch.search.sqlite_storage import (
    DEFAULT_TOKENIZER,
    SEGMENT_FORMAT_VERSION,
    SegmentStore,
    SegmentWriter,
)


if TYPE_CHECKING:
    from txtsearch.config import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexingContext:
    """Immutable description of one index build."""

    data_dir: Path
    index_dir: Path
    suffixes: tuple[str, ...] = (".txt",)
    tokenizer: str = DEFAULT_TOKENIZER

    @classmethod
    def from_settings(cls, settings: Settings) -> IndexingContext:
        return cls(
            data_dir=Path(settings.data_dir),
            index_dir=Path(settings.index_dir),
            suffixes=settings.get_file_suffixes(),
            tokenizer=settings.tokenizer,
        )


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of an indexing run."""

    documents_indexed: int
    documents_skipped: int
    errors: tuple[str, ...]
    segment_id: str | None
    segment_path: Path | None


class DocumentIndexer:
    """Coordinate document loading and segment persistence."""

    def __init__(self, context: IndexingContext) -> None:
        self.context = context
        self._store = SegmentStore(context.index_dir)

    def build_index(self) -> IndexBuildResult:
        """Index every matching file under ``context.data_dir``."""

        documents: list[Document] = []
        errors: list[str] = []
        for path in self._discover_files():
            try:
                documents.append(self._load_document(path))
            except DocumentLoadError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                errors.append(str(exc))

        result = self.index_documents(documents)
        return IndexBuildResult(
            documents_indexed=result.documents_indexed,
            documents_skipped=result.documents_skipped + len(errors),
            errors=tuple(errors) + result.errors,
            segment_id=result.segment_id,
            segment_path=result.segment_path,
        )

    def index_documents(self, documents: Iterable[Document]) -> IndexBuildResult:
        """Commit ``documents`` as a new segment and make it the latest one.

        Raises:
            EngineIOError: if the segment cannot be written.
        """

        writer = SegmentWriter(tokenizer=self.context.tokenizer)
        fingerprinter = _CorpusFingerprintBuilder(writer.tokenizer)
        documents_indexed = 0
        documents_skipped = 0
        errors: list[str] = []

        for document in documents:
            try:
                key = writer.add_document(document)
            except ValueError as exc:
                logger.warning("Failed to index %s: %s", document.key, exc)
                errors.append(f"{document.key}: {exc}")
                documents_skipped += 1
                continue
            fingerprinter.add_document(key, document)
            documents_indexed += 1

        writer.segment_id = fingerprinter.digest()
        segment_data = writer.build()
        try:
            segment_path = self._store.save(segment_data)
        except (RuntimeError, OSError) as exc:
            raise EngineIOError(f"Failed to write index segment to {self.context.index_dir}: {exc}") from exc
        self._store.prune_to_segment_ids((segment_data["segment_id"],))

        logger.info(
            "Indexed %d document(s) into segment %s (%d skipped)",
            documents_indexed,
            segment_data["segment_id"],
            documents_skipped,
        )
        return IndexBuildResult(
            documents_indexed=documents_indexed,
            documents_skipped=documents_skipped,
            errors=tuple(errors),
            segment_id=segment_data["segment_id"],
            segment_path=segment_path,
        )

    # --- internal helpers -------------------------------------------------

    def _discover_files(self) -> Iterator[Path]:
        root = self.context.data_dir
        if not root.is_dir():
            logger.warning("Data directory missing: %s", root)
            return

        suffixes = {suffix.lower() for suffix in self.context.suffixes}
        index_dir = self.context.index_dir.resolve()
        for path in sorted(root.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in suffixes:
                continue
            relative_parts = path.relative_to(root).parts[:-1]
            if any(part.startswith(".") for part in relative_parts):
                continue
            if index_dir in path.resolve().parents:
                continue
            yield path

    def _load_document(self, path: Path) -> Document:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentLoadError(f"Cannot read {path}: {exc}") from exc
        relative = path.relative_to(self.context.data_dir).as_posix()
        return Document(filename=path.name, content=content, path=relative)


class _CorpusFingerprintBuilder:
    """Deterministically hash indexed documents for idempotent segment ids."""

    def __init__(self, tokenizer: str) -> None:
        self._config_digest = hashlib.sha256(f"{SEGMENT_FORMAT_VERSION}|{tokenizer}".encode()).hexdigest()
        self._doc_digests: list[tuple[str, str]] = []

    def add_document(self, key: str, document: Document) -> None:
        serialized = json.dumps(document.model_dump(), sort_keys=True, ensure_ascii=False, separators=(",", ":"))
        self._doc_digests.append((key, hashlib.sha256(serialized.encode("utf-8")).hexdigest()))

    def digest(self) -> str:
        root = hashlib.sha256()
        root.update(self._config_digest.encode("ascii"))
        for key, digest in sorted(self._doc_digests):
            root.update(key.encode("utf-8"))
            root.update(digest.encode("ascii"))
        return root.hexdigest()


class DocumentLoadError(RuntimeError):
    """Raised when a file on disk cannot be converted into a document."""
