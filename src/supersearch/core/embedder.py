"""Incremental embedding run: changed files -> extracted units -> batched upserts."""

import threading
import time
from typing import Callable, List, Sequence

from .batching import UpsertQueue
from .changes import partition_by_kind, select_changed_files
from .identity import build_pipeline
from .logging_config import get_audit_logger, log_embed_run
from .models import DocumentUnit, EmbedStats, FileDescriptor
from .pdf_pages import extract_pages
from .scheduler import process_all
from .settings import SettingsManager, SuperSearchSettings
from .store import DocumentStore
from .vault import Vault

logger = get_audit_logger("embedder")


def now_ms() -> int:
    return int(time.time() * 1000)


class Embedder:
    """Push a set of vault files into the document store.

    Text files share one queue of ``text_batch_size``. PDFs are extracted
    ``pdf_concurrency`` at a time, each into its own queue of ``pdf_batch_size``.
    """

    def __init__(self, vault: Vault, store: DocumentStore, settings: SuperSearchSettings):
        self.vault = vault
        self.store = store
        self.settings = settings
        self._stats_lock = threading.Lock()

    def _sink(self, stats: EmbedStats) -> Callable[[Sequence[DocumentUnit]], None]:
        def upsert(batch: Sequence[DocumentUnit]) -> None:
            self.store.upsert_documents(batch)
            with self._stats_lock:
                stats.batches_flushed += 1
        return upsert

    def embed_files(self, files: List[FileDescriptor], stats: EmbedStats) -> EmbedStats:
        text_files, pdf_files = partition_by_kind(files)
        logger.info("embedding_files", text_files=len(text_files), pdf_files=len(pdf_files))

        self.embed_text_files(text_files, stats)
        self.embed_pdf_files(pdf_files, stats)
        return stats

    def embed_text_files(self, files: List[FileDescriptor], stats: EmbedStats) -> None:
        with UpsertQueue(self.settings.text_batch_size, self._sink(stats), kind="text") as queue:
            for f in files:
                queue.append(DocumentUnit.for_text(f.path, self.vault.read_text(f.path)))
                stats.text_files += 1

    def embed_pdf_files(self, files: List[FileDescriptor], stats: EmbedStats) -> None:
        process_all(files, self.settings.pdf_concurrency, lambda f: self.embed_pdf_file(f, stats))

    def embed_pdf_file(self, file: FileDescriptor, stats: EmbedStats) -> None:
        """Extract and upsert one PDF, flushing every ``pdf_batch_size`` pages."""
        data = self.vault.read_bytes(file.path)
        pages = 0
        with UpsertQueue(self.settings.pdf_batch_size, self._sink(stats), kind="pdf") as queue:
            for unit in extract_pages(data, file.path):
                queue.append(unit)
                pages += 1

        with self._stats_lock:
            stats.pdf_files += 1
            stats.pdf_pages += pages
        logger.info("pdf_embedded", path=file.path, pages=pages)


def run_embed(
    settings_manager: SettingsManager,
    vault: Vault,
    store: DocumentStore,
    clock: Callable[[], int] = now_ms,
) -> EmbedStats:
    """
    Embed every file changed since the last successful run.

    The watermark is captured before files are listed and only persisted once
    the whole run has succeeded; any failure propagates and leaves it alone.

    Args:
        settings_manager: Settings of the vault (watermark, batch sizes, pipeline)
        vault: File collaborator
        store: Document store client
        clock: Current time in epoch milliseconds

    Returns:
        Counters for the run
    """
    settings = settings_manager.settings
    pipeline = build_pipeline(settings.pipeline_config())
    started_at = clock()
    stats = EmbedStats(started_at=started_at)
    start_time = time.time()

    try:
        store.add_pipeline(pipeline)

        changed = select_changed_files(
            vault.list_files(),
            settings.excluded_directories,
            settings.last_run_timestamp,
        )
        stats.changed_files = len(changed)

        Embedder(vault, store, settings).embed_files(changed, stats)
    except Exception as e:
        log_embed_run(
            logger,
            collection=settings.collection_name,
            pipeline=pipeline.name,
            stats=stats.model_dump(),
            duration_ms=(time.time() - start_time) * 1000,
            succeeded=False,
            error=str(e),
        )
        raise

    settings_manager.advance_watermark(started_at)
    log_embed_run(
        logger,
        collection=settings.collection_name,
        pipeline=pipeline.name,
        stats=stats.model_dump(),
        duration_ms=(time.time() - start_time) * 1000,
        succeeded=True,
    )
    return stats
