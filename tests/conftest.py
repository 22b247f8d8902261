"""Shared fixtures: in-memory vault and store, and real PDFs built with PyMuPDF."""

import threading
from typing import Dict, List, Optional, Sequence

import fitz
import pytest

from supersearch.core.errors import StoreError
from supersearch.core.models import DocumentUnit, FileDescriptor, Pipeline, RecallHit


def make_pdf(pages: List[Optional[str]]) -> bytes:
    """Build a PDF with one page per entry; ``None`` makes a blank page."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


class FakeVault:
    """Vault held in memory: path -> (content, modified_time)."""

    def __init__(self, files: Dict[str, tuple] = None):
        self.files = dict(files or {})

    def add(self, path: str, content, modified_time: int = 1000) -> None:
        self.files[path] = (content, modified_time)

    def list_files(self) -> List[FileDescriptor]:
        return [
            FileDescriptor(path=path, extension=path.rsplit(".", 1)[-1], modified_time=mtime)
            for path, (_, mtime) in self.files.items()
        ]

    def read_text(self, path: str) -> str:
        return self.files[path][0]

    def read_bytes(self, path: str) -> bytes:
        return self.files[path][0]


class FakeStore:
    """Document store that records every call."""

    def __init__(self):
        self.pipelines: List[Pipeline] = []
        self.batches: List[List[DocumentUnit]] = []
        self.recall_calls: List[tuple] = []
        self.recall_hits: List[RecallHit] = []
        self.deleted: List[dict] = []
        self.fail_upsert_on: Optional[int] = None
        self.fail_recall = False
        self._lock = threading.Lock()

    def add_pipeline(self, pipeline: Pipeline) -> bool:
        created = pipeline.name not in [p.name for p in self.pipelines]
        if created:
            self.pipelines.append(pipeline)
        return created

    def upsert_documents(self, documents: Sequence[DocumentUnit]) -> None:
        with self._lock:
            if self.fail_upsert_on is not None and len(self.batches) == self.fail_upsert_on:
                raise StoreError("upsert_documents", "connection reset")
            self.batches.append(list(documents))

    def get_documents(self, filter, limit=None):
        docs = [u for batch in self.batches for u in batch]
        return [
            {"id": u.id, "text": u.text, "metadata": u.metadata()}
            for u in docs
            if all(u.metadata().get(k) == v for k, v in filter.items())
        ][:limit]

    def delete_documents(self, filter) -> int:
        self.deleted.append(filter)
        return len(self.get_documents(filter))

    def vector_recall(self, text: str, pipeline: Pipeline, limit: int) -> List[RecallHit]:
        self.recall_calls.append((text, pipeline.name, limit))
        if self.fail_recall:
            raise StoreError("vector_recall", "timeout")
        return self.recall_hits[:limit]

    @property
    def upserted_ids(self) -> List[str]:
        return [u.id for batch in self.batches for u in batch]


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_vault():
    return FakeVault()


@pytest.fixture(autouse=True)
def no_database_env(monkeypatch):
    monkeypatch.delenv("SUPERSEARCH_DATABASE_URL", raising=False)


@pytest.fixture
def pdf_factory():
    return make_pdf
