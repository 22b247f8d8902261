"""Debounced semantic search over the document store."""

import threading
import time
from typing import Callable, List, Tuple

from .errors import StoreError
from .logging_config import get_audit_logger, log_search
from .markdown import render_snippet
from .models import Pipeline, SearchResult
from .store import DocumentStore

logger = get_audit_logger("search")

DEFAULT_QUIESCENCE_SECONDS = 0.35
DEFAULT_LIMIT = 10


class SearchSession:
    """Incremental search where only the latest request reaches the store.

    Each keystroke calls ``submit`` and gets a generation number. ``results``
    waits out the quiescence interval and returns nothing, without touching the
    store, if a newer generation was submitted in the meantime.
    """

    def __init__(
        self,
        store: DocumentStore,
        pipeline: Pipeline,
        limit: int = DEFAULT_LIMIT,
        quiescence: float = DEFAULT_QUIESCENCE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.pipeline = pipeline
        self.limit = limit
        self.quiescence = quiescence
        self._sleep = sleep
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def submit(self) -> int:
        """Start a new request generation, superseding all earlier ones."""
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def results(self, query: str, generation: int) -> List[SearchResult]:
        """
        Search results for ``query`` unless ``generation`` went stale.

        Args:
            query: Text typed so far
            generation: Value returned by ``submit`` for this request

        Returns:
            Up to ``limit`` results, or an empty list for empty, stale or failed queries
        """
        if not query:
            return []

        self._sleep(self.quiescence)
        if not self.is_current(generation):
            logger.debug("search_superseded", generation=generation)
            return []

        start_time = time.time()
        try:
            hits = self.store.vector_recall(query, self.pipeline, self.limit)
        except StoreError as e:
            logger.error("search_failed", query=query, error=str(e))
            return []

        results = [SearchResult.from_hit(hit) for hit in hits]
        log_search(
            logger,
            query=query,
            generation=generation,
            result_count=len(results),
            execution_time_ms=(time.time() - start_time) * 1000,
        )
        return results

    def suggest(self, query: str) -> List[SearchResult]:
        """Submit ``query`` as the newest keystroke and return its results."""
        return self.results(query, self.submit())


def render_result(result: SearchResult, snippet_length: int = 200) -> Tuple[str, str]:
    """Header and snippet lines for one result."""
    location = result.path if result.page is None else f"{result.path} p.{result.page}"
    header = f"{location} ({result.score:.3f})"
    return header, render_snippet(result.content, snippet_length)
