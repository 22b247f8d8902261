"""Data records shared by the embedding pipeline, the store client and search."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TEXT_EXTENSIONS = ("md", "txt")
PDF_EXTENSIONS = ("pdf",)


class DocumentUnit(BaseModel):
    """One upsertable document: a whole text file or a single PDF page.

    ``id`` is the file path for text files and ``"{path}--{page}"`` for PDF
    pages, so re-embedding the same source updates rather than duplicates.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    path: str
    type: Literal["text", "pdf"]
    page: Optional[int] = None

    @classmethod
    def for_text(cls, path: str, text: str) -> "DocumentUnit":
        return cls(id=path, text=text, path=path, type="text")

    @classmethod
    def for_pdf_page(cls, path: str, page: int, text: str) -> "DocumentUnit":
        return cls(id=f"{path}--{page}", text=text, path=path, type="pdf", page=page)

    def metadata(self) -> Dict[str, Any]:
        """Metadata stored next to the text and returned with recall hits."""
        meta: Dict[str, Any] = {"id": self.id, "path": self.path, "type": self.type}
        if self.page is not None:
            meta["page"] = self.page
        return meta


class FileDescriptor(BaseModel):
    """A file in the vault. ``modified_time`` is epoch milliseconds."""
    model_config = ConfigDict(frozen=True)

    path: str
    extension: str
    modified_time: int


class PipelineConfig(BaseModel):
    """User-configured model and splitter. Parameters are raw JSON text."""
    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    model_parameters: str = "{}"
    splitter_name: str
    splitter_parameters: str = "{}"


class Pipeline(BaseModel):
    """A resolved pipeline: identity name plus parsed parameters."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    name: str
    model_name: str
    model_parameters: Dict[str, Any] = Field(default_factory=dict)
    splitter_name: str
    splitter_parameters: Dict[str, Any] = Field(default_factory=dict)


class RecallHit(BaseModel):
    """Raw vector recall row: score, chunk content and document metadata."""
    score: float
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A search hit shaped for display."""
    score: float
    content: str
    path: str
    type: str
    page: Optional[int] = None

    @classmethod
    def from_hit(cls, hit: RecallHit) -> "SearchResult":
        meta = hit.metadata
        return cls(
            score=hit.score,
            content=hit.content,
            path=meta.get("path", ""),
            type=meta.get("type", ""),
            page=meta.get("page"),
        )


class EmbedStats(BaseModel):
    """Counters for one embedding run."""
    started_at: int
    changed_files: int = 0
    text_files: int = 0
    pdf_files: int = 0
    pdf_pages: int = 0
    batches_flushed: int = 0
