"""PDF page extraction: PyMuPDF text spans -> one DocumentUnit per non-empty page."""

import logging
from typing import Callable, Iterator, List, Optional

import fitz  # PyMuPDF
from pymupdf import mupdf

from .errors import PdfExtractionError
from .models import DocumentUnit

logger = logging.getLogger(__name__)

# Errors raised by MuPDF while reading a page. FzErrorBase does not derive from RuntimeError.
PAGE_ERRORS = (RuntimeError, ValueError, mupdf.FzErrorBase)


class PdfPageReader:
    """Random access to the text fragments of an in-memory PDF.

    Pages are numbered from 1. ``read_page`` returns ``None`` for any page
    past the end of the document, which is how callers detect the end.
    """

    def __init__(self, data: bytes, path: str = "<memory>"):
        self.path = path
        try:
            self._doc = fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, *PAGE_ERRORS) as e:
            raise PdfExtractionError(path, str(e)) from e

    @property
    def page_count(self) -> int:
        return self._doc.page_count

    def read_page(self, page_number: int) -> Optional[List[str]]:
        """
        Return the text fragments of a page, in reading order.

        Args:
            page_number: 1-indexed page number

        Returns:
            List of text spans (possibly empty), or None when the page does not exist
        """
        if page_number < 1 or page_number > self._doc.page_count:
            return None

        try:
            page = self._doc.load_page(page_number - 1)
            blocks = page.get_text("dict")["blocks"]
        except PAGE_ERRORS as e:
            raise PdfExtractionError(self.path, str(e), page=page_number) from e

        fragments = []
        for block in blocks:
            if "lines" not in block:  # Image block
                continue
            for line in block["lines"]:
                for span in line["spans"]:
                    if span["text"]:
                        fragments.append(span["text"])
        return fragments

    def close(self) -> None:
        self._doc.close()


def extract_pages(
    data: bytes,
    path: str,
    reader_factory: Callable[[bytes, str], PdfPageReader] = PdfPageReader,
) -> Iterator[DocumentUnit]:
    """
    Lazily yield one DocumentUnit per PDF page that has text.

    Iteration walks pages from 1 until the reader reports there are no more
    pages. Pages without text fragments are skipped. Parser failures raise
    PdfExtractionError. Each call re-opens ``data`` from the start.

    Args:
        data: Raw PDF bytes
        path: Vault path of the PDF, used for unit ids
        reader_factory: Builds the page reader (PdfPageReader by default)

    Yields:
        DocumentUnit with ``type="pdf"`` and a 1-indexed ``page``
    """
    reader = reader_factory(data, path)
    try:
        page_number = 1
        while True:
            fragments = reader.read_page(page_number)
            if fragments is None:
                break
            if fragments:
                yield DocumentUnit.for_pdf_page(path, page_number, "".join(fragments))
            else:
                logger.debug(f"{path}: page {page_number} has no text, skipping")
            page_number += 1
        logger.debug(f"{path}: reached end after {page_number - 1} pages")
    finally:
        reader.close()
