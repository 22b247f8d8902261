"""Select the files that changed since the last embedding run."""

from typing import Iterable, List, Tuple

from .models import PDF_EXTENSIONS, TEXT_EXTENSIONS, FileDescriptor


def select_changed_files(
    all_files: Iterable[FileDescriptor],
    excluded: Iterable[str],
    last_run_timestamp: int,
) -> List[FileDescriptor]:
    """
    Files modified strictly after ``last_run_timestamp`` whose path is not excluded.

    Args:
        all_files: Every file in the vault
        excluded: Paths to leave out (exact match)
        last_run_timestamp: Watermark of the last successful run, epoch ms

    Returns:
        Matching files in their original order
    """
    excluded = set(excluded)
    return [
        f for f in all_files
        if f.path not in excluded and f.modified_time > last_run_timestamp
    ]


def partition_by_kind(
    files: Iterable[FileDescriptor],
) -> Tuple[List[FileDescriptor], List[FileDescriptor]]:
    """Split files into (text files, PDF files). Other extensions are dropped."""
    text_files = []
    pdf_files = []
    for f in files:
        if f.extension in TEXT_EXTENSIONS:
            text_files.append(f)
        elif f.extension in PDF_EXTENSIONS:
            pdf_files.append(f)
    return text_files, pdf_files
