"""File access for the vault being embedded."""

import logging
from pathlib import Path
from typing import List, Protocol

from .models import FileDescriptor

logger = logging.getLogger(__name__)


class Vault(Protocol):
    """The file operations the embedding pipeline needs."""

    def list_files(self) -> List[FileDescriptor]: ...

    def read_text(self, path: str) -> str: ...

    def read_bytes(self, path: str) -> bytes: ...


class LocalVault:
    """A vault backed by a directory on disk.

    Paths are relative to ``root`` and use ``/`` separators. Hidden
    directories (``.supersearch``, ``.obsidian``, ``.git``...) are skipped.
    """

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Vault root {self.root} is not a directory")

    @property
    def name(self) -> str:
        return self.root.name

    def _is_hidden(self, relative: Path) -> bool:
        return any(part.startswith(".") for part in relative.parts)

    def list_files(self) -> List[FileDescriptor]:
        files = []
        for file_path in sorted(self.root.rglob("*")):
            if not file_path.is_file():
                continue
            relative = file_path.relative_to(self.root)
            if self._is_hidden(relative):
                continue
            files.append(FileDescriptor(
                path=relative.as_posix(),
                extension=file_path.suffix.lstrip(".").lower(),
                modified_time=int(file_path.stat().st_mtime * 1000),
            ))
        logger.debug(f"Listed {len(files)} files in {self.root}")
        return files

    def resolve(self, path: str) -> Path:
        """Absolute location of a vault path."""
        return self.root / path

    def read_text(self, path: str) -> str:
        return self.resolve(path).read_text(encoding="utf-8", errors="replace")

    def read_bytes(self, path: str) -> bytes:
        return self.resolve(path).read_bytes()
