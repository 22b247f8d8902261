"""Tests for the directory-backed vault."""

import os

import pytest

from supersearch.core.vault import LocalVault


@pytest.fixture
def vault_dir(tmp_path):
    (tmp_path / "notes").mkdir()
    (tmp_path / "notes" / "a.md").write_text("# A")
    (tmp_path / "Paper.PDF").write_bytes(b"%PDF-1.4")
    (tmp_path / "todo.txt").write_text("milk")
    (tmp_path / ".supersearch").mkdir()
    (tmp_path / ".supersearch" / "settings.json").write_text("{}")
    os.utime(tmp_path / "todo.txt", (1_700_000_000, 1_700_000_000))
    return tmp_path


def test_lists_files_with_relative_paths(vault_dir):
    files = {f.path: f for f in LocalVault(vault_dir).list_files()}

    assert set(files) == {"notes/a.md", "Paper.PDF", "todo.txt"}
    assert files["Paper.PDF"].extension == "pdf"
    assert files["todo.txt"].modified_time == 1_700_000_000_000


def test_reads_text_and_bytes(vault_dir):
    vault = LocalVault(vault_dir)

    assert vault.read_text("notes/a.md") == "# A"
    assert vault.read_bytes("Paper.PDF") == b"%PDF-1.4"


def test_root_must_be_directory(tmp_path):
    with pytest.raises(NotADirectoryError):
        LocalVault(tmp_path / "missing")
