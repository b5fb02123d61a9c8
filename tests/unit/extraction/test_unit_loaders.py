# tests/unit/extraction/test_loaders.py — v1
"""Tests for extraction/loaders.py — text document loaders."""

from __future__ import annotations

import pytest

from deeptime.extraction.loaders import (
    MdLoader,
    TxtLoader,
    UnsupportedFormatError,
    create_loader,
    load_document,
    supported_extensions,
)


class TestCreateLoader:
    @pytest.mark.parametrize(
        ("ext", "cls"),
        [(".txt", TxtLoader), ("txt", TxtLoader), (".MD", MdLoader), (".markdown", MdLoader)],
    )
    def test_known_extensions(self, ext, cls):
        assert isinstance(create_loader(ext), cls)

    def test_unknown_extension(self):
        with pytest.raises(UnsupportedFormatError, match=".pdf"):
            create_loader(".pdf")

    def test_supported_extensions(self):
        assert supported_extensions() == [".markdown", ".md", ".txt"]


class TestLoaders:
    def test_txt_from_bytes(self):
        payload = TxtLoader().load("Plain text".encode("utf-8"))
        assert payload.text == "Plain text"
        assert payload.metadata["format"] == "txt"

    def test_md_image_refs(self):
        payload = MdLoader().load("# Title\n![core](img/core.png)\ntext")
        assert payload.metadata["images"] == ["img/core.png"]
        assert payload.text.startswith("# Title")

    def test_load_document_from_disk(self, tmp_path):
        path = tmp_path / "paper.md"
        path.write_text("Lingshui Formation", encoding="utf-8")
        payload = load_document(path)
        assert payload.text == "Lingshui Formation"
        assert payload.metadata["path"] == str(path)
