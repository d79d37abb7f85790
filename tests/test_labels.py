"""Tests for the label catalog."""

from __future__ import annotations

from pathlib import Path

import pytest

from breedlens.errors import ResourceLoadError
from breedlens.ml.labels import LabelCatalog


class TestParse:
    def test_keeps_order(self) -> None:
        assert LabelCatalog.parse("beagle\npug\nakita") == ("beagle", "pug", "akita")

    def test_trailing_newline_adds_no_label(self) -> None:
        assert LabelCatalog.parse("beagle\npug\n\n") == ("beagle", "pug")

    def test_crlf_endings(self) -> None:
        assert LabelCatalog.parse("beagle\r\npug\r\n") == ("beagle", "pug")

    def test_only_newline_separates_labels(self) -> None:
        assert LabelCatalog.parse("pug\x0cmix\nbeagle\u2028cross\nakita\n") == ("pug\x0cmix", "beagle\u2028cross", "akita")

    def test_inner_blank_line_kept_for_alignment(self) -> None:
        assert LabelCatalog.parse("beagle\n\npug") == ("beagle", "", "pug")

    def test_duplicates_are_not_merged(self) -> None:
        assert LabelCatalog.parse("pug\npug") == ("pug", "pug")


class TestLoad:
    def test_load_file(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_text("cocker spaniel\npomeranian\nsiberian husky\n", encoding="utf-8")

        labels = LabelCatalog.load(path)

        assert labels == ("cocker spaniel", "pomeranian", "siberian husky")

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ResourceLoadError, match="Cannot read labels"):
            LabelCatalog.load(tmp_path / "nope.txt")

    def test_empty_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_text("\n\n", encoding="utf-8")
        with pytest.raises(ResourceLoadError, match="empty"):
            LabelCatalog.load(path)

    def test_undecodable_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(ResourceLoadError):
            LabelCatalog.load(path)
