"""Tests for the diff engine."""

import pytest

from image_dimensions.core.diff import diff_unprocessed, is_directory_marker
from image_dimensions.core.models import ObjectRecord


def _records(*identifiers):
    return [ObjectRecord(identifier=identifier) for identifier in identifiers]


class TestIsDirectoryMarker:
    """Tests for is_directory_marker."""

    @pytest.mark.parametrize(
        "identifier, expected",
        [
            ("portfolio/", True),
            ("portfolio/2024/", True),
            ("portfolio/a.jpg", False),
            ("portfolio", False),
        ],
    )
    def test_trailing_separator(self, identifier, expected):
        assert is_directory_marker(identifier) is expected


class TestDiffUnprocessed:
    """Tests for diff_unprocessed."""

    def test_excludes_cached_identifiers(self):
        store = _records("p/a.jpg", "p/b.jpg", "p/c.png")

        selected = diff_unprocessed(store, ["p/b.jpg"])

        assert [r.identifier for r in selected] == ["p/a.jpg", "p/c.png"]

    def test_excludes_directory_markers(self):
        store = _records("p/", "p/sub/", "p/a.jpg")

        selected = diff_unprocessed(store, [])

        assert [r.identifier for r in selected] == ["p/a.jpg"]

    def test_everything_cached(self):
        store = _records("p/a.jpg", "p/b.jpg")

        assert diff_unprocessed(store, ["p/a.jpg", "p/b.jpg", "p/gone.jpg"]) == []

    def test_duplicates_selected_once(self):
        store = _records("p/a.jpg", "p/a.jpg", "p/b.jpg")

        selected = diff_unprocessed(store, [])

        assert [r.identifier for r in selected] == ["p/a.jpg", "p/b.jpg"]

    def test_preserves_listing_order(self):
        store = _records("p/z.jpg", "p/a.jpg", "p/m.jpg")

        selected = diff_unprocessed(store, [])

        assert [r.identifier for r in selected] == ["p/z.jpg", "p/a.jpg", "p/m.jpg"]

    def test_deterministic(self):
        """Test identical inputs give identical selections."""
        store = _records("p/a.jpg", "p/", "p/b.jpg", "p/c.jpg")
        cached = ["p/c.jpg"]

        assert diff_unprocessed(store, cached) == diff_unprocessed(store, cached)

    def test_accepts_generators(self):
        store = (record for record in _records("p/a.jpg", "p/b.jpg"))
        cached = (key for key in ["p/a.jpg"])

        assert [r.identifier for r in diff_unprocessed(store, cached)] == ["p/b.jpg"]
