"""Tests for the category registry and progress tracking."""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

from PyQt6.QtGui import QColor

from bbox_editor.core.categories import CategoryRegistry
from bbox_editor.core.models import ObjectCategory
from bbox_editor.core.progress import IOProgress


class TestCategoryRegistry:
    """Tests for CategoryRegistry."""

    def test_resolve_creates_category(self):
        """Test creating a category on first reference."""
        registry = CategoryRegistry()
        category = registry.resolve("Boat", QColor(1, 2, 3))

        assert category.name == "Boat"
        assert category.color_hex == "#010203"
        assert "Boat" in registry
        assert len(registry) == 1

    def test_resolve_returns_existing(self):
        """Test that an existing category keeps its color."""
        existing = ObjectCategory("Boat", QColor(255, 0, 0))
        registry = CategoryRegistry({"Boat": existing})

        category = registry.resolve("Boat", QColor(0, 0, 255))

        assert category is existing
        assert category.color_hex == "#FF0000"

    def test_wraps_dict_in_place(self):
        """Test that new categories are added to the caller's dict."""
        categories = {}
        registry = CategoryRegistry(categories)
        registry.resolve("Flag")

        assert list(categories) == ["Flag"]
        assert registry.categories is categories

    def test_names_and_get(self):
        """Test read helpers."""
        registry = CategoryRegistry()
        registry.resolve("b")
        registry.resolve("a")

        assert registry.names() == ["b", "a"]
        assert registry.get("a").name == "a"
        assert registry.get("missing") is None
        assert [category.name for category in registry.categories.values()] == ["b", "a"]

    def test_concurrent_resolve_yields_single_object(self):
        """Test that parallel resolution of a new name creates one category."""
        registry = CategoryRegistry()
        workers = 16
        barrier = Barrier(workers)

        def resolve(_):
            barrier.wait()
            return registry.resolve("Boat")

        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(resolve, range(workers)))

        assert len(registry) == 1
        assert all(result is results[0] for result in results)


class TestIOProgress:
    """Tests for IOProgress."""

    def test_initial_value(self):
        """Test progress before any work."""
        progress = IOProgress()
        assert progress.value == 0.0
        assert progress.is_cancelled is False

    def test_advance(self):
        """Test advancing through all items."""
        progress = IOProgress()
        progress.reset(4)
        progress.advance()
        assert progress.value == 0.25
        progress.advance(3)
        assert progress.value == 1.0
        assert progress.processed == 4

    def test_advance_never_exceeds_total(self):
        """Test that the counter stays within the total."""
        progress = IOProgress()
        progress.reset(1)
        progress.advance(5)
        assert progress.value == 1.0

    def test_callbacks(self):
        """Test that callbacks receive the new fraction."""
        values = []
        progress = IOProgress(values.append)
        progress.reset(2)
        progress.advance()
        progress.advance()
        assert values == [0.5, 1.0]

    def test_cancel(self):
        """Test cancellation flag."""
        progress = IOProgress()
        progress.cancel()
        assert progress.is_cancelled is True
