"""Thread-safe registry of object categories shared by the import codecs."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List, Optional

from PyQt6.QtGui import QColor

from .models import ObjectCategory, generate_random_color

logger = logging.getLogger(__name__)


class CategoryRegistry:
    """
    Name to category mapping that is extended while annotations are loaded.

    The registry wraps the caller's dictionary and mutates it in place, so
    categories created during an import are visible to the caller after the
    operation. Categories are only ever added, never removed.
    """

    def __init__(self, categories: Optional[Dict[str, ObjectCategory]] = None) -> None:
        """
        Initialize the registry.

        Args:
            categories: Existing name to category mapping to extend in place
        """
        self._categories: Dict[str, ObjectCategory] = categories if categories is not None else {}
        self._lock = Lock()

    @property
    def categories(self) -> Dict[str, ObjectCategory]:
        """The wrapped name to category mapping."""
        return self._categories

    def resolve(self, name: str, color: Optional[QColor] = None) -> ObjectCategory:
        """
        Return the category with the given name, creating it if necessary.

        Lookup and insertion happen atomically, so concurrent calls for the
        same new name always return the same object. An existing category
        keeps its color even if a different one is passed.

        Args:
            name: Category name
            color: Color for a newly created category, random if None

        Returns:
            The registered category
        """
        with self._lock:
            category = self._categories.get(name)
            if category is None:
                category = ObjectCategory(name, color if color is not None else generate_random_color())
                self._categories[name] = category
                logger.debug(f"Created category '{name}'")
            return category

    def get(self, name: str) -> Optional[ObjectCategory]:
        with self._lock:
            return self._categories.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return list(self._categories.keys())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._categories

    def __len__(self) -> int:
        with self._lock:
            return len(self._categories)
