"""Data models for bounding-shape annotations."""

from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Union

from PyQt6.QtGui import QColor

from .geometry import almost_equal, to_absolute


class ShapeType(str, Enum):
    """Type of annotation shape."""

    BOX = "box"
    POLYGON = "polygon"
    FREEHAND = "freehand"


def generate_random_color() -> QColor:
    """Generate a uniformly random opaque RGB color."""
    return QColor(random.randint(0, 255), random.randint(0, 255), random.randint(0, 255))


@dataclass
class ObjectCategory:
    """
    Category (e.g. "Person", "Car") an annotated object belongs to.

    Categories are identified by name within a registry. The color is used
    for the visual representation of the category.
    """

    name: str
    color: QColor = field(default_factory=generate_random_color)

    @property
    def color_hex(self) -> str:
        """Return the color as an upper-case #RRGGBB string."""
        return self.color.name(QColor.NameFormat.HexRgb).upper()

    def __str__(self) -> str:
        return self.name


@dataclass
class ImageMetaData:
    """
    Metadata of an annotated image.

    Instances may exist with only a filename; width and height are filled in
    once the image has been read.
    """

    file_name: str
    folder_name: str = ""
    url: str = ""
    width: float = 0.0
    height: float = 0.0
    depth: int = 0
    orientation: int = 1  # EXIF orientation, 1-8

    @property
    def has_details(self) -> bool:
        """True if the image dimensions are known."""
        return self.width > 0 and self.height > 0

    @property
    def oriented_width(self) -> float:
        """Width of the image as displayed after applying the EXIF orientation."""
        return self.height if self.orientation >= 5 else self.width

    @property
    def oriented_height(self) -> float:
        """Height of the image as displayed after applying the EXIF orientation."""
        return self.width if self.orientation >= 5 else self.height

    @property
    def dimensions_string(self) -> str:
        if not self.has_details:
            return "[]"
        return f"[{int(self.oriented_width)} x {int(self.oriented_height)}]"


class BoundingShapeData:
    """
    Base class of the bounding-shape variants.

    A shape has a category, a list of free-text tags and an optional list of
    nested parts. The set of variants is closed: BoundingBoxData,
    BoundingPolygonData and BoundingFreehandShapeData.
    """

    shape_type: ShapeType

    def __init__(
        self,
        category: ObjectCategory,
        tags: Optional[List[str]] = None,
        parts: Optional[List[BoundingShape]] = None
    ) -> None:
        self.category = category
        self.tags: List[str] = list(tags) if tags else []
        self.parts: List[BoundingShape] = list(parts) if parts else []

    @property
    def category_name(self) -> str:
        return self.category.name

    def iter_shapes(self) -> Iterator[BoundingShape]:
        """Yield this shape followed by all nested parts, depth first."""
        yield self
        for part in self.parts:
            yield from part.iter_shapes()

    def _geometry_equals(self, other: BoundingShapeData) -> bool:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(self) is not type(other):
            return NotImplemented
        assert isinstance(other, BoundingShapeData)
        return (
            self.category_name == other.category_name
            and set(self.tags) == set(other.tags)
            and self._geometry_equals(other)
            and shapes_equal(self.parts, other.parts)
        )

    __hash__ = None  # type: ignore[assignment]


class BoundingBoxData(BoundingShapeData):
    """Rectangular bounding box in coordinates relative to the image size."""

    shape_type = ShapeType.BOX

    def __init__(
        self,
        category: ObjectCategory,
        x_min: float,
        y_min: float,
        x_max: float,
        y_max: float,
        tags: Optional[List[str]] = None,
        parts: Optional[List[BoundingShape]] = None
    ) -> None:
        super().__init__(category, tags, parts)
        self.x_min = x_min
        self.y_min = y_min
        self.x_max = x_max
        self.y_max = y_max

    @property
    def relative_bounds(self) -> tuple[float, float, float, float]:
        """Return (x_min, y_min, x_max, y_max) relative to the image size."""
        return (self.x_min, self.y_min, self.x_max, self.y_max)

    def absolute_bounds(self, img_width: float, img_height: float) -> tuple[float, float, float, float]:
        """
        Convert the box to pixel coordinates.

        Args:
            img_width: Image width in pixels
            img_height: Image height in pixels

        Returns:
            Tuple of (x_min, y_min, x_max, y_max) in pixels
        """
        x_min, y_min, x_max, y_max = to_absolute(list(self.relative_bounds), img_width, img_height)
        return (x_min, y_min, x_max, y_max)

    def center_and_size(self) -> tuple[float, float, float, float]:
        """
        Return the box as normalized center coordinates.

        Returns:
            Tuple of (x_center, y_center, width, height) relative to the image
        """
        width = self.x_max - self.x_min
        height = self.y_max - self.y_min
        return (self.x_min + width / 2, self.y_min + height / 2, width, height)

    def _geometry_equals(self, other: BoundingShapeData) -> bool:
        assert isinstance(other, BoundingBoxData)
        return all(
            almost_equal(a, b)
            for a, b in zip(self.relative_bounds, other.relative_bounds)
        )

    def __repr__(self) -> str:
        return (
            f"BoundingBoxData(category={self.category_name!r}, x_min={self.x_min}, "
            f"y_min={self.y_min}, x_max={self.x_max}, y_max={self.y_max}, "
            f"tags={self.tags!r}, parts={self.parts!r})"
        )


class _PointListShapeData(BoundingShapeData):
    """Shape stored as a flat list of relative [x0, y0, x1, y1, ...] values."""

    def __init__(
        self,
        category: ObjectCategory,
        points: List[float],
        tags: Optional[List[str]] = None,
        parts: Optional[List[BoundingShape]] = None
    ) -> None:
        super().__init__(category, tags, parts)
        self.points: List[float] = list(points)

    @property
    def vertex_count(self) -> int:
        return len(self.points) // 2

    def absolute_points(self, img_width: float, img_height: float) -> List[float]:
        """Return the points in pixel coordinates."""
        return to_absolute(self.points, img_width, img_height)

    def _geometry_equals(self, other: BoundingShapeData) -> bool:
        assert isinstance(other, _PointListShapeData)
        return len(self.points) == len(other.points) and all(
            almost_equal(a, b) for a, b in zip(self.points, other.points)
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(category={self.category_name!r}, "
            f"points={self.points!r}, tags={self.tags!r}, parts={self.parts!r})"
        )


class BoundingPolygonData(_PointListShapeData):
    """Closed polygon with at least three vertices."""

    shape_type = ShapeType.POLYGON


class BoundingFreehandShapeData(_PointListShapeData):
    """Free-drawn stroke, encoded like a polygon."""

    shape_type = ShapeType.FREEHAND


BoundingShape = Union[BoundingBoxData, BoundingPolygonData, BoundingFreehandShapeData]


def shapes_equal(first: List[BoundingShape], second: List[BoundingShape]) -> bool:
    """
    Compare two shape lists as multisets.

    Shapes are unhashable, so every shape of the first list is matched
    against a not yet matched, equal shape of the second list.
    """
    if len(first) != len(second):
        return False

    remaining = list(second)
    for shape in first:
        for index, candidate in enumerate(remaining):
            if shape == candidate:
                del remaining[index]
                break
        else:
            return False
    return True


@dataclass
class ImageAnnotation:
    """
    All shapes assigned to one image.

    There is at most one ImageAnnotation per image file.
    """

    image_meta_data: ImageMetaData
    bounding_shape_data: List[BoundingShape] = field(default_factory=list)

    @property
    def image_file_name(self) -> str:
        return self.image_meta_data.file_name

    def iter_shapes(self) -> Iterator[BoundingShape]:
        """Yield every shape of the annotation including nested parts."""
        for shape in self.bounding_shape_data:
            yield from shape.iter_shapes()


@dataclass
class ImageAnnotationData:
    """Exchange unit of an import or export operation."""

    image_annotations: List[ImageAnnotation] = field(default_factory=list)
    category_name_to_shape_count: Dict[str, int] = field(default_factory=dict)
    category_name_to_category: Dict[str, ObjectCategory] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> ImageAnnotationData:
        return cls()

    @classmethod
    def from_annotations(cls, annotations: Iterable[ImageAnnotation]) -> ImageAnnotationData:
        """
        Build annotation data and derive the per-category counts.

        Nested parts are counted like top-level shapes.

        Args:
            annotations: Image annotations to wrap

        Returns:
            New ImageAnnotationData instance
        """
        annotations = list(annotations)
        counts: Counter[str] = Counter()
        categories: Dict[str, ObjectCategory] = {}

        for annotation in annotations:
            for shape in annotation.iter_shapes():
                counts[shape.category_name] += 1
                categories.setdefault(shape.category_name, shape.category)

        return cls(annotations, dict(counts), categories)
