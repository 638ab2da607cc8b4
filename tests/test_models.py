"""Tests for the annotation data models."""

import pytest

from PyQt6.QtGui import QColor

from bbox_editor.core.models import (
    BoundingBoxData,
    BoundingFreehandShapeData,
    BoundingPolygonData,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ObjectCategory,
    ShapeType,
    generate_random_color,
    shapes_equal,
)


@pytest.fixture
def boat():
    return ObjectCategory("Boat", QColor(255, 0, 0))


@pytest.fixture
def sail():
    return ObjectCategory("Sail", QColor(0, 255, 0))


class TestObjectCategory:
    """Tests for ObjectCategory."""

    def test_color_hex(self, boat):
        """Test hex representation of the category color."""
        assert boat.color_hex == "#FF0000"

    def test_default_color_is_valid(self):
        """Test that a category without explicit color gets a valid one."""
        category = ObjectCategory("Car")
        assert category.color.isValid()
        assert category.color.alpha() == 255

    def test_random_color_generation(self):
        """Test that random colors are valid and opaque."""
        for _ in range(10):
            color = generate_random_color()
            assert color.isValid()
            assert 0 <= color.red() <= 255

    def test_str(self, boat):
        """Test string conversion."""
        assert str(boat) == "Boat"


class TestImageMetaData:
    """Tests for ImageMetaData."""

    def test_file_name_only(self):
        """Test metadata with only a file name."""
        meta = ImageMetaData("image.jpg")
        assert meta.has_details is False
        assert meta.dimensions_string == "[]"

    def test_dimensions(self):
        """Test metadata with known dimensions."""
        meta = ImageMetaData("image.jpg", width=640, height=480, depth=3)
        assert meta.has_details is True
        assert meta.dimensions_string == "[640 x 480]"

    def test_orientation_swaps_dimensions(self):
        """Test that EXIF orientations >= 5 swap width and height."""
        meta = ImageMetaData("image.jpg", width=640, height=480, orientation=6)
        assert meta.oriented_width == 480
        assert meta.oriented_height == 640
        assert meta.dimensions_string == "[480 x 640]"

    def test_orientation_keeps_dimensions(self):
        """Test that orientations below 5 keep width and height."""
        meta = ImageMetaData("image.jpg", width=640, height=480, orientation=3)
        assert meta.oriented_width == 640
        assert meta.oriented_height == 480


class TestBoundingShapes:
    """Tests for the bounding shape variants."""

    def test_box_properties(self, boat):
        """Test box bounds and conversions."""
        box = BoundingBoxData(boat, 0.4, 0.3, 0.6, 0.7)
        assert box.shape_type == ShapeType.BOX
        assert box.category_name == "Boat"
        assert box.relative_bounds == (0.4, 0.3, 0.6, 0.7)
        assert box.absolute_bounds(100, 200) == pytest.approx((40, 60, 60, 140))

    def test_box_center_and_size(self, boat):
        """Test conversion to center coordinates."""
        box = BoundingBoxData(boat, 0.4, 0.3, 0.6, 0.7)
        assert box.center_and_size() == pytest.approx((0.5, 0.5, 0.2, 0.4))

    def test_polygon_points(self, boat):
        """Test polygon point conversion."""
        polygon = BoundingPolygonData(boat, [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
        assert polygon.shape_type == ShapeType.POLYGON
        assert polygon.vertex_count == 3
        assert polygon.absolute_points(10, 100) == pytest.approx([1, 20, 3, 40, 5, 60])

    def test_freehand_is_not_polygon(self, boat):
        """Test that freehand shapes are a separate variant."""
        freehand = BoundingFreehandShapeData(boat, [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
        polygon = BoundingPolygonData(boat, [0.1, 0.2, 0.3, 0.4, 0.5, 0.6])
        assert freehand.shape_type == ShapeType.FREEHAND
        assert not isinstance(freehand, BoundingPolygonData)
        assert freehand != polygon

    def test_equality_tolerates_small_differences(self, boat):
        """Test epsilon tolerant geometry comparison."""
        first = BoundingBoxData(boat, 0.1, 0.2, 0.3, 0.4)
        second = BoundingBoxData(boat, 0.1 + 1e-10, 0.2, 0.3, 0.4 - 1e-10)
        third = BoundingBoxData(boat, 0.1 + 1e-6, 0.2, 0.3, 0.4)
        assert first == second
        assert first != third

    def test_equality_compares_tags_as_set(self, boat):
        """Test that tag order does not matter."""
        first = BoundingBoxData(boat, 0.1, 0.2, 0.3, 0.4, tags=["difficult", "pose:Left"])
        second = BoundingBoxData(boat, 0.1, 0.2, 0.3, 0.4, tags=["pose:Left", "difficult"])
        assert first == second

    def test_equality_compares_category_by_name(self, boat):
        """Test that categories with equal names but other colors match."""
        other_boat = ObjectCategory("Boat", QColor(0, 0, 255))
        assert BoundingBoxData(boat, 0, 0, 1, 1) == BoundingBoxData(other_boat, 0, 0, 1, 1)

    def test_equality_compares_parts_as_multiset(self, boat, sail):
        """Test that part order does not matter but multiplicity does."""
        part_a = BoundingBoxData(sail, 0.1, 0.1, 0.2, 0.2)
        part_b = BoundingPolygonData(sail, [0.1, 0.1, 0.2, 0.1, 0.2, 0.2])

        first = BoundingBoxData(boat, 0, 0, 1, 1, parts=[part_a, part_b])
        second = BoundingBoxData(boat, 0, 0, 1, 1, parts=[part_b, part_a])
        third = BoundingBoxData(boat, 0, 0, 1, 1, parts=[part_a, part_a])
        assert first == second
        assert first != third

    def test_shapes_are_unhashable(self, boat):
        """Test that mutable shapes cannot be hashed."""
        with pytest.raises(TypeError):
            hash(BoundingBoxData(boat, 0, 0, 1, 1))

    def test_iter_shapes(self, boat, sail):
        """Test walking a shape tree."""
        inner = BoundingBoxData(sail, 0.2, 0.2, 0.3, 0.3)
        middle = BoundingBoxData(sail, 0.1, 0.1, 0.5, 0.5, parts=[inner])
        outer = BoundingBoxData(boat, 0, 0, 1, 1, parts=[middle])
        assert list(outer.iter_shapes()) == [outer, middle, inner]

    def test_shapes_equal_lengths(self, boat):
        """Test multiset comparison of lists with different lengths."""
        box = BoundingBoxData(boat, 0, 0, 1, 1)
        assert shapes_equal([box], [box]) is True
        assert shapes_equal([box], [box, box]) is False


class TestImageAnnotationData:
    """Tests for ImageAnnotationData."""

    def test_empty(self):
        """Test creating empty annotation data."""
        data = ImageAnnotationData.empty()
        assert data.image_annotations == []
        assert data.category_name_to_shape_count == {}

    def test_from_annotations_counts_parts(self, boat, sail):
        """Test that nested parts are included in the counts."""
        sail_part = BoundingBoxData(sail, 0.2, 0.2, 0.3, 0.3)
        annotation = ImageAnnotation(
            ImageMetaData("boat.jpg"),
            [
                BoundingBoxData(boat, 0, 0, 1, 1, parts=[sail_part]),
                BoundingBoxData(boat, 0.1, 0.1, 0.4, 0.4),
            ]
        )

        data = ImageAnnotationData.from_annotations([annotation])

        assert data.category_name_to_shape_count == {"Boat": 2, "Sail": 1}
        assert data.category_name_to_category["Sail"] is sail
        assert annotation.image_file_name == "boat.jpg"
