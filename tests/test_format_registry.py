"""Tests for format detection and registry."""

import pytest

from bbox_editor.core.csv_format import CSVAnnotationFormat
from bbox_editor.core.format_registry import AnnotationFormatType, FormatRegistry
from bbox_editor.core.json_format import JSONAnnotationFormat
from bbox_editor.core.pascal_voc_format import PascalVOCAnnotationFormat
from bbox_editor.core.yolo_format import YOLOAnnotationFormat


class TestFormatRegistry:
    """Tests for FormatRegistry."""

    def test_get_format_names(self):
        """Test getting available format names."""
        assert FormatRegistry.get_format_names() == ["pascal_voc", "yolo", "json", "csv"]

    def test_get_display_name(self):
        """Test getting display names."""
        assert FormatRegistry.get_display_name("yolo") == "YOLO"
        assert FormatRegistry.get_display_name("pascal_voc") == "Pascal VOC"
        assert FormatRegistry.get_display_name(AnnotationFormatType.JSON) == "JSON"
        assert FormatRegistry.get_display_name("csv") == "CSV"

    def test_get_description(self):
        """Test that every format has a description."""
        for name in FormatRegistry.get_format_names():
            assert FormatRegistry.get_description(name)

    def test_get_handler(self):
        """Test getting format handlers."""
        assert isinstance(FormatRegistry.get_handler("pascal_voc"), PascalVOCAnnotationFormat)
        assert isinstance(FormatRegistry.get_handler("yolo"), YOLOAnnotationFormat)
        assert isinstance(FormatRegistry.get_handler(AnnotationFormatType.JSON), JSONAnnotationFormat)
        assert isinstance(FormatRegistry.get_handler("csv"), CSVAnnotationFormat)

    def test_get_handler_with_workers(self):
        """Test that the worker count reaches the handler."""
        handler = FormatRegistry.get_handler("yolo", max_workers=3)
        assert handler.max_workers == 3

    def test_get_handler_unknown_format(self):
        """Test getting handler for unknown format raises error."""
        with pytest.raises(ValueError, match="Unknown format: coco"):
            FormatRegistry.get_handler("coco")

    def test_handler_names_match_enum(self):
        """Test that handler names agree with the registry keys."""
        for fmt in AnnotationFormatType:
            assert FormatRegistry.get_handler(fmt).format_name == fmt.value

    def test_is_per_image_format(self):
        """Test per-image format check."""
        assert FormatRegistry.is_per_image_format("yolo") is True
        assert FormatRegistry.is_per_image_format("pascal_voc") is True
        assert FormatRegistry.is_per_image_format("json") is False
        assert FormatRegistry.is_per_image_format("csv") is False

    def test_format_supports_polygons(self):
        """Test polygon support check."""
        assert FormatRegistry.format_supports_polygons("yolo") is True
        assert FormatRegistry.format_supports_polygons("pascal_voc") is True
        assert FormatRegistry.format_supports_polygons("json") is True
        assert FormatRegistry.format_supports_polygons("csv") is False


class TestFormatDetection:
    """Tests for format auto-detection."""

    def test_detect_yolo(self, yolo_annotation_dir):
        """Test detecting a YOLO directory."""
        assert FormatRegistry.detect_format(yolo_annotation_dir) == AnnotationFormatType.YOLO

    def test_detect_pascal_voc(self, voc_annotation_dir):
        """Test detecting a Pascal VOC directory."""
        assert FormatRegistry.detect_format(voc_annotation_dir) == AnnotationFormatType.PASCAL_VOC

    def test_detect_pascal_voc_skips_other_xml(self, temp_dir):
        """Test that unrelated or broken XML files are ignored."""
        (temp_dir / "a.xml").write_text("<broken")
        (temp_dir / "b.xml").write_text("<config/>")
        assert FormatRegistry.detect_format(temp_dir) is None

        (temp_dir / "c.xml").write_text("<annotation/>")
        assert FormatRegistry.detect_format(temp_dir) == AnnotationFormatType.PASCAL_VOC

    def test_detect_json_and_csv_files(self, temp_dir):
        """Test detecting dataset files by extension."""
        json_path = temp_dir / "annotations.JSON"
        json_path.write_text("[]")
        csv_path = temp_dir / "annotations.csv"
        csv_path.write_text("")

        assert FormatRegistry.detect_format(json_path) == AnnotationFormatType.JSON
        assert FormatRegistry.detect_format(csv_path) == AnnotationFormatType.CSV

    def test_detect_unknown(self, temp_dir):
        """Test paths that match no format."""
        text_path = temp_dir / "notes.txt"
        text_path.write_text("")

        assert FormatRegistry.detect_format(text_path) is None
        assert FormatRegistry.detect_format(temp_dir / "missing") is None

        empty_dir = temp_dir / "empty"
        empty_dir.mkdir()
        assert FormatRegistry.detect_format(empty_dir) is None
