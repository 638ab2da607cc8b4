"""Format registry for annotation format auto-detection and management."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Type, Union

from .annotation_format import AnnotationFormat
from .csv_format import CSVAnnotationFormat
from .json_format import JSONAnnotationFormat
from .pascal_voc_format import PascalVOCAnnotationFormat
from .yolo_format import OBJECT_DATA_FILE_NAME, YOLOAnnotationFormat

logger = logging.getLogger(__name__)


class AnnotationFormatType(str, Enum):
    """Supported annotation interchange formats."""

    PASCAL_VOC = "pascal_voc"
    YOLO = "yolo"
    JSON = "json"
    CSV = "csv"


# Format display names
FORMAT_DISPLAY_NAMES = {
    AnnotationFormatType.PASCAL_VOC: "Pascal VOC",
    AnnotationFormatType.YOLO: "YOLO",
    AnnotationFormatType.JSON: "JSON",
    AnnotationFormatType.CSV: "CSV",
}

# Format descriptions
FORMAT_DESCRIPTIONS = {
    AnnotationFormatType.PASCAL_VOC: "One .xml file per image with absolute pixel coordinates",
    AnnotationFormatType.YOLO: "One .txt file per image with normalized coordinates and an object.data file",
    AnnotationFormatType.JSON: "Single JSON file for all images, supports nested parts and tags",
    AnnotationFormatType.CSV: "Single CSV file with one bounding box per row",
}


class FormatRegistry:
    """
    Registry for annotation format handlers.

    Provides format auto-detection and handler instantiation.
    """

    # Map format types to handler classes
    _formats: Dict[AnnotationFormatType, Type[AnnotationFormat]] = {
        AnnotationFormatType.PASCAL_VOC: PascalVOCAnnotationFormat,
        AnnotationFormatType.YOLO: YOLOAnnotationFormat,
        AnnotationFormatType.JSON: JSONAnnotationFormat,
        AnnotationFormatType.CSV: CSVAnnotationFormat,
    }

    @classmethod
    def get_format_names(cls) -> List[str]:
        """Get list of available format names."""
        return [fmt.value for fmt in cls._formats]

    @classmethod
    def get_display_name(cls, fmt: Union[AnnotationFormatType, str]) -> str:
        """Get the display name for a format."""
        return FORMAT_DISPLAY_NAMES[cls.to_format_type(fmt)]

    @classmethod
    def get_description(cls, fmt: Union[AnnotationFormatType, str]) -> str:
        """Get the description for a format."""
        return FORMAT_DESCRIPTIONS[cls.to_format_type(fmt)]

    @staticmethod
    def to_format_type(fmt: Union[AnnotationFormatType, str]) -> AnnotationFormatType:
        """
        Convert a format name to its enum member.

        Raises:
            ValueError: If format name is unknown
        """
        try:
            return AnnotationFormatType(fmt)
        except ValueError:
            raise ValueError(f"Unknown format: {fmt}") from None

    @classmethod
    def get_handler(
        cls,
        fmt: Union[AnnotationFormatType, str],
        max_workers: Optional[int] = None
    ) -> AnnotationFormat:
        """
        Get an instance of a format handler.

        Args:
            fmt: Format type or name (pascal_voc, yolo, json, csv)
            max_workers: Maximum number of worker threads of the handler

        Returns:
            AnnotationFormat instance

        Raises:
            ValueError: If format name is unknown
        """
        handler_class = cls._formats[cls.to_format_type(fmt)]
        return handler_class(max_workers)

    @classmethod
    def detect_format(cls, path: Path) -> Optional[AnnotationFormatType]:
        """
        Auto-detect the annotation format of a file or directory.

        Detection order (first match wins):
        1. A .json file: JSON
        2. A .csv file: CSV
        3. A directory containing object.data: YOLO
        4. A directory containing an XML file with an "annotation" root: Pascal VOC

        Args:
            path: Annotation file or directory

        Returns:
            Detected format, or None if the format could not be determined
        """
        path = Path(path)

        if path.is_file():
            suffix = path.suffix.lower()
            if suffix == ".json":
                return AnnotationFormatType.JSON
            if suffix == ".csv":
                return AnnotationFormatType.CSV
            logger.info(f"No format detected for file {path}")
            return None

        if not path.is_dir():
            logger.warning(f"Path not found: {path}")
            return None

        if (path / OBJECT_DATA_FILE_NAME).is_file():
            logger.info(f"Detected YOLO format in {path}")
            return AnnotationFormatType.YOLO

        if cls._detect_pascal_voc(path):
            logger.info(f"Detected Pascal VOC format in {path}")
            return AnnotationFormatType.PASCAL_VOC

        logger.info(f"No format detected in {path}")
        return None

    @classmethod
    def _detect_pascal_voc(cls, directory: Path) -> bool:
        """Check if directory contains Pascal VOC format annotations."""
        for xml_path in sorted(directory.glob("*.xml")):
            try:
                root = ET.parse(xml_path).getroot()
            except (ET.ParseError, OSError) as e:
                logger.debug(f"Skipping {xml_path} during format detection: {e}")
                continue

            if root.tag == "annotation":
                return True
        return False

    @classmethod
    def is_per_image_format(cls, fmt: Union[AnnotationFormatType, str]) -> bool:
        """Check if a format uses per-image files."""
        return cls.get_handler(fmt).is_per_image

    @classmethod
    def format_supports_polygons(cls, fmt: Union[AnnotationFormatType, str]) -> bool:
        """Check if a format supports polygon annotations."""
        return cls.get_handler(fmt).supports_polygons
