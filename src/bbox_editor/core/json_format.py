"""JSON annotation format reading and writing."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from PyQt6.QtGui import QColor

from .annotation_format import (
    AnnotationAssociationError,
    AnnotationFormat,
    FileLoadResult,
    InvalidAnnotationFormatError,
)
from .categories import CategoryRegistry
from .geometry import format_decimal, is_ratio
from .models import (
    BoundingBoxData,
    BoundingFreehandShapeData,
    BoundingPolygonData,
    BoundingShape,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ShapeType,
)
from .progress import IOProgress
from .results import ImageAnnotationExportResult, ImageAnnotationImportResult

logger = logging.getLogger(__name__)

DECIMAL_PLACES = 6

BOUNDS_KEYS = ("minX", "minY", "maxX", "maxY")

POINT_LIST_KEYS = {
    ShapeType.POLYGON: "polygon",
    ShapeType.FREEHAND: "path",
}


def _number(value: float) -> float:
    """
    Round a coordinate to six fraction digits for serialization.

    The result is written as a JSON number, so values below 1e-4 come out in
    exponent form (4e-06). Readers parse that to the same value.
    """
    return float(format_decimal(value, DECIMAL_PLACES))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class JSONAnnotationFormat(AnnotationFormat):
    """
    JSON annotation format handler.

    All annotations are stored in a single file containing an array with one
    record per image:

    [
        {
            "image": {
                "fileName": "image.jpg",
                "details": {"folderName": "images", "width": 640.0, "height": 480.0, "depth": 3}
            },
            "objects": [
                {
                    "category": {"name": "cat", "color": "#FF0000"},
                    "tags": ["difficult"],
                    "bndbox": {"minX": 0.1, "minY": 0.2, "maxX": 0.3, "maxY": 0.4},
                    "parts": [...]
                }
            ]
        }
    ]

    Instead of "bndbox" an object can contain a flat "polygon" or "path"
    list of relative [x0, y0, x1, y1, ...] coordinates.
    """

    @property
    def format_name(self) -> str:
        """Return the format name."""
        return "json"

    @property
    def display_name(self) -> str:
        return "JSON"

    @property
    def is_per_image(self) -> bool:
        """JSON uses a single file for all images."""
        return False

    @property
    def file_extension(self) -> str:
        """JSON uses .json files."""
        return ".json"

    # === Loading ===

    def load(
        self,
        source: Path,
        eligible_filenames: Iterable[str],
        categories: CategoryRegistry,
        progress: IOProgress
    ) -> ImageAnnotationImportResult:
        """
        Load annotations from a JSON file.

        Args:
            source: Path to the JSON file
            eligible_filenames: Names of the currently loaded image files
            categories: Registry that is extended with new categories
            progress: Progress tracker

        Returns:
            Import result
        """
        source = Path(source)

        try:
            with open(source, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            return self._fatal_import(source.name, f"Invalid JSON: {e}")
        except (OSError, UnicodeDecodeError) as e:
            return self._fatal_import(source.name, str(e))
        except (RecursionError, ValueError) as e:
            return self._fatal_import(source.name, f"Invalid JSON: {e}")

        if not isinstance(data, list):
            return self._fatal_import(source.name, "Top-level element is not an array.")

        eligible = frozenset(eligible_filenames)

        result = self._load_files(
            lambda record: self._load_record(record, source.name, eligible, categories),
            data,
            categories,
            progress
        )
        logger.info(
            f"Loaded {result.success_count} JSON annotations from {source} "
            f"({len(result.errors)} errors)"
        )
        return result

    def _load_record(
        self,
        record: Any,
        source: str,
        eligible: FrozenSet[str],
        categories: CategoryRegistry
    ) -> FileLoadResult:
        result = FileLoadResult()

        try:
            meta = self._parse_image(record, eligible)
            objects = record.get("objects")
            if not isinstance(objects, list):
                raise InvalidAnnotationFormatError(
                    f"Missing objects element in annotation for image {meta.file_name}."
                )
        except (InvalidAnnotationFormatError, AnnotationAssociationError) as e:
            result.add_error(source, str(e))
            return result

        shapes: List[BoundingShape] = []
        for obj in objects:
            shape = self._parse_shape_or_report(obj, meta.file_name, categories, result, source)
            if shape is not None:
                shapes.append(shape)

        if shapes:
            result.annotation = ImageAnnotation(meta, shapes)
        return result

    @staticmethod
    def _parse_image(record: Any, eligible: FrozenSet[str]) -> ImageMetaData:
        if not isinstance(record, dict) or not isinstance(record.get("image"), dict):
            raise InvalidAnnotationFormatError("Missing image element.")

        file_name = record["image"].get("fileName")
        if not isinstance(file_name, str) or not file_name:
            raise InvalidAnnotationFormatError("Missing image fileName element.")

        if file_name not in eligible:
            raise AnnotationAssociationError(
                f"Image {file_name} does not belong to currently loaded image files."
            )

        return ImageMetaData(file_name)

    def _parse_shape_or_report(
        self,
        obj: Any,
        image_name: str,
        categories: CategoryRegistry,
        result: FileLoadResult,
        source: str
    ) -> Optional[BoundingShape]:
        try:
            return self._parse_shape(obj, image_name, categories, result, source)
        except InvalidAnnotationFormatError as e:
            result.add_error(source, str(e))
            return None

    def _parse_shape(
        self,
        obj: Any,
        image_name: str,
        categories: CategoryRegistry,
        result: FileLoadResult,
        source: str
    ) -> BoundingShape:
        suffix = f"in annotation for image {image_name}."

        if not isinstance(obj, dict):
            raise InvalidAnnotationFormatError(f"Missing bndbox or polygon element {suffix}")

        if "bndbox" in obj:
            kind = "bndbox"
        elif "polygon" in obj:
            kind = "polygon"
        elif "path" in obj:
            kind = "path"
        else:
            raise InvalidAnnotationFormatError(f"Missing bndbox or polygon element {suffix}")

        if "category" not in obj:
            raise InvalidAnnotationFormatError(f"Missing category element in {kind} element {suffix}")

        category_data = obj["category"]
        name = category_data.get("name") if isinstance(category_data, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise InvalidAnnotationFormatError(f"Missing category name element {suffix}")

        color: Optional[QColor] = None
        if "color" in category_data:
            color = QColor(category_data["color"]) if isinstance(category_data["color"], str) else QColor()
            if not color.isValid():
                raise InvalidAnnotationFormatError(f"Invalid color element {suffix}")

        if kind == "bndbox":
            bounds = self._parse_bounds(obj["bndbox"], suffix)
        else:
            points = self._parse_points(obj[kind], kind, suffix)

        tags = obj.get("tags")
        if tags is None:
            tags = []
        elif not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            raise InvalidAnnotationFormatError(f"Invalid tags value(s) in {kind} element {suffix}")

        parts = obj.get("parts")
        if parts is None:
            parts = []
        elif not isinstance(parts, list):
            raise InvalidAnnotationFormatError(f"Invalid parts value(s) in {kind} element {suffix}")

        category = categories.resolve(name, color)
        tags = [tag for tag in tags if tag.strip()]

        if kind == "bndbox":
            shape: BoundingShape = BoundingBoxData(category, *bounds, tags=tags)
        elif kind == "polygon":
            shape = BoundingPolygonData(category, points, tags=tags)
        else:
            shape = BoundingFreehandShapeData(category, points, tags=tags)

        result.counts[name] += 1

        for part in parts:
            part_shape = self._parse_shape_or_report(part, image_name, categories, result, source)
            if part_shape is not None:
                shape.parts.append(part_shape)

        return shape

    @staticmethod
    def _parse_bounds(bounds_data: Any, suffix: str) -> List[float]:
        if not isinstance(bounds_data, dict):
            raise InvalidAnnotationFormatError(f"Invalid coordinate value(s) in bndbox element {suffix}")

        bounds: List[float] = []
        for key in BOUNDS_KEYS:
            if key not in bounds_data:
                raise InvalidAnnotationFormatError(f"Missing {key} element in bndbox element {suffix}")

            value = bounds_data[key]
            if not _is_number(value) or not is_ratio(value):
                raise InvalidAnnotationFormatError(
                    f"Invalid coordinate value for {key} element in bndbox element {suffix}"
                )
            bounds.append(float(value))

        if bounds[0] > bounds[2] or bounds[1] > bounds[3]:
            raise InvalidAnnotationFormatError(f"Invalid coordinate value(s) in bndbox element {suffix}")
        return bounds

    @staticmethod
    def _parse_points(points_data: Any, kind: str, suffix: str) -> List[float]:
        if not isinstance(points_data, list) or not all(_is_number(value) for value in points_data):
            raise InvalidAnnotationFormatError(f"Invalid coordinate value(s) in {kind} element {suffix}")

        if len(points_data) < 6 or len(points_data) % 2 != 0:
            raise InvalidAnnotationFormatError(f"Invalid number of coordinates in {kind} element {suffix}")

        if not all(is_ratio(value) for value in points_data):
            raise InvalidAnnotationFormatError(f"Invalid coordinate value(s) in {kind} element {suffix}")

        return [float(value) for value in points_data]

    # === Saving ===

    def save(
        self,
        annotation_data: ImageAnnotationData,
        destination: Path,
        progress: IOProgress
    ) -> ImageAnnotationExportResult:
        """
        Write all annotations to a single JSON file.

        Args:
            annotation_data: Annotations to save
            destination: Path of the JSON file
            progress: Progress tracker

        Returns:
            Export result
        """
        destination = Path(destination)
        records = self._map_parallel(self._create_record, annotation_data.image_annotations, progress)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(destination, "w", encoding="utf-8", newline="\n") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
        except OSError as e:
            return self._fatal_export(destination.name, str(e))

        logger.info(f"Saved {len(records)} annotations to {destination}")
        return ImageAnnotationExportResult(
            success_count=len(records),
            cancelled=progress.is_cancelled,
        )

    def _create_record(self, annotation: ImageAnnotation) -> Dict[str, Any]:
        meta = annotation.image_meta_data
        image: Dict[str, Any] = {"fileName": meta.file_name}

        if meta.has_details:
            image["details"] = {
                "folderName": meta.folder_name,
                "width": meta.oriented_width,
                "height": meta.oriented_height,
                "depth": meta.depth,
            }

        return {
            "image": image,
            "objects": [self._create_object(shape) for shape in annotation.bounding_shape_data],
        }

    def _create_object(self, shape: BoundingShape) -> Dict[str, Any]:
        obj: Dict[str, Any] = {
            "category": {"name": shape.category_name, "color": shape.category.color_hex},
            "tags": list(shape.tags),
        }

        if isinstance(shape, BoundingBoxData):
            obj["bndbox"] = {
                key: _number(value) for key, value in zip(BOUNDS_KEYS, shape.relative_bounds)
            }
        elif isinstance(shape, (BoundingPolygonData, BoundingFreehandShapeData)):
            obj[POINT_LIST_KEYS[shape.shape_type]] = [_number(value) for value in shape.points]
        else:
            raise TypeError(f"Unsupported shape type: {type(shape).__name__}")

        if shape.parts:
            obj["parts"] = [self._create_object(part) for part in shape.parts]
        return obj
