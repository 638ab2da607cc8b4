"""YOLO annotation format reading and writing."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .annotation_format import (
    AnnotationAssociationError,
    AnnotationFormat,
    FileLoadResult,
    InvalidAnnotationFormatError,
)
from .categories import CategoryRegistry
from .geometry import format_decimal, snap_ratio
from .models import (
    BoundingBoxData,
    BoundingFreehandShapeData,
    BoundingPolygonData,
    BoundingShape,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
)
from .progress import IOProgress
from .results import (
    ImageAnnotationExportResult,
    ImageAnnotationImportResult,
    IOErrorInfoEntry,
)

logger = logging.getLogger(__name__)

OBJECT_DATA_FILE_NAME = "object.data"
DECIMAL_PLACES = 6


class YOLOAnnotationFormat(AnnotationFormat):
    """
    YOLO annotation format handler.

    YOLO format uses one .txt file per image with normalized coordinates.
    The category names are listed in an "object.data" file, one name per
    line; a line's position is the category index used in the annotation
    files.

    Supports both bounding box format (5 values) and polygon format (2n+1 values):
    - Bounding box: class_id x_center y_center width height
    - Polygon: class_id x1 y1 x2 y2 ... xn yn

    Tags, nested parts and freehand shapes cannot be represented and are
    not written.
    """

    @property
    def format_name(self) -> str:
        """Return the format name."""
        return "yolo"

    @property
    def display_name(self) -> str:
        return "YOLO"

    @property
    def is_per_image(self) -> bool:
        """YOLO uses one .txt file per image."""
        return True

    @property
    def file_extension(self) -> str:
        """YOLO uses .txt files."""
        return ".txt"

    # === Loading ===

    def load(
        self,
        source: Path,
        eligible_filenames: Iterable[str],
        categories: CategoryRegistry,
        progress: IOProgress
    ) -> ImageAnnotationImportResult:
        """
        Load all YOLO files located directly in a directory.

        Args:
            source: Directory containing object.data and the .txt files
            eligible_filenames: Names of the currently loaded image files
            categories: Registry that is extended with new categories
            progress: Progress tracker

        Returns:
            Import result
        """
        source = Path(source)
        object_data_path = source / OBJECT_DATA_FILE_NAME

        if not object_data_path.is_file():
            return self._fatal_import(
                OBJECT_DATA_FILE_NAME, f'Does not exist in annotation folder "{source.name}".'
            )

        try:
            category_names = self.read_category_names(object_data_path)
        except (OSError, UnicodeDecodeError) as e:
            return self._fatal_import(OBJECT_DATA_FILE_NAME, str(e))

        if not category_names:
            return self._fatal_import(OBJECT_DATA_FILE_NAME, "Does not contain any category names.")

        images_by_stem: Dict[str, List[str]] = {}
        for file_name in eligible_filenames:
            images_by_stem.setdefault(Path(file_name).stem, []).append(file_name)

        txt_files = self._list_files(source)

        result = self._load_files(
            lambda path: self._load_file(path, images_by_stem, category_names, categories),
            txt_files,
            categories,
            progress
        )
        logger.info(
            f"Loaded {result.success_count} YOLO annotations from {source} "
            f"({len(result.errors)} errors)"
        )
        return result

    @staticmethod
    def read_category_names(object_data_path: Path) -> List[str]:
        """
        Read the category names from an object.data file.

        Args:
            object_data_path: Path to the object.data file

        Returns:
            Category names in index order, blank lines skipped
        """
        with open(object_data_path, "r", encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]

    def _load_file(
        self,
        txt_path: Path,
        images_by_stem: Dict[str, List[str]],
        category_names: List[str],
        categories: CategoryRegistry
    ) -> FileLoadResult:
        result = FileLoadResult()

        try:
            candidates = images_by_stem.get(txt_path.stem, [])
            if not candidates:
                raise AnnotationAssociationError("No associated image file.")
            if len(candidates) > 1:
                raise AnnotationAssociationError("More than one associated image file.")

            with open(txt_path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError, AnnotationAssociationError) as e:
            result.add_error(txt_path.name, str(e))
            return result

        shapes: List[BoundingShape] = []

        for line_num, line in enumerate(lines, 1):
            line = line.strip()
            if not line:
                continue

            try:
                shape = self._parse_line(line, line_num, category_names, categories)
            except InvalidAnnotationFormatError as e:
                result.add_error(txt_path.name, str(e))
                continue

            shapes.append(shape)
            result.counts[shape.category_name] += 1

        if shapes:
            result.annotation = ImageAnnotation(ImageMetaData(candidates[0]), shapes)
        return result

    def _parse_line(
        self,
        line: str,
        line_num: int,
        category_names: List[str],
        categories: CategoryRegistry
    ) -> BoundingShape:
        """
        Parse a single annotation line.

        Args:
            line: Stripped, non-blank line from an annotation file
            line_num: One-based line number used in error messages
            category_names: Category names from object.data
            categories: Category registry

        Returns:
            Bounding box or polygon

        Raises:
            InvalidAnnotationFormatError: If the line is invalid
        """
        data = line.split()

        try:
            category_index = int(data[0])
        except ValueError:
            raise InvalidAnnotationFormatError(
                f"Missing or invalid category index on line {line_num}."
            ) from None

        if not 0 <= category_index < len(category_names):
            raise InvalidAnnotationFormatError(
                f"Invalid category index {category_index} "
                f"(of {len(category_names)} categories) on line {line_num}."
            )

        try:
            values = [float(value) for value in data[1:]]
        except ValueError:
            values = []

        if not values:
            raise InvalidAnnotationFormatError(
                f"Missing or invalid bounding-box bounds on line {line_num}."
            )

        if len(values) != 4 and (len(values) < 6 or len(values) % 2 != 0):
            raise InvalidAnnotationFormatError(f"Invalid number of coordinates on line {line_num}.")

        ratios = [snap_ratio(value) for value in values]
        if any(ratio is None for ratio in ratios):
            raise InvalidAnnotationFormatError(f"Bounds ratio not within [0, 1] on line {line_num}.")

        category = categories.resolve(category_names[category_index])

        if len(values) == 4:
            x_center, y_center, width, height = ratios
            corners = [
                snap_ratio(x_center - width / 2),
                snap_ratio(y_center - height / 2),
                snap_ratio(x_center + width / 2),
                snap_ratio(y_center + height / 2),
            ]
            if any(corner is None for corner in corners):
                raise InvalidAnnotationFormatError(f"Invalid bounding-box coordinates on line {line_num}.")
            return BoundingBoxData(category, *corners)

        return BoundingPolygonData(category, ratios)

    # === Saving ===

    def save(
        self,
        annotation_data: ImageAnnotationData,
        destination: Path,
        progress: IOProgress
    ) -> ImageAnnotationExportResult:
        """
        Write object.data and one YOLO file per annotated image.

        Args:
            annotation_data: Annotations to save
            destination: Target directory, created if missing
            progress: Progress tracker

        Returns:
            Export result
        """
        destination = Path(destination)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return self._fatal_export(destination.name, str(e))

        category_names = sorted(
            name for name, count in annotation_data.category_name_to_shape_count.items() if count > 0
        )
        category_indices = {name: index for index, name in enumerate(category_names)}

        errors: List[IOErrorInfoEntry] = []

        try:
            with open(destination / OBJECT_DATA_FILE_NAME, "w", encoding="utf-8", newline="\n") as f:
                f.write("\n".join(category_names))
        except OSError as e:
            logger.error(f"Error writing {OBJECT_DATA_FILE_NAME}: {e}")
            errors.append(IOErrorInfoEntry(OBJECT_DATA_FILE_NAME, str(e)))

        outcomes = self._map_parallel(
            lambda annotation: self._save_annotation(annotation, destination, category_indices),
            annotation_data.image_annotations,
            progress
        )

        errors.extend(error for outcome in outcomes for error in outcome)
        success_count = sum(1 for outcome in outcomes if not outcome)
        logger.info(f"Saved {success_count} YOLO files to {destination}")

        return ImageAnnotationExportResult(
            success_count=success_count,
            errors=errors,
            cancelled=progress.is_cancelled,
        )

    def _save_annotation(
        self,
        annotation: ImageAnnotation,
        destination: Path,
        category_indices: Dict[str, int]
    ) -> List[IOErrorInfoEntry]:
        txt_path = destination / (Path(annotation.image_file_name).stem + self.file_extension)
        lines: List[str] = []

        for shape in annotation.bounding_shape_data:
            index = category_indices.get(shape.category_name)
            if index is None:
                logger.warning(
                    f"Skipping shape with unknown category '{shape.category_name}' "
                    f"in {annotation.image_file_name}"
                )
                continue

            line = self._format_line(index, shape)
            if line is not None:
                lines.append(line)

        try:
            with open(txt_path, "w", encoding="utf-8", newline="\n") as f:
                f.write("\n".join(lines))
        except OSError as e:
            logger.error(f"Error writing YOLO file {txt_path}: {e}")
            return [IOErrorInfoEntry(annotation.image_file_name, str(e))]

        logger.debug(f"Saved {len(lines)} annotations to {txt_path}")
        return []

    @staticmethod
    def _format_line(index: int, shape: BoundingShape) -> Optional[str]:
        """Return the annotation line for a shape, or None if YOLO cannot represent it."""
        if isinstance(shape, BoundingBoxData):
            values = list(shape.center_and_size())
        elif isinstance(shape, BoundingPolygonData):
            if shape.vertex_count < 3:
                return None
            values = shape.points
        elif isinstance(shape, BoundingFreehandShapeData):
            return None
        else:
            raise TypeError(f"Unsupported shape type: {type(shape).__name__}")

        return " ".join([str(index)] + [format_decimal(value, DECIMAL_PLACES) for value in values])
