"""CSV annotation format reading and writing."""

from __future__ import annotations

import csv
import logging
from dataclasses import astuple, dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Tuple

from .annotation_format import (
    AnnotationAssociationError,
    AnnotationFormat,
    FileLoadResult,
    InvalidAnnotationFormatError,
    MissingImageDataError,
)
from .categories import CategoryRegistry
from .geometry import to_relative
from .models import (
    BoundingBoxData,
    BoundingFreehandShapeData,
    BoundingPolygonData,
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

CSV_COLUMNS = ("filename", "width", "height", "class", "xmin", "ymin", "xmax", "ymax")
INTEGER_COLUMNS = ("width", "height", "xmin", "ymin", "xmax", "ymax")


@dataclass
class CSVRow:
    """A single bounding box in absolute pixel coordinates."""

    filename: str
    width: int
    height: int
    category_name: str
    x_min: int
    y_min: int
    x_max: int
    y_max: int

    @classmethod
    def from_dict(cls, d: Dict[str, str], row_num: int) -> CSVRow:
        """
        Create a row from a column name to value mapping.

        Raises:
            InvalidAnnotationFormatError: If a value is blank or not an integer
        """
        for column in ("filename", "class"):
            if not d[column].strip():
                raise InvalidAnnotationFormatError(f'Invalid value for column "{column}" on row {row_num}.')

        values: Dict[str, int] = {}
        for column in INTEGER_COLUMNS:
            try:
                values[column] = int(d[column].strip())
            except ValueError:
                raise InvalidAnnotationFormatError(
                    f'Invalid value for column "{column}" on row {row_num}.'
                ) from None

        return cls(
            filename=d["filename"].strip(),
            width=values["width"],
            height=values["height"],
            category_name=d["class"].strip(),
            x_min=values["xmin"],
            y_min=values["ymin"],
            x_max=values["xmax"],
            y_max=values["ymax"],
        )

    def is_valid_box(self) -> bool:
        return (
            self.width > 0 and self.height > 0
            and 0 <= self.x_min <= self.x_max <= self.width
            and 0 <= self.y_min <= self.y_max <= self.height
        )

    def to_tuple(self) -> tuple:
        """Convert to tuple for CSV writing."""
        return astuple(self)


class CSVAnnotationFormat(AnnotationFormat):
    """
    CSV annotation format handler.

    All bounding boxes are stored in a single CSV file with the header
    filename,width,height,class,xmin,ymin,xmax,ymax and one row per box.
    Coordinates are absolute integer pixel values. Polygons and freehand
    shapes, tags and nested parts cannot be represented.
    """

    @property
    def format_name(self) -> str:
        """Return the format name."""
        return "csv"

    @property
    def display_name(self) -> str:
        return "CSV"

    @property
    def is_per_image(self) -> bool:
        """CSV uses a single file for all images."""
        return False

    @property
    def file_extension(self) -> str:
        """CSV uses .csv files."""
        return ".csv"

    @property
    def supports_polygons(self) -> bool:
        """CSV only supports bounding boxes."""
        return False

    # === Loading ===

    def load(
        self,
        source: Path,
        eligible_filenames: Iterable[str],
        categories: CategoryRegistry,
        progress: IOProgress
    ) -> ImageAnnotationImportResult:
        """
        Load bounding boxes from a CSV file.

        Rows are numbered starting with 1 for the first row after the header.

        Args:
            source: Path to the CSV file
            eligible_filenames: Names of the currently loaded image files
            categories: Registry that is extended with new categories
            progress: Progress tracker

        Returns:
            Import result
        """
        source = Path(source)

        try:
            with open(source, "r", encoding="utf-8", newline="") as f:
                rows = [row for row in csv.reader(f) if row]
        except csv.Error as e:
            return self._fatal_import(source.name, f"Invalid CSV: {e}")
        except (OSError, UnicodeDecodeError) as e:
            return self._fatal_import(source.name, str(e))

        header = [column.strip() for column in rows[0]] if rows else []
        if len(header) != len(CSV_COLUMNS) or set(header) != set(CSV_COLUMNS):
            return self._fatal_import(
                source.name, f"Invalid CSV header: expected columns {', '.join(CSV_COLUMNS)}."
            )

        data_rows = list(enumerate(rows[1:], 1))
        if not data_rows:
            return self._fatal_import(source.name, "Does not contain any annotation rows.")

        eligible = frozenset(eligible_filenames)

        result = self._load_files(
            lambda item: self._load_row(item[1], item[0], header, source.name, eligible, categories),
            data_rows,
            categories,
            progress
        )
        logger.info(
            f"Loaded {result.success_count} CSV annotations from {source} "
            f"({len(result.errors)} errors)"
        )
        return result

    def _load_row(
        self,
        values: List[str],
        row_num: int,
        header: List[str],
        source: str,
        eligible: FrozenSet[str],
        categories: CategoryRegistry
    ) -> FileLoadResult:
        result = FileLoadResult()

        try:
            if len(values) != len(header):
                raise InvalidAnnotationFormatError(f"Invalid number of values on row {row_num}.")

            row = CSVRow.from_dict(dict(zip(header, values)), row_num)

            if row.filename not in eligible:
                raise AnnotationAssociationError(
                    f"Image {row.filename} does not belong to currently loaded image files."
                )

            if not row.is_valid_box():
                raise InvalidAnnotationFormatError(f"Invalid bounding-box coordinates on row {row_num}.")
        except AnnotationAssociationError as e:
            result.add_error(row.filename, str(e))
            return result
        except InvalidAnnotationFormatError as e:
            result.add_error(source, str(e))
            return result

        bounds = to_relative([row.x_min, row.y_min, row.x_max, row.y_max], row.width, row.height)
        box = BoundingBoxData(categories.resolve(row.category_name), *bounds)

        meta = ImageMetaData(row.filename, width=row.width, height=row.height)
        result.annotation = ImageAnnotation(meta, [box])
        result.counts[row.category_name] += 1
        return result

    # === Saving ===

    def save(
        self,
        annotation_data: ImageAnnotationData,
        destination: Path,
        progress: IOProgress
    ) -> ImageAnnotationExportResult:
        """
        Write all bounding boxes to a single CSV file.

        Args:
            annotation_data: Annotations to save
            destination: Path of the CSV file
            progress: Progress tracker

        Returns:
            Export result
        """
        destination = Path(destination)
        outcomes = self._map_parallel(self._create_rows, annotation_data.image_annotations, progress)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with open(destination, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f, lineterminator="\n")
                writer.writerow(CSV_COLUMNS)
                for rows, _ in outcomes:
                    for row in rows:
                        writer.writerow(row.to_tuple())
        except OSError as e:
            return self._fatal_export(destination.name, str(e))

        errors = [error for _, outcome_errors in outcomes for error in outcome_errors]
        success_count = sum(1 for _, outcome_errors in outcomes if not outcome_errors)
        logger.info(f"Saved {success_count} annotations to {destination}")

        return ImageAnnotationExportResult(
            success_count=success_count,
            errors=errors,
            cancelled=progress.is_cancelled,
        )

    def _create_rows(self, annotation: ImageAnnotation) -> Tuple[List[CSVRow], List[IOErrorInfoEntry]]:
        meta = annotation.image_meta_data

        try:
            self._require_dimensions(meta)
        except MissingImageDataError as e:
            logger.error(f"Cannot export {meta.file_name}: {e}")
            return [], [IOErrorInfoEntry(meta.file_name, str(e))]

        width = int(round(meta.width))
        height = int(round(meta.height))
        rows: List[CSVRow] = []

        for shape in annotation.bounding_shape_data:
            if isinstance(shape, BoundingBoxData):
                x_min, y_min, x_max, y_max = shape.absolute_bounds(width, height)
                rows.append(CSVRow(
                    filename=meta.file_name,
                    width=width,
                    height=height,
                    category_name=shape.category_name,
                    x_min=int(round(x_min)),
                    y_min=int(round(y_min)),
                    x_max=int(round(x_max)),
                    y_max=int(round(y_max)),
                ))
            elif isinstance(shape, (BoundingPolygonData, BoundingFreehandShapeData)):
                continue
            else:
                raise TypeError(f"Unsupported shape type: {type(shape).__name__}")

        return rows, []
