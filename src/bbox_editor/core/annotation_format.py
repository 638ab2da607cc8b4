"""Abstract base class for annotation format handlers."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from .categories import CategoryRegistry
from .models import ImageAnnotation, ImageAnnotationData, ImageMetaData
from .progress import IOProgress
from .results import (
    ImageAnnotationExportResult,
    ImageAnnotationImportResult,
    IOErrorInfoEntry,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class AnnotationIOError(Exception):
    """Base class for problems with a single annotation record or file."""


class InvalidAnnotationFormatError(AnnotationIOError):
    """An annotation record is malformed or has invalid values."""


class AnnotationAssociationError(AnnotationIOError):
    """An annotation cannot be assigned to exactly one loaded image."""


class MissingImageDataError(AnnotationIOError):
    """Image dimensions required for conversion are unknown."""


@dataclass
class FileLoadResult:
    """Outcome of loading a single annotation file or record."""

    annotation: Optional[ImageAnnotation] = None
    errors: List[IOErrorInfoEntry] = field(default_factory=list)
    counts: Counter = field(default_factory=Counter)

    def add_error(self, source: str, message: str) -> None:
        logger.warning(f"{source}: {message}")
        self.errors.append(IOErrorInfoEntry(source, message))


class AnnotationFormat(ABC):
    """
    Abstract base class for annotation format handlers.

    Provides a unified interface for loading and saving annotations in
    the supported interchange formats.

    Formats are divided into two types:
    - Per-image formats (YOLO, Pascal VOC): One annotation file per image
    - Dataset formats (JSON, CSV): One file for all images

    Per-file work runs on a bounded thread pool. Each task produces its own
    result object; results are merged after all tasks completed.
    """

    def __init__(self, max_workers: Optional[int] = None) -> None:
        """
        Initialize the format handler.

        Args:
            max_workers: Maximum number of worker threads, defaults to the CPU count
        """
        self.max_workers = max_workers or os.cpu_count() or 1

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Return the format name (e.g., 'yolo', 'pascal_voc', 'json', 'csv')."""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Return the human readable format name."""
        pass

    @property
    @abstractmethod
    def is_per_image(self) -> bool:
        """
        Return True if format uses one file per image, False for dataset-wide files.

        Per-image formats: YOLO (.txt), Pascal VOC (.xml)
        Dataset formats: JSON (.json), CSV (.csv)
        """
        pass

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Return the file extension for annotation files (e.g., '.txt', '.xml', '.json')."""
        pass

    @property
    def supports_polygons(self) -> bool:
        """Return True if format supports polygon annotations."""
        return True

    @abstractmethod
    def load(
        self,
        source: Path,
        eligible_filenames: Iterable[str],
        categories: CategoryRegistry,
        progress: IOProgress
    ) -> ImageAnnotationImportResult:
        """
        Load annotations.

        Args:
            source: Annotation directory (per-image formats) or file (dataset formats)
            eligible_filenames: Names of the currently loaded image files
            categories: Registry that is extended with new categories
            progress: Progress tracker, also used for cancellation

        Returns:
            Import result with loaded annotations, counts and errors
        """
        pass

    @abstractmethod
    def save(
        self,
        annotation_data: ImageAnnotationData,
        destination: Path,
        progress: IOProgress
    ) -> ImageAnnotationExportResult:
        """
        Save annotations.

        Args:
            annotation_data: Annotations to save
            destination: Target directory (per-image formats) or file (dataset formats)
            progress: Progress tracker, also used for cancellation

        Returns:
            Export result with the number of written items and errors
        """
        pass

    def _map_parallel(
        self,
        task: Callable[[T], R],
        items: List[T],
        progress: IOProgress
    ) -> List[R]:
        """
        Run a task for every item on the thread pool.

        Items whose task has not started when cancellation is requested are
        skipped. Progress advances after every item, also when its task
        raised. Exceptions are re-raised once all tasks finished.

        Args:
            task: Function applied to every item
            items: Work items
            progress: Progress tracker

        Returns:
            Results of the tasks that ran, in item order
        """
        progress.reset(len(items))
        if not items:
            return []

        def run(item: T) -> Optional[R]:
            if progress.is_cancelled:
                return None
            try:
                return task(item)
            finally:
                progress.advance()

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as executor:
            futures = [executor.submit(run, item) for item in items]
            results = [future.result() for future in futures]

        return [result for result in results if result is not None]

    def _load_files(
        self,
        task: Callable[[T], FileLoadResult],
        items: List[T],
        categories: CategoryRegistry,
        progress: IOProgress
    ) -> ImageAnnotationImportResult:
        """Run per-file load tasks and merge their results into one import result."""
        file_results = self._map_parallel(task, items, progress)

        annotations: List[ImageAnnotation] = []
        errors: List[IOErrorInfoEntry] = []
        counts: Counter = Counter()

        for file_result in file_results:
            errors.extend(file_result.errors)
            counts.update(file_result.counts)
            if file_result.annotation is not None:
                annotations.append(file_result.annotation)

        merged = self._merge_annotations(annotations)
        category_map = {
            name: categories.get(name) for name in counts
        }
        data = ImageAnnotationData(
            image_annotations=merged,
            category_name_to_shape_count=dict(counts),
            category_name_to_category={
                name: category for name, category in category_map.items() if category is not None
            },
        )
        return ImageAnnotationImportResult(
            success_count=len(merged),
            errors=errors,
            cancelled=progress.is_cancelled,
            image_annotation_data=data,
        )

    @staticmethod
    def _merge_annotations(annotations: Iterable[ImageAnnotation]) -> List[ImageAnnotation]:
        """
        Collapse annotations referring to the same image and sort them by filename.

        The metadata of the first annotation of an image is kept; shapes of
        later ones are appended.
        """
        by_name: Dict[str, ImageAnnotation] = {}
        for annotation in annotations:
            existing = by_name.get(annotation.image_file_name)
            if existing is None:
                by_name[annotation.image_file_name] = ImageAnnotation(
                    annotation.image_meta_data, list(annotation.bounding_shape_data)
                )
            else:
                existing.bounding_shape_data.extend(annotation.bounding_shape_data)
        return [by_name[name] for name in sorted(by_name)]

    def _list_files(self, directory: Path, extension: Optional[str] = None) -> List[Path]:
        """
        List the files directly inside a directory.

        Args:
            directory: Directory to scan (not recursive)
            extension: Only return files with this suffix (case-insensitive)

        Returns:
            Sorted list of file paths
        """
        suffix = (extension or self.file_extension).lower()
        return sorted(
            entry for entry in Path(directory).iterdir()
            if entry.is_file() and entry.suffix.lower() == suffix
        )

    @staticmethod
    def _fatal_import(source: str, message: str) -> ImageAnnotationImportResult:
        logger.error(f"{source}: {message}")
        return ImageAnnotationImportResult(errors=[IOErrorInfoEntry(source, message)])

    @staticmethod
    def _fatal_export(source: str, message: str) -> ImageAnnotationExportResult:
        logger.error(f"{source}: {message}")
        return ImageAnnotationExportResult(errors=[IOErrorInfoEntry(source, message)])

    @staticmethod
    def _require_dimensions(meta: ImageMetaData) -> None:
        """Raise MissingImageDataError if the image size is unknown."""
        if not meta.has_details:
            raise MissingImageDataError(f"Missing width and height of image {meta.file_name}.")
