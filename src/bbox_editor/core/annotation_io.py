"""Entry points for importing and exporting image annotations."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from .annotation_format import AnnotationFormat
from .categories import CategoryRegistry
from .config import AppConfig
from .format_registry import AnnotationFormatType, FormatRegistry
from .models import ImageAnnotationData, ObjectCategory
from .progress import IOProgress
from .results import (
    ImageAnnotationExportResult,
    ImageAnnotationImportResult,
    IOErrorInfoEntry,
)

logger = logging.getLogger(__name__)

CategoryMapping = Union[CategoryRegistry, Dict[str, ObjectCategory]]


def _elapsed_millis(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class ImageAnnotationLoader:
    """
    Loads annotations in one of the supported formats.

    The loader owns an IOProgress instance that can be sampled from other
    threads while `load` runs, and through which the operation can be
    cancelled. A cancellation request applies to the running (or next) load
    only; the loader can be reused afterwards.
    """

    def __init__(
        self,
        fmt: Union[AnnotationFormatType, str],
        max_workers: Optional[int] = None
    ) -> None:
        """
        Initialize the loader.

        Args:
            fmt: Annotation format to load
            max_workers: Maximum number of worker threads, defaults to the CPU count
        """
        self.format_type = FormatRegistry.to_format_type(fmt)
        self.handler: AnnotationFormat = FormatRegistry.get_handler(self.format_type, max_workers)
        self.progress = IOProgress()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        fmt: Optional[Union[AnnotationFormatType, str]] = None
    ) -> ImageAnnotationLoader:
        """Create a loader using the configured format and worker count."""
        return cls(fmt or config.default_import_format, config.max_io_workers or None)

    def load(
        self,
        source: Path,
        eligible_filenames: Iterable[str],
        categories: Optional[CategoryMapping] = None
    ) -> ImageAnnotationImportResult:
        """
        Load annotations.

        Args:
            source: Annotation directory (per-image formats) or file (dataset formats)
            eligible_filenames: Names of the currently loaded image files
            categories: Existing categories; a dict is extended in place

        Returns:
            Import result including elapsed time
        """
        source = Path(source)
        registry = categories if isinstance(categories, CategoryRegistry) else CategoryRegistry(categories)

        logger.info(f"Loading {self.handler.display_name} annotations from {source}")
        start = time.perf_counter()

        try:
            result = self.handler.load(source, eligible_filenames, registry, self.progress)
        except OSError as e:
            logger.error(f"Error loading annotations from {source}: {e}")
            result = ImageAnnotationImportResult(errors=[IOErrorInfoEntry(source.name, str(e))])

        result.elapsed_millis = _elapsed_millis(start)
        result.cancelled = self.progress.is_cancelled
        self.progress.clear_cancellation()

        logger.info(
            f"Import finished: {result.success_count} annotations, {len(result.errors)} errors "
            f"in {result.elapsed_millis} ms" + (" (cancelled)" if result.cancelled else "")
        )
        return result

    def cancel(self) -> None:
        """Request cancellation of a running load."""
        self.progress.cancel()


class ImageAnnotationSaver:
    """
    Saves annotations in one of the supported formats.

    Like the loader, the saver exposes its progress through `progress`.
    """

    def __init__(
        self,
        fmt: Union[AnnotationFormatType, str],
        max_workers: Optional[int] = None
    ) -> None:
        """
        Initialize the saver.

        Args:
            fmt: Annotation format to save
            max_workers: Maximum number of worker threads, defaults to the CPU count
        """
        self.format_type = FormatRegistry.to_format_type(fmt)
        self.handler: AnnotationFormat = FormatRegistry.get_handler(self.format_type, max_workers)
        self.progress = IOProgress()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        fmt: Optional[Union[AnnotationFormatType, str]] = None
    ) -> ImageAnnotationSaver:
        """Create a saver using the configured format and worker count."""
        return cls(fmt or config.default_export_format, config.max_io_workers or None)

    def save(self, annotation_data: ImageAnnotationData, destination: Path) -> ImageAnnotationExportResult:
        """
        Save annotations.

        Args:
            annotation_data: Annotations to save
            destination: Target directory (per-image formats) or file (dataset formats)

        Returns:
            Export result including elapsed time
        """
        destination = Path(destination)

        logger.info(f"Saving {self.handler.display_name} annotations to {destination}")
        start = time.perf_counter()

        try:
            result = self.handler.save(annotation_data, destination, self.progress)
        except OSError as e:
            logger.error(f"Error saving annotations to {destination}: {e}")
            result = ImageAnnotationExportResult(errors=[IOErrorInfoEntry(destination.name, str(e))])

        result.elapsed_millis = _elapsed_millis(start)
        result.cancelled = self.progress.is_cancelled
        self.progress.clear_cancellation()

        logger.info(
            f"Export finished: {result.success_count} items, {len(result.errors)} errors "
            f"in {result.elapsed_millis} ms" + (" (cancelled)" if result.cancelled else "")
        )
        return result

    def cancel(self) -> None:
        """Request cancellation of a running save."""
        self.progress.cancel()
