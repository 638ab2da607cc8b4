"""Background worker threads for Bounding Box Editor."""

from .annotation_worker import AnnotationExportWorker, AnnotationImportWorker

__all__ = [
    "AnnotationImportWorker",
    "AnnotationExportWorker",
]
