"""Core annotation model and import/export logic for Bounding Box Editor."""

from .models import (
    BoundingBoxData,
    BoundingFreehandShapeData,
    BoundingPolygonData,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ObjectCategory,
    ShapeType,
)
from .results import (
    ImageAnnotationExportResult,
    ImageAnnotationImportResult,
    IOErrorInfoEntry,
    IOResult,
    OperationType,
)
from .categories import CategoryRegistry
from .progress import IOProgress
from .config import AppConfig, ConfigManager
from .format_registry import AnnotationFormatType, FormatRegistry
from .annotation_io import ImageAnnotationLoader, ImageAnnotationSaver
from .image_files import IMAGE_EXTENSIONS, get_image_files, read_image_meta_data

__all__ = [
    "BoundingBoxData",
    "BoundingFreehandShapeData",
    "BoundingPolygonData",
    "ImageAnnotation",
    "ImageAnnotationData",
    "ImageMetaData",
    "ObjectCategory",
    "ShapeType",
    "ImageAnnotationExportResult",
    "ImageAnnotationImportResult",
    "IOErrorInfoEntry",
    "IOResult",
    "OperationType",
    "CategoryRegistry",
    "IOProgress",
    "AppConfig",
    "ConfigManager",
    "AnnotationFormatType",
    "FormatRegistry",
    "ImageAnnotationLoader",
    "ImageAnnotationSaver",
    "IMAGE_EXTENSIONS",
    "get_image_files",
    "read_image_meta_data",
]
