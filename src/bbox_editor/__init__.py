"""
Bounding Box Editor - annotation import and export for object-detection datasets.

Converts image annotations (bounding boxes, polygons and freehand shapes with
tags and nested parts) between Pascal VOC, YOLO, JSON and CSV files.
Built on PyQt6 for background processing and image metadata.
"""

__version__ = "1.0.0"
__author__ = "Bounding Box Editor Team"
