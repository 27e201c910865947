"""Invoicing for a small service business."""

__version__ = "1.0.0"
