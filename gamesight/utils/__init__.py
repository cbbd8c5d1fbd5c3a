"""Utility modules."""

from .logger import setup_logger, get_logger
from .errors import (
    DetectionCountMismatch,
    DetectionError,
    MinimapNotFound,
    ParseFailure,
    TemplateNotFound,
)

__all__ = [
    "DetectionCountMismatch",
    "DetectionError",
    "MinimapNotFound",
    "ParseFailure",
    "TemplateNotFound",
    "get_logger",
    "setup_logger",
]
