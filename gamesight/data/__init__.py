"""Data models and configuration."""

from .config import ConfigManager, ConfigError
from .history import FrameHistory
from .models import (
    BUFF_SPECS,
    ArrowKey,
    BuffKind,
    BuffSpec,
    DetectionConfig,
    Point,
    Rect,
)

__all__ = [
    "ArrowKey",
    "BUFF_SPECS",
    "BuffKind",
    "BuffSpec",
    "ConfigError",
    "ConfigManager",
    "DetectionConfig",
    "FrameHistory",
    "Point",
    "Rect",
]
