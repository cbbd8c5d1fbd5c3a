"""Vision modules for frame analysis."""

from .template_matcher import TemplateMatcher, Match, MatchResult
from .assets import AssetRegistry, get_registry
from .neural import Detection, NeuralDetector, OnnxNetwork
from .calibration import CALIBRATION, CalibrationFlag, Variant
from .minimap import MinimapLocator
from .text import TextRecognizer, TextRegionExtractor
from .transform import CoordinateTransform
from .detector import CachedDetector, Detector, FrameDetector

__all__ = [
    "AssetRegistry",
    "CALIBRATION",
    "CachedDetector",
    "CalibrationFlag",
    "CoordinateTransform",
    "Detection",
    "Detector",
    "FrameDetector",
    "Match",
    "MatchResult",
    "MinimapLocator",
    "NeuralDetector",
    "OnnxNetwork",
    "TemplateMatcher",
    "TextRecognizer",
    "TextRegionExtractor",
    "Variant",
    "get_registry",
]
