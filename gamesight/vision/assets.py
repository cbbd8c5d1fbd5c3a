"""Bundled template and model assets.

Assets are identified by logical name, loaded on first use and shared
read-only by every caller for the rest of the process.
"""

import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import cv2
import numpy as np

from gamesight.data.models import DetectionConfig
from gamesight.utils.logger import get_logger
from gamesight.vision.neural import OnnxNetwork
from gamesight.vision.text import TextRecognizer

# Logical model names -> file names under the model directory
MODEL_FILES = {
    "minimap": "minimap.onnx",
    "mob": "mob.onnx",
    "rune": "rune.onnx",
    "text_detection": "text_detection.onnx",
    "text_recognition": "text_recognition.onnx",
}
TEXT_ALPHABET_FILE = "alphabet_36.txt"


def _freeze(asset: Any) -> Any:
    """Mark image assets read-only; other assets pass through."""
    if isinstance(asset, np.ndarray):
        asset.flags.writeable = False
    return asset


class AssetRegistry:
    """
    Thread-safe initialize-once cache of templates and networks.

    The first caller of an asset constructs it while holding the
    registry lock; later callers get the finished object. Template and
    mask arrays are read-only, so no caller can change them for another.
    """

    def __init__(
        self,
        template_dir: str = "assets/templates",
        model_dir: str = "assets/models",
        preloaded: Optional[Dict[Tuple[str, str], Any]] = None,
        text_recognition_size: Tuple[int, int] = (100, 32),
    ):
        """
        Initialize registry.

        Args:
            template_dir: Directory containing template PNG images
            model_dir: Directory containing ONNX networks
            preloaded: Assets to serve instead of loading from disk, keyed
                       by (kind, name) e.g. ("network", "minimap")
            text_recognition_size: Recognizer input (width, height)
        """
        self.template_dir = Path(template_dir)
        self.model_dir = Path(model_dir)
        self.log = get_logger("assets")
        self._lock = threading.Lock()
        self.text_recognition_size = tuple(text_recognition_size)
        self._assets: Dict[Tuple[str, str], Any] = {
            key: _freeze(asset) for key, asset in (preloaded or {}).items()
        }

    @classmethod
    def from_config(cls, config: DetectionConfig) -> "AssetRegistry":
        """Build a registry for the asset directories and sizes of `config`."""
        return cls(
            config.template_dir,
            config.model_dir,
            text_recognition_size=config.text_recognition_size,
        )

    def _get_or_create(self, key: Tuple[str, str], factory: Callable[[], Any]) -> Any:
        asset = self._assets.get(key)
        if asset is not None:
            return asset
        with self._lock:
            asset = self._assets.get(key)
            if asset is None:
                asset = factory()
                self._assets[key] = asset
        return asset

    def _template_path(self, name: str) -> Path:
        if not name.endswith((".png", ".jpg", ".jpeg")):
            name = f"{name}.png"
        return self.template_dir / name

    def _read_image(self, name: str, flags: int) -> np.ndarray:
        path = self._template_path(name)
        if not path.exists():
            raise FileNotFoundError(f"Template not found: {path}")

        image = cv2.imread(str(path), flags)
        if image is None:
            raise FileNotFoundError(f"Failed to decode template: {path}")

        self.log.debug(f"Loaded template: {name} ({image.shape[1]}x{image.shape[0]})")
        return _freeze(image)

    def template(self, name: str, color: bool = False) -> np.ndarray:
        """
        Get a template image.

        Args:
            name: Logical template name (file name without extension)
            color: Load as BGR instead of grayscale

        Returns:
            Shared read-only template array

        Raises:
            FileNotFoundError: If the template is not bundled
        """
        kind = "color" if color else "gray"
        flags = cv2.IMREAD_COLOR if color else cv2.IMREAD_GRAYSCALE
        return self._get_or_create((kind, name), lambda: self._read_image(name, flags))

    def mask(self, name: str) -> np.ndarray:
        """Get a grayscale matching mask."""
        return self.template(name, color=False)

    def network(self, name: str):
        """
        Get a neural network by logical name.

        Returns:
            OnnxNetwork (or whatever was preloaded under this name)
        """
        def load():
            path = self.model_dir / MODEL_FILES.get(name, f"{name}.onnx")
            if not path.exists():
                raise FileNotFoundError(f"Model not found: {path}")
            self.log.info(f"Loading network '{name}' from {path}")
            return OnnxNetwork.from_file(path)

        return self._get_or_create(("network", name), load)

    def text_recognizer(self):
        """Get the shared text recognizer."""
        def load():
            model_path = self.model_dir / MODEL_FILES["text_recognition"]
            alphabet_path = self.model_dir / TEXT_ALPHABET_FILE
            for path in (model_path, alphabet_path):
                if not path.exists():
                    raise FileNotFoundError(f"Model not found: {path}")
            self.log.info(f"Loading text recognizer from {model_path}")
            return TextRecognizer.from_files(
                model_path, alphabet_path, input_size=self.text_recognition_size
            )

        return self._get_or_create(("recognizer", "text"), load)


_registries: Dict[Tuple[Any, ...], AssetRegistry] = {}
_registry_lock = threading.Lock()


def get_registry(config: Optional[DetectionConfig] = None) -> AssetRegistry:
    """
    Get the process-wide registry for the asset locations of `config`.

    Configs pointing at the same directories share one registry, so each
    asset is still loaded once per location.
    """
    config = config or DetectionConfig()
    key = (config.template_dir, config.model_dir, tuple(config.text_recognition_size))
    with _registry_lock:
        registry = _registries.get(key)
        if registry is None:
            registry = AssetRegistry.from_config(config)
            _registries[key] = registry
    return registry
