"""Configuration management for detection constants."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from gamesight.data.models import BuffKind, DetectionConfig
from gamesight.utils.logger import get_logger

# Read from the `text` section rather than `thresholds`
TEXT_FIELDS = ("text_threshold", "link_threshold")


class ConfigError(Exception):
    """Configuration related error."""
    pass


class ConfigManager:
    """
    Manages detection configuration from a YAML file.

    Every tuned threshold lives in `DetectionConfig`; the YAML file only
    needs to list the values that differ from the defaults.
    """

    DEFAULT_CONFIG_DIR = "config"
    CONFIG_FILE = "detection.yaml"

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize config manager.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = Path(config_dir or self.DEFAULT_CONFIG_DIR)
        self.log = get_logger()
        self._config: Optional[DetectionConfig] = None

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.CONFIG_FILE

    def load(self) -> DetectionConfig:
        """
        Load detection configuration.

        Returns:
            DetectionConfig with all settings

        Raises:
            ConfigError: If config file is invalid
        """
        if not self.config_path.exists():
            self.log.warning(f"No {self.CONFIG_FILE} found at {self.config_path}, using defaults")
            self._config = DetectionConfig()
            return self._config

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.CONFIG_FILE}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"{self.CONFIG_FILE} must contain a mapping")

        self._config = self._parse_config(data)
        self.log.info(f"Loaded config from {self.config_path}")
        return self._config

    def _parse_config(self, data: Dict[str, Any]) -> DetectionConfig:
        """Parse raw YAML data into DetectionConfig object."""
        defaults = DetectionConfig()
        assets = data.get("assets", {})
        thresholds = data.get("thresholds", {})
        minimap = data.get("minimap", {})
        text = data.get("text", {})
        transform = data.get("transform", {})
        buffs = data.get("buffs", {})

        unknown = set(thresholds) - set(self._threshold_fields(defaults))
        for name in sorted(unknown):
            self.log.warning(f"Unknown threshold '{name}' in {self.CONFIG_FILE}")

        buff_thresholds: Dict[str, float] = {}
        for name, value in buffs.items():
            try:
                kind = BuffKind(str(name).lower())
            except ValueError:
                self.log.warning(f"Unknown buff '{name}' in {self.CONFIG_FILE}")
                continue
            buff_thresholds[kind.value] = self._as_float(value, f"buffs.{name}")

        config = DetectionConfig(
            # Assets
            template_dir=assets.get("template_dir", defaults.template_dir),
            model_dir=assets.get("model_dir", defaults.model_dir),
            network_input_size=int(assets.get("network_input_size", defaults.network_input_size)),
            # Minimap
            minimap_expand_factor=self._as_float(
                minimap.get("expand_factor", defaults.minimap_expand_factor), "minimap.expand_factor"
            ),
            minimap_min_area_delta=int(minimap.get("min_area_delta", defaults.minimap_min_area_delta)),
            minimap_border_trim=self._as_float(
                minimap.get("border_trim", defaults.minimap_border_trim), "minimap.border_trim"
            ),
            minimap_border_threshold=int(
                minimap.get("border_threshold", defaults.minimap_border_threshold)
            ),
            portal_padding=int(minimap.get("portal_padding", defaults.portal_padding)),
            # Text
            text_threshold=self._as_float(
                text.get("text_threshold", defaults.text_threshold), "text.text_threshold"
            ),
            link_threshold=self._as_float(
                text.get("link_threshold", defaults.link_threshold), "text.link_threshold"
            ),
            text_min_area=int(text.get("min_area", defaults.text_min_area)),
            text_resize_factor=self._as_float(
                text.get("resize_factor", defaults.text_resize_factor), "text.resize_factor"
            ),
            text_recognition_size=tuple(
                text.get("recognition_size", list(defaults.text_recognition_size))
            ),
            # Transform
            transform_a=tuple(transform.get("a", list(defaults.transform_a))),
            transform_b=tuple(transform.get("b", list(defaults.transform_b))),
            transform_bias=self._as_float(transform.get("bias", defaults.transform_bias), "transform.bias"),
            buff_thresholds=buff_thresholds,
        )

        for name, value in thresholds.items():
            if name in unknown:
                continue
            setattr(config, name, self._as_float(value, f"thresholds.{name}"))

        return config

    @staticmethod
    def _threshold_fields(config: DetectionConfig) -> List[str]:
        """Names of the template thresholds and network confidence floors."""
        return [
            name for name, value in vars(config).items()
            if name.endswith(("_threshold", "_confidence"))
            and isinstance(value, float)
            and name not in TEXT_FIELDS
        ]

    @staticmethod
    def _as_float(value: Any, name: str) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Setting '{name}' must be a number, got {value!r}")

    def get_config(self) -> DetectionConfig:
        """Get loaded config, loading if necessary."""
        if self._config is None:
            self.load()
        return self._config

    def save(self, config: DetectionConfig) -> None:
        """
        Save configuration to detection.yaml.

        Args:
            config: DetectionConfig object to save
        """
        self.config_dir.mkdir(parents=True, exist_ok=True)

        data = {
            "assets": {
                "template_dir": config.template_dir,
                "model_dir": config.model_dir,
                "network_input_size": config.network_input_size,
            },
            "thresholds": {
                name: getattr(config, name) for name in self._threshold_fields(config)
            },
            "minimap": {
                "expand_factor": config.minimap_expand_factor,
                "min_area_delta": config.minimap_min_area_delta,
                "border_trim": config.minimap_border_trim,
                "border_threshold": config.minimap_border_threshold,
                "portal_padding": config.portal_padding,
            },
            "text": {
                "text_threshold": config.text_threshold,
                "link_threshold": config.link_threshold,
                "min_area": config.text_min_area,
                "resize_factor": config.text_resize_factor,
                "recognition_size": list(config.text_recognition_size),
            },
            "transform": {
                "a": list(config.transform_a),
                "b": list(config.transform_b),
                "bias": config.transform_bias,
            },
            "buffs": dict(config.buff_thresholds),
        }

        with open(self.config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

        self.log.info(f"Saved config to {self.config_path}")
