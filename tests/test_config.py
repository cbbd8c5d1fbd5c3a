"""Tests for configuration system."""

import tempfile
from pathlib import Path

import pytest
import yaml

from gamesight.data.config import ConfigManager, ConfigError
from gamesight.data.models import BuffKind, DetectionConfig
from gamesight.utils.logger import setup_logger, get_logger


def write_config(config_dir: str, data) -> None:
    with open(Path(config_dir) / "detection.yaml", "w") as f:
        yaml.dump(data, f)


def test_load_default_config():
    """Test loading config with no file (uses defaults)."""
    log = get_logger()
    log.info("Testing default config loading...")

    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(config_dir=tmpdir)
        config = manager.load()

        assert config == DetectionConfig()
        assert config.object_confidence == 0.5
        assert config.rune_confidence == 0.8
        assert config.minimap_min_area_delta == 1100
        assert config.text_recognition_size == (100, 32)

    log.info("PASSED: default config loading")


def test_load_config_from_yaml():
    """Test loading config from YAML file."""
    log = get_logger()
    log.info("Testing YAML config loading...")

    with tempfile.TemporaryDirectory() as tmpdir:
        write_config(tmpdir, {
            "assets": {"template_dir": "/test/templates"},
            "thresholds": {"rune_threshold": 0.65, "object_confidence": 0.4},
            "minimap": {"expand_factor": 0.01, "border_threshold": 180},
            "text": {"link_threshold": 0.35, "min_area": 12},
            "transform": {"bias": 18},
            "buffs": {"rune": 0.7, "LEGION_LUCK": 0.8},
        })

        config = ConfigManager(config_dir=tmpdir).load()

        assert config.template_dir == "/test/templates"
        assert config.model_dir == "assets/models"
        assert config.rune_threshold == 0.65
        assert config.object_confidence == 0.4
        assert config.minimap_expand_factor == 0.01
        assert config.minimap_border_threshold == 180
        assert config.link_threshold == 0.35
        assert config.text_threshold == 0.7
        assert config.text_min_area == 12
        assert config.transform_bias == 18.0
        assert config.buff_threshold(BuffKind.RUNE) == 0.7
        assert config.buff_threshold(BuffKind.LEGION_LUCK) == 0.8
        assert config.buff_threshold(BuffKind.LEGION_WEALTH) == 0.76

    log.info("PASSED: YAML config loading")


def test_unknown_names_ignored():
    """Test unknown thresholds and buffs are skipped."""
    log = get_logger()
    log.info("Testing unknown names...")

    with tempfile.TemporaryDirectory() as tmpdir:
        write_config(tmpdir, {
            "thresholds": {"not_a_threshold": 0.5, "template_dir": 0.1},
            "buffs": {"no_such_buff": 0.5},
        })

        config = ConfigManager(config_dir=tmpdir).load()
        assert not hasattr(config, "not_a_threshold")
        assert config.template_dir == "assets/templates"
        assert config.buff_thresholds == {}

    log.info("PASSED: Unknown names")


def test_invalid_yaml():
    """Test invalid YAML handling."""
    log = get_logger()
    log.info("Testing invalid YAML handling...")

    with tempfile.TemporaryDirectory() as tmpdir:
        with open(Path(tmpdir) / "detection.yaml", "w") as f:
            f.write("thresholds: [unclosed\n")

        with pytest.raises(ConfigError):
            ConfigManager(config_dir=tmpdir).load()

        write_config(tmpdir, ["not", "a", "mapping"])
        with pytest.raises(ConfigError):
            ConfigManager(config_dir=tmpdir).load()

        write_config(tmpdir, {"thresholds": {"rune_threshold": "high"}})
        with pytest.raises(ConfigError):
            ConfigManager(config_dir=tmpdir).load()

    log.info("PASSED: Invalid YAML handling")


def test_save_and_reload():
    """Test saving and reloading config."""
    log = get_logger()
    log.info("Testing save and reload...")

    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(config_dir=tmpdir)

        config = DetectionConfig(
            model_dir="/models",
            rune_confidence=0.85,
            portal_padding=3,
            transform_a=(0.07, 0.12),
            buff_thresholds={"sayram_elixir": 0.7},
        )
        manager.save(config)
        assert manager.config_path.exists()

        reloaded = ConfigManager(config_dir=tmpdir).load()
        assert reloaded == config

    log.info("PASSED: Save and reload")


def test_get_config_loads_once():
    """Test get_config caches the loaded config."""
    log = get_logger()
    log.info("Testing get_config...")

    with tempfile.TemporaryDirectory() as tmpdir:
        manager = ConfigManager(config_dir=tmpdir)
        config = manager.get_config()
        assert manager.get_config() is config

    log.info("PASSED: get_config")


def run_all_tests():
    """Run all config tests."""
    setup_logger(level="INFO", file=False)
    log = get_logger()

    log.info("=" * 50)
    log.info("Configuration Tests")
    log.info("=" * 50)

    tests = [
        ("Default Config", test_load_default_config),
        ("YAML Config", test_load_config_from_yaml),
        ("Unknown Names", test_unknown_names_ignored),
        ("Invalid YAML", test_invalid_yaml),
        ("Save and Reload", test_save_and_reload),
        ("Get Config", test_get_config_loads_once),
    ]

    failed = 0
    for name, test_func in tests:
        try:
            log.info(f"\n--- {name} ---")
            test_func()
        except Exception as e:
            log.error(f"FAILED: {name} - {e}")
            failed += 1

    log.info("\n" + "=" * 50)
    log.info(f"Results: {len(tests) - failed} passed, {failed} failed")
    log.info("=" * 50)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    exit(0 if success else 1)
