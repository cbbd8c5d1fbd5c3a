"""Tests for the asset registry."""

import tempfile
from pathlib import Path
from unittest.mock import Mock, patch

import cv2
import numpy as np
import pytest

from gamesight.data.models import DetectionConfig
from gamesight.utils.logger import setup_logger, get_logger
from gamesight.vision.assets import AssetRegistry, get_registry
from gamesight.vision.detector import FrameDetector


def test_templates_are_read_only():
    """Test loaded and preloaded arrays cannot be changed by a caller."""
    log = get_logger()
    log.info("Testing read-only templates...")

    with tempfile.TemporaryDirectory() as tmpdir:
        cv2.imwrite(str(Path(tmpdir) / "marker.png"), np.full((8, 8), 50, dtype=np.uint8))
        registry = AssetRegistry(
            template_dir=tmpdir,
            preloaded={("gray", "preloaded"): np.zeros((4, 4), dtype=np.uint8)},
        )

        template = registry.template("marker")
        assert not template.flags.writeable
        with pytest.raises(ValueError):
            template[0, 0] = 99
        assert registry.template("marker")[0, 0] == 50
        assert registry.template("marker") is template

        assert not registry.mask("marker").flags.writeable
        assert not registry.template("preloaded").flags.writeable

    log.info("PASSED: Read-only templates")


def test_recognizer_uses_configured_size():
    """Test the text recognizer is built with the configured input size."""
    log = get_logger()
    log.info("Testing recognizer size...")

    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "text_recognition.onnx").write_bytes(b"")
        (Path(tmpdir) / "alphabet_36.txt").write_text("0\n1\n")

        config = DetectionConfig(model_dir=tmpdir, text_recognition_size=(200, 64))
        registry = AssetRegistry.from_config(config)

        with patch("gamesight.vision.assets.TextRecognizer.from_files") as from_files:
            from_files.return_value = Mock()
            recognizer = registry.text_recognizer()
            assert registry.text_recognizer() is recognizer

        from_files.assert_called_once()
        assert from_files.call_args[1]["input_size"] == (200, 64)

    log.info("PASSED: Recognizer size")


def test_missing_recognizer_files():
    """Test a missing recognizer model is reported as a missing file."""
    log = get_logger()
    log.info("Testing missing recognizer...")

    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(FileNotFoundError):
            AssetRegistry(model_dir=tmpdir).text_recognizer()

    log.info("PASSED: Missing recognizer")


def test_registry_per_location():
    """Test configs with different asset locations get different registries."""
    log = get_logger()
    log.info("Testing registry per location...")

    first = get_registry(DetectionConfig(template_dir="first"))
    second = get_registry(DetectionConfig(template_dir="second"))

    assert first.template_dir == Path("first")
    assert second.template_dir == Path("second")
    assert get_registry(DetectionConfig(template_dir="first")) is first

    resized = get_registry(DetectionConfig(template_dir="first", text_recognition_size=(200, 64)))
    assert resized is not first
    assert resized.text_recognition_size == (200, 64)

    log.info("PASSED: Registry per location")


def test_detector_uses_config_templates():
    """Test a detector without explicit assets loads from its config's directory."""
    log = get_logger()
    log.info("Testing detector template directory...")

    frame = np.zeros((100, 100, 4), dtype=np.uint8)
    with tempfile.TemporaryDirectory() as first_dir, tempfile.TemporaryDirectory() as second_dir:
        FrameDetector(frame, config=DetectionConfig(template_dir=first_dir))
        detector = FrameDetector(frame, config=DetectionConfig(template_dir=second_dir))

        assert detector.assets.template_dir == Path(second_dir)
        assert detector.matcher.assets is detector.assets

    log.info("PASSED: Detector template directory")


def run_all_tests():
    """Run all asset tests."""
    setup_logger(level="INFO", file=False)
    log = get_logger()

    log.info("=" * 50)
    log.info("Asset Registry Tests")
    log.info("=" * 50)

    tests = [
        ("Read-only Templates", test_templates_are_read_only),
        ("Recognizer Size", test_recognizer_uses_configured_size),
        ("Missing Recognizer", test_missing_recognizer_files),
        ("Registry per Location", test_registry_per_location),
        ("Detector Template Directory", test_detector_uses_config_templates),
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
