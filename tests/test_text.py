"""Tests for text region extraction and recognition."""

from unittest.mock import Mock

import cv2
import numpy as np

from gamesight.data.models import DetectionConfig, Rect
from gamesight.utils.logger import setup_logger, get_logger
from gamesight.vision.text import TextRecognizer, TextRegionExtractor


def create_score_maps():
    """Score maps with one word, one speck and one faint blob."""
    text_score = np.zeros((60, 100), dtype=np.float32)
    link_score = np.zeros((60, 100), dtype=np.float32)

    text_score[10:20, 10:40] = 0.9   # word
    text_score[50:52, 10:13] = 0.9   # speck, area 6
    text_score[30:40, 60:90] = 0.5   # faint, max score under 0.7
    return text_score, link_score


def test_extract_from_scores():
    """Test only the real word survives and maps back with ratios and offsets."""
    log = get_logger()
    log.info("Testing text region extraction...")

    text_score, link_score = create_score_maps()
    extractor = TextRegionExtractor(Mock(), DetectionConfig())

    # Ratios of 0.5 cancel the half resolution score maps
    boxes = extractor.extract_from_scores(text_score, link_score, 0.5, 0.5, 5, 7)
    assert len(boxes) == 1, f"Expected 1 box, got {boxes}"

    box = boxes[0]
    # Component spans x 10..39, y 10..19; dilation grows it by a few pixels
    assert 5 + 3 <= box.x <= 5 + 10, f"Wrong x: {box}"
    assert 7 + 3 <= box.y <= 7 + 10, f"Wrong y: {box}"
    assert 30 <= box.width <= 42, f"Wrong width: {box}"
    assert 10 <= box.height <= 22, f"Wrong height: {box}"

    log.info(f"Extracted {box}")
    log.info("PASSED: Text region extraction")


def test_link_joins_characters():
    """Test link scores merge neighbouring characters into one word."""
    log = get_logger()
    log.info("Testing character linking...")

    text_score = np.zeros((40, 80), dtype=np.float32)
    link_score = np.zeros((40, 80), dtype=np.float32)
    text_score[10:20, 10:20] = 0.9
    text_score[10:20, 30:40] = 0.9

    extractor = TextRegionExtractor(Mock(), DetectionConfig())
    assert len(extractor.extract_from_scores(text_score, link_score, 0.5, 0.5)) == 2

    link_score[12:18, 20:30] = 0.8
    boxes = extractor.extract_from_scores(text_score, link_score, 0.5, 0.5)
    assert len(boxes) == 1, f"Linked characters should form one word, got {boxes}"
    assert boxes[0].x <= 10 and boxes[0].x + boxes[0].width >= 40

    log.info("PASSED: Character linking")


def test_extract_runs_network():
    """Test extract preprocesses the crop and splits the output channels."""
    log = get_logger()
    log.info("Testing extract with network...")

    network = Mock()
    scores = np.zeros((64, 112, 2), dtype=np.float32)
    scores[10:20, 10:40, 0] = 0.9
    network.run.return_value = scores

    image = np.zeros((20, 40, 4), dtype=np.uint8)
    boxes = TextRegionExtractor(network, DetectionConfig()).extract(image, 100, 200)

    blob = network.run.call_args[0][0]
    # 40x20 scaled by 5 and rounded up to multiples of 32
    assert blob.shape == (1, 3, 128, 224), f"Wrong input shape: {blob.shape}"
    assert len(boxes) == 1
    assert boxes[0].x >= 100 and boxes[0].y >= 200

    log.info("PASSED: Extract with network")


def test_extract_empty_scores():
    """Test empty score maps give no boxes."""
    log = get_logger()
    log.info("Testing empty scores...")

    zeros = np.zeros((30, 30), dtype=np.float32)
    extractor = TextRegionExtractor(Mock(), DetectionConfig())
    assert extractor.extract_from_scores(zeros, zeros, 1.0, 1.0) == []

    log.info("PASSED: Empty scores")


def test_recognize_skips_failures():
    """Test failed boxes are left out of the recognized texts."""
    log = get_logger()
    log.info("Testing recognition failures...")

    model = Mock()
    model.recognize.side_effect = ["123", cv2.error("recognition failed"), "456"]
    recognizer = TextRecognizer(model)

    frame = np.zeros((100, 100, 4), dtype=np.uint8)
    rects = [Rect(0, 0, 20, 10), Rect(20, 0, 20, 10), Rect(200, 0, 20, 10), Rect(40, 0, 20, 10)]

    texts = recognizer.recognize(frame, rects)
    assert texts == ["123", "456"], f"Wrong texts: {texts}"
    # The out of bounds box never reaches the model
    assert model.recognize.call_count == 3

    crop = model.recognize.call_args_list[0][0][0]
    assert crop.shape == (10, 20, 3), f"Model should get an RGB crop, got {crop.shape}"

    log.info("PASSED: Recognition failures")


def test_recognize_one():
    """Test single box recognition."""
    log = get_logger()
    log.info("Testing single recognition...")

    model = Mock()
    model.recognize.return_value = "42"
    recognizer = TextRecognizer(model)

    frame = np.zeros((50, 50, 4), dtype=np.uint8)
    assert recognizer.recognize_one(frame, Rect(5, 5, 20, 10)) == "42"
    assert recognizer.recognize_one(frame, Rect(45, 45, 20, 10)) is None

    log.info("PASSED: Single recognition")


def run_all_tests():
    """Run all text tests."""
    setup_logger(level="INFO", file=False)
    log = get_logger()

    log.info("=" * 50)
    log.info("Text Tests")
    log.info("=" * 50)

    tests = [
        ("Text Region Extraction", test_extract_from_scores),
        ("Character Linking", test_link_joins_characters),
        ("Extract With Network", test_extract_runs_network),
        ("Empty Scores", test_extract_empty_scores),
        ("Recognition Failures", test_recognize_skips_failures),
        ("Single Recognition", test_recognize_one),
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
