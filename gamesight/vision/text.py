"""Text region extraction and recognition.

Region extraction follows the CRAFT post-processing
(https://github.com/clovaai/CRAFT-pytorch, craft_utils.getDetBoxes_core):
the network produces a per-pixel text score and a link score at half the
input resolution. Connected components of the combined binary map are
words; each is grown back to its character extent with a dilation sized
from the component's own area.
"""

import math
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from gamesight.data.models import DetectionConfig, Rect
from gamesight.utils.logger import get_logger
from gamesight.vision.image import (
    crop,
    ensure_channels,
    preprocess_for_text,
    to_input_blob,
    to_rgb,
)


class TextRegionExtractor:
    """Finds word bounding boxes with a CRAFT-style text detection network."""

    def __init__(self, network, config: Optional[DetectionConfig] = None):
        """
        Initialize extractor.

        Args:
            network: Object with `run(blob) -> (H/2, W/2, 2)` score maps
            config: Detection constants
        """
        self.network = network
        self.config = config or DetectionConfig()
        self.log = get_logger("text")

    def extract(self, image: np.ndarray, x_offset: int = 0, y_offset: int = 0) -> List[Rect]:
        """
        Get word boxes inside a BGRA image.

        Args:
            image: BGRA image, usually a crop of the full frame
            x_offset: Added to every box, to map a crop back to the frame
            y_offset: Added to every box, to map a crop back to the frame

        Returns:
            Boxes in component label order
        """
        ensure_channels(image, 4)
        normalized, w_ratio, h_ratio = preprocess_for_text(image, self.config.text_resize_factor)
        output = np.asarray(self.network.run(to_input_blob(normalized)), dtype=np.float32)
        return self.extract_from_scores(
            output[..., 0], output[..., 1], w_ratio, h_ratio, x_offset, y_offset
        )

    def extract_from_scores(
        self,
        text_score: np.ndarray,
        link_score: np.ndarray,
        w_ratio: float,
        h_ratio: float,
        x_offset: int = 0,
        y_offset: int = 0,
    ) -> List[Rect]:
        """
        Turn text and link score maps into word boxes.

        Args:
            text_score: Per-pixel character score
            link_score: Per-pixel affinity score between characters
            w_ratio: Source width / network input width
            h_ratio: Source height / network input height

        Returns:
            Boxes in source coordinates plus the offsets
        """
        text_score = np.asarray(text_score, dtype=np.float32)
        link_score = np.asarray(link_score, dtype=np.float32)
        height, width = text_score.shape

        # Both maps binarize at the link threshold, the text threshold only gates components
        _, text_bin = cv2.threshold(text_score, self.config.link_threshold, 1.0, cv2.THRESH_BINARY)
        _, link_bin = cv2.threshold(link_score, self.config.link_threshold, 1.0, cv2.THRESH_BINARY)
        combined = np.clip(text_bin + link_bin, 0, 1).astype(np.uint8)

        count, labels, stats, _ = cv2.connectedComponentsWithStats(combined, connectivity=4)
        link_only = (link_bin == 1) & (text_score == 0)

        boxes = []
        for label in range(1, count):
            area = int(stats[label, cv2.CC_STAT_AREA])
            if area < self.config.text_min_area:
                continue

            component = labels == label
            if float(text_score[component].max()) < self.config.text_threshold:
                continue

            x = int(stats[label, cv2.CC_STAT_LEFT])
            y = int(stats[label, cv2.CC_STAT_TOP])
            w = int(stats[label, cv2.CC_STAT_WIDTH])
            h = int(stats[label, cv2.CC_STAT_HEIGHT])
            size = int(round(math.sqrt(area * min(w, h) / (w * h)) * 2))

            sx = max(x - size - 1, 0)
            sy = max(y - size - 1, 0)
            ex = min(x + w + size + 1, width)
            ey = min(y + h + size + 1, height)

            seg_map = np.zeros((height, width), dtype=np.uint8)
            seg_map[component] = 255
            seg_map[link_only] = 0

            kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (size + 1, size + 1))
            seg_map[sy:ey, sx:ex] = cv2.dilate(seg_map[sy:ey, sx:ex], kernel)

            points = cv2.findNonZero(seg_map)
            if points is None:
                continue

            corners = cv2.boxPoints(cv2.minAreaRect(points))
            tl = corners.min(axis=0)
            br = corners.max(axis=0)
            boxes.append(Rect.from_points(
                (int(tl[0] * w_ratio * 2) + x_offset, int(tl[1] * h_ratio * 2) + y_offset),
                (int(br[0] * w_ratio * 2) + x_offset, int(br[1] * h_ratio * 2) + y_offset),
            ))

        self.log.debug(f"{len(boxes)} text regions from {count - 1} components")
        return boxes


class TextRecognizer:
    """
    CTC text recognizer over cropped word boxes.

    The underlying `cv2.dnn_TextRecognitionModel` is not safe to call
    concurrently, so recognition is serialized.
    """

    def __init__(self, model):
        self.model = model
        self._lock = threading.Lock()
        self.log = get_logger("text")

    @classmethod
    def from_files(
        cls,
        model_path: Union[str, Path],
        alphabet_path: Union[str, Path],
        input_size: Tuple[int, int] = (100, 32),
    ) -> "TextRecognizer":
        """
        Build a recognizer from an ONNX model and a one-symbol-per-line alphabet.
        """
        with open(alphabet_path, "r", encoding="utf-8") as f:
            vocabulary = [line.rstrip("\r\n") for line in f if line.rstrip("\r\n")]

        model = cv2.dnn_TextRecognitionModel(str(model_path))
        model.setDecodeType("CTC-greedy")
        model.setVocabulary(vocabulary)
        model.setInputParams(
            scale=1.0 / 127.5,
            size=input_size,
            mean=(127.5, 127.5, 127.5),
        )
        return cls(model)

    def recognize(self, frame: np.ndarray, rects: Sequence[Rect]) -> List[str]:
        """
        Read the text inside each box of a BGRA frame.

        Boxes the model fails on are left out, so the result can be
        shorter than `rects`.
        """
        ensure_channels(frame, 4)
        texts = []
        for rect in rects:
            text = self.recognize_one(frame, rect)
            if text is not None:
                texts.append(text)
        return texts

    def recognize_one(self, frame: np.ndarray, rect: Rect) -> Optional[str]:
        """Read the text inside one box, None if recognition fails."""
        try:
            word = to_rgb(np.ascontiguousarray(crop(frame, rect)))
        except ValueError as e:
            self.log.debug(f"skipping text box: {e}")
            return None

        with self._lock:
            try:
                text = self.model.recognize(word)
            except cv2.error as e:
                self.log.warning(f"text recognition failed for {rect}: {e}")
                return None

        self.log.debug(f"recognized {text!r} in {rect}")
        return text
