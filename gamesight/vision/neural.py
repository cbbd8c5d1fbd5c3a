"""Bounding box network adapter.

Networks are YOLO exports with built-in NMS: every output row is
`[x1, y1, x2, y2, confidence, class...]` in network input space.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from gamesight.data.models import Rect
from gamesight.utils.errors import DetectionCountMismatch
from gamesight.utils.logger import get_logger
from gamesight.vision.image import (
    ensure_channels,
    image_size,
    preprocess_for_yolo,
    to_input_blob,
)


@dataclass
class Detection:
    """A decoded network candidate, remapped to source image coordinates."""

    rect: Rect
    confidence: float
    class_id: Optional[int] = None


class OnnxNetwork:
    """
    ONNX network run through OpenCV's DNN module.

    `cv2.dnn.Net` keeps per-call state (input blob, layer outputs), so
    inference on one network is serialized.
    """

    def __init__(self, net, name: str = "network", output_name: Optional[str] = None):
        self.net = net
        self.name = name
        self.output_name = output_name
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "OnnxNetwork":
        net = cv2.dnn.readNetFromONNX(str(path))
        return cls(net, name=Path(path).stem)

    def run(self, blob: np.ndarray) -> np.ndarray:
        """
        Run inference on a 1xCxHxW float32 tensor.

        Returns:
            First output with the batch dimension removed
        """
        with self._lock:
            self.net.setInput(blob)
            if self.output_name:
                output = self.net.forward(self.output_name)
            else:
                output = self.net.forward()
        return np.asarray(output)[0]


def remap(row: Sequence[float], size: Tuple[int, int], w_ratio: float, h_ratio: float) -> Rect:
    """
    Map a network-space box back to the source image.

    Args:
        row: Output row starting with x1, y1, x2, y2
        size: Source image (width, height)
        w_ratio: Source width / network input width
        h_ratio: Source height / network input height
    """
    width, height = size
    x1 = int(min(max(row[0] * w_ratio, 0.0), width))
    y1 = int(min(max(row[1] * h_ratio, 0.0), height))
    x2 = int(min(max(row[2] * w_ratio, 0.0), width))
    y2 = int(min(max(row[3] * h_ratio, 0.0), height))
    return Rect.from_points((x1, y1), (x2, y2))


def decode(
    rows: np.ndarray,
    size: Tuple[int, int],
    w_ratio: float,
    h_ratio: float,
    floor: float,
) -> List[Detection]:
    """
    Decode raw output rows, keeping those at or above `floor`.

    Returns:
        Detections in output row order
    """
    detections = []
    for row in np.asarray(rows, dtype=np.float32).reshape(-1, rows.shape[-1]):
        confidence = float(row[4])
        if confidence < floor:
            continue
        class_id = int(row[5]) if row.shape[0] > 5 else None
        detections.append(Detection(remap(row, size, w_ratio, h_ratio), confidence, class_id))
    return detections


class NeuralDetector:
    """Runs a bounding box network on BGRA captures."""

    def __init__(
        self,
        network,
        confidence_floor: float = 0.5,
        input_size: int = 640,
    ):
        """
        Initialize detector.

        Args:
            network: Object with `run(blob) -> rows` (usually an OnnxNetwork)
            confidence_floor: Minimum confidence to keep a candidate
            input_size: Square network input size
        """
        self.network = network
        self.confidence_floor = confidence_floor
        self.input_size = input_size
        self.log = get_logger("neural")

    def infer(self, frame: np.ndarray) -> Tuple[np.ndarray, float, float]:
        """
        Run the network without decoding.

        Returns:
            (raw output rows, width ratio, height ratio)
        """
        ensure_channels(frame, 4)
        image, w_ratio, h_ratio = preprocess_for_yolo(frame, self.input_size)
        rows = np.asarray(self.network.run(to_input_blob(image)), dtype=np.float32)
        if rows.ndim == 1:
            rows = rows.reshape(1, -1)
        return rows, w_ratio, h_ratio

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """Get all candidates at or above the confidence floor."""
        rows, w_ratio, h_ratio = self.infer(frame)
        if rows.size == 0:
            return []
        return decode(rows, image_size(frame), w_ratio, h_ratio, self.confidence_floor)

    def detect_best(self, frame: np.ndarray) -> Optional[Detection]:
        """
        Get the highest confidence candidate.

        Returns:
            The best detection, or None when it is below the floor
        """
        rows, w_ratio, h_ratio = self.infer(frame)
        if rows.size == 0:
            return None

        best = rows[int(np.argmax(rows[:, 4]))]
        self.log.debug(f"best candidate: {best.tolist()}")
        detections = decode(best[np.newaxis], image_size(frame), w_ratio, h_ratio, self.confidence_floor)
        return detections[0] if detections else None

    def detect_ordered(self, frame: np.ndarray, arity: int) -> List[Detection]:
        """
        Get exactly `arity` candidates in left-to-right order.

        Raises:
            DetectionCountMismatch: If the number of candidates differs
        """
        rows, w_ratio, h_ratio = self.infer(frame)
        detections = []
        if rows.size:
            rows = rows[np.argsort(rows[:, 0], kind="stable")]
            detections = decode(rows, image_size(frame), w_ratio, h_ratio, self.confidence_floor)

        if len(detections) != arity:
            self.log.info(
                f"expected {arity} candidates, got "
                f"{[(d.rect, round(d.confidence, 3)) for d in detections]}"
            )
            raise DetectionCountMismatch(arity, len(detections))
        return detections
