"""Minimap locator.

The network only gives a rough box around the minimap. The box is grown
a little, Otsu-thresholded to find the white minimap frame, and the frame
thickness is then measured from the top edge so the returned rectangle is
the minimap content without its border.
"""

import math
from collections import Counter
from typing import Optional, Tuple

import cv2
import numpy as np

from gamesight.data.models import DetectionConfig, Rect
from gamesight.utils.errors import MinimapNotFound
from gamesight.utils.logger import get_logger
from gamesight.vision.image import crop, ensure_channels, image_size, to_grayscale
from gamesight.vision.neural import NeuralDetector


class MinimapLocator:
    """Finds the minimap content rectangle in a BGRA frame."""

    def __init__(self, detector: NeuralDetector, config: Optional[DetectionConfig] = None):
        """
        Initialize locator.

        Args:
            detector: Neural detector running the minimap network
            config: Detection constants
        """
        self.detector = detector
        self.config = config or DetectionConfig()
        self.log = get_logger("minimap")

    def expand(self, rect: Rect, frame_size: Tuple[int, int]) -> Rect:
        """
        Grow `rect` by a fraction of its longest side so the whole frame border is inside.

        Growth is symmetric around the original box as long as the left
        and top edges allow it; the result is clamped to the frame.
        """
        count = math.ceil(max(rect.width, rect.height) * self.config.minimap_expand_factor)
        x = max(rect.x - count, 0)
        y = max(rect.y - count, 0)
        expanded = Rect(
            x,
            y,
            rect.width + (rect.x - x) * 2,
            rect.height + (rect.y - y) * 2,
        )
        self.log.debug(f"expand border by {count}: {rect} -> {expanded}")
        return expanded.clamp(*frame_size)

    @staticmethod
    def vote_border_thickness(
        frame: np.ndarray,
        contour: Rect,
        threshold: int,
        trim: float = 0.1,
    ) -> Optional[int]:
        """
        Measure the border thickness along the top edge of `contour`.

        For every column (skipping `trim` of the width at each end, where
        the frame corners are rounded) count consecutive pixels from the
        top whose channels are all >= `threshold`. The most common count
        wins, ties going to the leftmost column.

        Returns:
            Border thickness, or None when no column was sampled
        """
        width, _ = image_size(frame)
        margin = int(contour.width * trim)
        start = contour.x + margin
        end = min(contour.x + contour.width - margin + 1, contour.x + contour.width, width)

        strip = frame[contour.y:contour.y + contour.height]
        if strip.ndim == 3:
            bright = np.all(strip >= threshold, axis=2)
        else:
            bright = strip >= threshold

        counts: Counter = Counter()
        for col in range(start, end):
            column = bright[:, col]
            misses = np.flatnonzero(~column)
            counts[int(misses[0]) if misses.size else int(column.size)] += 1

        if not counts:
            return None

        get_logger("minimap").debug(f"border pixel count {dict(counts)}")
        return counts.most_common(1)[0][0]

    def locate(self, frame: np.ndarray, border_threshold: Optional[int] = None) -> Rect:
        """
        Locate the minimap content.

        Args:
            frame: BGRA frame
            border_threshold: Minimum channel value of border pixels

        Returns:
            Minimap rectangle with the border removed

        Raises:
            MinimapNotFound: If any stage fails
        """
        ensure_channels(frame, 4)
        if border_threshold is None:
            border_threshold = self.config.minimap_border_threshold
        frame_size = image_size(frame)

        detection = self.detector.detect_best(frame)
        if detection is None:
            raise MinimapNotFound("no minimap candidate above the confidence floor")
        self.log.debug(f"minimap candidate {detection.rect} ({detection.confidence:.3f})")

        bbox = self.expand(detection.rect, frame_size)
        if bbox.is_empty():
            raise MinimapNotFound(f"empty minimap candidate {detection.rect}")

        region = to_grayscale(crop(frame, bbox), add_contrast=True)
        _, binary = cv2.threshold(region, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            raise MinimapNotFound("no contour inside minimap candidate")

        rects = [Rect(*cv2.boundingRect(c)) for c in contours]
        contour = max(rects, key=lambda r: r.area).translate(bbox.x, bbox.y)
        self.log.debug(f"candidate and contour areas: {bbox.area} {contour.area}")

        if not bbox.contains(contour):
            raise MinimapNotFound(f"contour {contour} outside candidate {bbox}")
        if bbox.area - contour.area < self.config.minimap_min_area_delta:
            raise MinimapNotFound(
                f"contour {contour} not tight to the border "
                f"(area delta {bbox.area - contour.area})"
            )

        thickness = self.vote_border_thickness(
            frame, contour, border_threshold, self.config.minimap_border_trim
        )
        if thickness is None:
            raise MinimapNotFound(f"no border columns sampled in {contour}")

        minimap = Rect(
            contour.x + thickness,
            contour.y + thickness,
            contour.width - thickness * 2,
            contour.height - thickness * 2,
        )
        if minimap.is_empty():
            raise MinimapNotFound(f"border of {thickness}px leaves nothing of {contour}")
        return minimap
