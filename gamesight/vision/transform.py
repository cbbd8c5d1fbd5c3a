"""Screen to minimap coordinate transform."""

from typing import Optional, Tuple

from gamesight.data.models import DetectionConfig, Point, Rect
from gamesight.utils.logger import get_logger


class CoordinateTransform:
    """
    Approximates where an on-screen box sits on the minimap.

    The horizontal offset of the box center from mid-screen and the
    vertical offset of its bottom edge from the screen bottom are pushed
    through a fixed 2x2 matrix, giving a delta from the player's minimap
    position. The matrix was fitted by hand and is only roughly right.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        config = config or DetectionConfig()
        self.a = config.transform_a
        self.b = config.transform_b
        self.bias = config.transform_bias
        self.log = get_logger("mob")

    def delta(self, bbox: Rect, frame_size: Tuple[int, int]) -> Tuple[Point, bool]:
        """
        Get the minimap-space delta of `bbox` from the player.

        Returns:
            (unsigned delta, whether the box is left of screen center)
        """
        width, height = frame_size

        point_x = width / 2.0 - (bbox.x + bbox.width // 2)
        is_left = point_x > 0
        point_x = abs(point_x)
        point_y = float(height - (bbox.y + bbox.height))

        # Row a is applied to (point_x, 0) and row b to (0, point_y)
        dx = point_x * self.a[0]
        dy = point_y * self.b[1] - self.bias
        return Point(int(dx), int(dy)), is_left

    def to_minimap(
        self,
        bbox: Rect,
        minimap: Rect,
        bound: Rect,
        player: Point,
        frame_size: Tuple[int, int],
    ) -> Optional[Point]:
        """
        Map an on-screen bounding box to a minimap coordinate.

        Args:
            bbox: Box in frame coordinates
            minimap: Minimap rectangle in frame coordinates
            bound: Playable area in minimap coordinates
            player: Player position in minimap coordinates (y pointing up)
            frame_size: Frame (width, height)

        Returns:
            Minimap point, or None when it falls outside `bound`
            (edges count as inside)
        """
        delta, is_left = self.delta(bbox, frame_size)
        x = player.x - delta.x if is_left else player.x + delta.x
        y = player.y + delta.y
        point = Point(x, minimap.height - y)

        if point.x < 0 or point.y < 0 or not bound.contains_point(point):
            return None

        self.log.debug(f"found mob {point} in bound {bound}")
        return point
