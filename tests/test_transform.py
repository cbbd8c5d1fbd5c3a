"""Tests for the screen to minimap transform."""

from gamesight.data.models import DetectionConfig, Point, Rect
from gamesight.utils.logger import setup_logger, get_logger
from gamesight.vision.transform import CoordinateTransform

FRAME_SIZE = (640, 480)
MINIMAP = Rect(10, 10, 120, 100)
PLAYER = Point(50, 70)

# Centered horizontally, bottom edge on the bottom of the screen
CENTER_BOTTOM = Rect(310, 460, 20, 20)


def test_center_bottom_maps_below_player():
    """Test a box at the bottom center only gets the bias applied."""
    log = get_logger()
    log.info("Testing center bottom box...")

    transform = CoordinateTransform(DetectionConfig())
    point = transform.to_minimap(CENTER_BOTTOM, MINIMAP, Rect(0, 0, 120, 100), PLAYER, FRAME_SIZE)

    # y = 70 - 20 = 50, flipped against the minimap height 100
    assert point == Point(50, 50), f"Wrong point: {point}"

    log.info("PASSED: Center bottom box")


def test_left_and_right_boxes():
    """Test horizontal offsets move the point to the matching side."""
    log = get_logger()
    log.info("Testing left and right boxes...")

    transform = CoordinateTransform(DetectionConfig())
    bound = Rect(0, 0, 120, 100)

    # 100 px left of center: int(100 * 0.065789476) = 6
    left = transform.to_minimap(Rect(210, 460, 20, 20), MINIMAP, bound, PLAYER, FRAME_SIZE)
    right = transform.to_minimap(Rect(410, 460, 20, 20), MINIMAP, bound, PLAYER, FRAME_SIZE)

    assert left == Point(44, 50), f"Wrong left point: {left}"
    assert right == Point(56, 50), f"Wrong right point: {right}"

    log.info("PASSED: Left and right boxes")


def test_higher_box_moves_up():
    """Test a box higher on screen lands higher on the minimap."""
    log = get_logger()
    log.info("Testing vertical offset...")

    transform = CoordinateTransform(DetectionConfig())
    # 280 px above the bottom: int(280 * 0.07263514 - 20) = 0
    point = transform.to_minimap(Rect(310, 180, 20, 20), MINIMAP, Rect(0, 0, 120, 100), PLAYER, FRAME_SIZE)
    assert point == Point(50, 30), f"Wrong point: {point}"

    log.info("PASSED: Vertical offset")


def test_unused_matrix_terms():
    """Test only a[0] and b[1] move the point."""
    log = get_logger()
    log.info("Testing matrix terms...")

    bound = Rect(0, 0, 120, 100)
    config = DetectionConfig(transform_a=(0.065789476, 5.0), transform_b=(7.0, 0.07263514))
    transform = CoordinateTransform(config)

    left = transform.to_minimap(Rect(210, 460, 20, 20), MINIMAP, bound, PLAYER, FRAME_SIZE)
    higher = transform.to_minimap(Rect(310, 180, 20, 20), MINIMAP, bound, PLAYER, FRAME_SIZE)
    assert left == Point(44, 50), f"Wrong left point: {left}"
    assert higher == Point(50, 30), f"Wrong higher point: {higher}"

    log.info("PASSED: Matrix terms")


def test_bound_edges_inclusive():
    """Test points on the bound edges are kept and points outside dropped."""
    log = get_logger()
    log.info("Testing bound edges...")

    transform = CoordinateTransform(DetectionConfig())

    def place(bound: Rect):
        return transform.to_minimap(CENTER_BOTTOM, MINIMAP, bound, PLAYER, FRAME_SIZE)

    # Point lands on (50, 50)
    assert place(Rect(50, 50, 10, 10)) == Point(50, 50), "Top-left edge is inside"
    assert place(Rect(40, 40, 10, 10)) == Point(50, 50), "Bottom-right edge is inside"

    # One pixel outside each edge, the other edges well clear
    assert place(Rect(51, 40, 20, 20)) is None, "Left of the left edge"
    assert place(Rect(40, 51, 20, 20)) is None, "Above the top edge"
    assert place(Rect(30, 40, 19, 20)) is None, "Right of the right edge"
    assert place(Rect(40, 30, 20, 19)) is None, "Below the bottom edge"

    log.info("PASSED: Bound edges")


def test_negative_points_dropped():
    """Test points past the minimap origin are dropped."""
    log = get_logger()
    log.info("Testing negative points...")

    transform = CoordinateTransform(DetectionConfig())
    # Far left of center pushes x below zero
    point = transform.to_minimap(Rect(0, 460, 20, 20), MINIMAP, Rect(-100, -100, 400, 400), Point(5, 70), FRAME_SIZE)
    assert point is None

    log.info("PASSED: Negative points")


def run_all_tests():
    """Run all transform tests."""
    setup_logger(level="INFO", file=False)
    log = get_logger()

    log.info("=" * 50)
    log.info("Coordinate Transform Tests")
    log.info("=" * 50)

    tests = [
        ("Center Bottom Box", test_center_bottom_maps_below_player),
        ("Left and Right Boxes", test_left_and_right_boxes),
        ("Vertical Offset", test_higher_box_moves_up),
        ("Matrix Terms", test_unused_matrix_terms),
        ("Bound Edges", test_bound_edges_inclusive),
        ("Negative Points", test_negative_points_dropped),
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
