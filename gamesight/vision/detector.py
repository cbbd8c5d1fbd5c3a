"""Fact detectors.

A Detector wraps one captured BGRA frame and answers questions about it:
where the minimap and the player are, whether a buff is active, how much
health is left. Every answer is a fixed composition of the template
matcher, the neural adapters, the minimap locator and the text pipeline.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from gamesight.data.models import (
    BUFF_SPECS,
    SIMILAR_POTIONS,
    SIMILAR_POTIONS_MASK,
    ArrowKey,
    BuffKind,
    DetectionConfig,
    Point,
    Rect,
)
from gamesight.utils.errors import DetectionCountMismatch, ParseFailure, TemplateNotFound
from gamesight.utils.logger import get_logger
from gamesight.vision.assets import AssetRegistry, get_registry
from gamesight.vision.calibration import CALIBRATION, CalibrationState, Variant
from gamesight.vision.image import (
    buffs_region,
    crop,
    ensure_channels,
    image_size,
    skill_bar_region,
    to_bgr,
    to_grayscale,
    top_region,
)
from gamesight.vision.minimap import MinimapLocator
from gamesight.vision.neural import NeuralDetector
from gamesight.vision.template_matcher import TemplateMatcher
from gamesight.vision.text import TextRegionExtractor
from gamesight.vision.transform import CoordinateTransform

ESC_SETTINGS_TEMPLATES = [
    "esc_setting",
    "esc_menu",
    "esc_event",
    "esc_community",
    "esc_character",
    "esc_ok",
    "esc_cancel",
]
ELITE_BOSS_BAR_TEMPLATES = ["elite_boss_bar_1", "elite_boss_bar_2"]

PLAYER_TEMPLATES = {
    Variant.DEFAULT: "player_default_ratio",
    Variant.ALTERNATE: "player_ideal_ratio",
}
HP_SEPARATOR_TEMPLATES = {
    Variant.DEFAULT: "hp_separator_1",
    Variant.ALTERNATE: "hp_separator_2",
}

RUNE_ARROW_COUNT = 4


def parse_health(text: Optional[str]) -> int:
    """
    Parse recognized health text as an unsigned integer.

    Raises:
        ParseFailure: If the text is missing or not all ASCII digits
    """
    value = (text or "").strip()
    if not (value.isascii() and value.isdigit()):
        raise ParseFailure(text)
    return int(value)


class Detector(ABC):
    """
    Detection capabilities over a single frame.

    Subclasses decide how the frame representations (grayscale, buff
    tray crop) are produced; every capability is built on top of them.
    Capabilities returning geometry raise a DetectionError subclass when
    nothing is found, boolean capabilities return False instead.
    """

    def __init__(
        self,
        assets: Optional[AssetRegistry] = None,
        matcher: Optional[TemplateMatcher] = None,
        config: Optional[DetectionConfig] = None,
        calibration: Optional[CalibrationState] = None,
    ):
        """
        Initialize detector.

        Args:
            assets: Template and network registry (process-wide one if omitted)
            matcher: Template matcher (one over `assets` if omitted)
            config: Detection constants
            calibration: Calibration flags (process-wide ones if omitted)
        """
        self.config = config or DetectionConfig()
        self.assets = assets or get_registry(self.config)
        self.matcher = matcher or TemplateMatcher(self.assets)
        self.calibration = calibration or CALIBRATION
        self.log = get_logger("detector")

    @property
    @abstractmethod
    def frame(self) -> np.ndarray:
        """The BGRA frame."""

    @abstractmethod
    def grayscale(self) -> np.ndarray:
        """Contrast-stretched grayscale of the whole frame."""

    @abstractmethod
    def buffs_grayscale(self) -> np.ndarray:
        """Grayscale of the buff tray."""

    # Building blocks

    def _neural_detector(self, name: str, floor: float) -> NeuralDetector:
        return NeuralDetector(self.assets.network(name), floor, self.config.network_input_size)

    def text_extractor(self) -> TextRegionExtractor:
        return TextRegionExtractor(self.assets.network("text_detection"), self.config)

    def _match(
        self,
        source: np.ndarray,
        name: str,
        threshold: float,
        offset: Tuple[int, int] = (0, 0),
    ) -> Rect:
        template = self.assets.template(name, color=source.ndim == 3)
        return self.matcher.match(source, template, threshold, offset).region

    def _found(self, source: np.ndarray, name: str, threshold: float) -> bool:
        return self.matcher.find(source, name, threshold) is not None

    def _match_calibrated(
        self,
        source: np.ndarray,
        flag_name: str,
        templates: Dict[Variant, str],
        thresholds: Dict[Variant, float],
        offset: Tuple[int, int] = (0, 0),
    ) -> Rect:
        flag = getattr(self.calibration, flag_name)
        variant = flag.variant
        try:
            return self._match(source, templates[variant], thresholds[variant], offset)
        except TemplateNotFound:
            flag.flip(variant)
            raise

    # Capabilities

    def detect_mobs(self, minimap: Rect, bound: Rect, player: Point) -> List[Point]:
        """
        Detect mobs and place them on the minimap.

        Args:
            minimap: Minimap rectangle in frame coordinates
            bound: Playable area in minimap coordinates
            player: Player position in minimap coordinates (y pointing up)

        Returns:
            Minimap points of the mobs inside `bound`
        """
        detector = self._neural_detector("mob", self.config.object_confidence)
        transform = CoordinateTransform(self.config)
        size = image_size(self.frame)

        points = []
        for detection in detector.detect(self.frame):
            point = transform.to_minimap(detection.rect, minimap, bound, player, size)
            if point is not None:
                points.append(point)
        return points

    def detect_esc_settings(self) -> bool:
        """Check whether the escape menu or one of its dialogs is open."""
        gray = self.grayscale()
        return self.matcher.find_any(
            gray, ESC_SETTINGS_TEMPLATES, self.config.esc_settings_threshold
        ) is not None

    def detect_elite_boss_bar(self) -> bool:
        """Check for an elite boss health bar at the top of the screen."""
        gray = self.grayscale()
        top = crop(gray, top_region(gray, self.config.boss_bar_region))
        return self.matcher.find_any(
            top, ELITE_BOSS_BAR_TEMPLATES, self.config.elite_boss_bar_threshold
        ) is not None

    def detect_minimap(self, border_threshold: Optional[int] = None) -> Rect:
        """
        Locate the minimap content rectangle.

        Raises:
            MinimapNotFound: If the minimap is not visible
        """
        locator = MinimapLocator(
            self._neural_detector("minimap", self.config.object_confidence), self.config
        )
        return locator.locate(self.frame, border_threshold)

    def detect_minimap_portals(self, minimap: Rect) -> List[Rect]:
        """
        Find portals on the minimap.

        Every score map position at or above the threshold yields one
        padded rectangle, so a single portal usually shows up several
        times with heavy overlap.

        Returns:
            Rectangles in minimap coordinates
        """
        minimap_color = to_bgr(crop(self.frame, minimap))
        template = self.assets.template("portal", color=True)
        scores = self.matcher.score_map(minimap_color, template)

        pad = self.config.portal_padding
        height, width = template.shape[:2]
        portals = []
        for y, x in zip(*np.nonzero(scores >= self.config.portal_threshold)):
            left = max(int(x) - pad, 0)
            top = max(int(y) - pad, 0)
            dx = int(x) - left
            dy = int(y) - top
            rect = Rect(left, top, width + dx * 2 + (pad - dx), height + dy * 2 + (pad - dy))
            portals.append(rect.clamp(minimap.width, minimap.height))
        return portals

    def detect_minimap_rune(self, minimap: Rect) -> Rect:
        """
        Find the rune marker on the minimap.

        Returns:
            Rectangle in minimap coordinates

        Raises:
            TemplateNotFound: If there is no rune
        """
        return self._match(crop(self.grayscale(), minimap), "rune", self.config.rune_threshold)

    def detect_player(self, minimap: Rect) -> Rect:
        """
        Find the player marker on the minimap.

        Only the currently calibrated ratio template is tried; a miss
        switches to the other one for the next call.

        Returns:
            Rectangle in minimap coordinates

        Raises:
            TemplateNotFound: If the marker was not found
        """
        return self._match_calibrated(
            crop(self.grayscale(), minimap),
            "player_ratio",
            PLAYER_TEMPLATES,
            {
                Variant.DEFAULT: self.config.player_default_threshold,
                Variant.ALTERNATE: self.config.player_ideal_threshold,
            },
        )

    def detect_player_is_dead(self) -> bool:
        return self._found(self.grayscale(), "tomb", self.config.dead_threshold)

    def detect_player_in_cash_shop(self) -> bool:
        return self._found(self.grayscale(), "cash_shop", self.config.cash_shop_threshold)

    def detect_player_health_bar(self) -> Rect:
        """
        Find the health bar between its start and end caps.

        Raises:
            TemplateNotFound: If either cap is missing
        """
        gray = self.grayscale()
        start = self._match(gray, "hp_start", self.config.hp_bar_threshold)
        end = self._match(gray, "hp_end", self.config.hp_bar_threshold)
        left = start.x + start.width
        return Rect(left, start.y, end.x - left, start.height)

    def detect_player_current_max_health_bars(self, health_bar: Rect) -> Tuple[Rect, Rect]:
        """
        Split the health bar into its current and max value text boxes.

        The bar reads `current / max`. The separator template splits it;
        the current value is the text box closest to the separator on the
        left (starting after the shield icon when there is one), the max
        value is the union of every text box on the right.

        Raises:
            TemplateNotFound: If the separator was not found
            DetectionCountMismatch: If either side has no text
        """
        bar_gray = crop(self.grayscale(), health_bar)
        separator = self._match_calibrated(
            bar_gray,
            "hp_separator",
            HP_SEPARATOR_TEMPLATES,
            {
                Variant.DEFAULT: self.config.hp_separator_threshold,
                Variant.ALTERNATE: self.config.hp_separator_threshold,
            },
            health_bar.tl,
        )
        try:
            shield = self._match(bar_gray, "hp_shield", self.config.hp_shield_threshold, health_bar.tl)
        except TemplateNotFound:
            shield = None

        extractor = self.text_extractor()

        left = Rect(health_bar.x, health_bar.y, separator.x - health_bar.x, health_bar.height)
        left_boxes = extractor.extract(crop(self.frame, left), left.x, left.y)
        if not left_boxes:
            raise DetectionCountMismatch(1, 0)
        nearest = min(left_boxes, key=lambda box: abs(box.x + box.width - separator.x))
        left_x = shield.x + shield.width if shield else nearest.x
        current = Rect(left_x, nearest.y - 1, separator.x - left_x + 1, nearest.height + 2)

        right_x = separator.x + separator.width
        right = Rect(right_x, health_bar.y, health_bar.x + health_bar.width - right_x, health_bar.height)
        right_boxes = extractor.extract(crop(self.frame, right), right.x, right.y)
        if not right_boxes:
            raise DetectionCountMismatch(1, 0)
        maximum = right_boxes[0]
        for box in right_boxes[1:]:
            maximum = maximum | box

        self.log.debug(f"health text boxes: current {current}, max {maximum}")
        return current, maximum

    def detect_player_health(self, current_bar: Rect, max_bar: Rect) -> Tuple[int, int]:
        """
        Read current and max health.

        Returns:
            (current, max) with current clamped to max

        Raises:
            ParseFailure: If either value is not a number
        """
        recognizer = self.assets.text_recognizer()
        values = []
        for bar in (current_bar, max_bar):
            texts = recognizer.recognize(self.frame, [bar])
            values.append(parse_health(texts[0] if texts else None))
        current, maximum = values
        return min(current, maximum), maximum

    def detect_player_buff(self, kind: BuffKind) -> bool:
        """Check whether a buff is shown in the buff tray."""
        spec = BUFF_SPECS[kind]
        threshold = self.config.buff_threshold(kind)
        if spec.color:
            source = to_bgr(crop(self.frame, buffs_region(self.frame, self.config.buffs_region)))
        else:
            source = self.buffs_grayscale()

        if kind in SIMILAR_POTIONS:
            return self._detect_similar_potion(source, kind, threshold)
        return self._found(source, spec.template, threshold)

    def _detect_similar_potion(self, source: np.ndarray, kind: BuffKind, threshold: float) -> bool:
        # The two potions match each other's template, so a single match
        # is only trusted if it beats the other potion's score.
        mask = self.assets.mask(SIMILAR_POTIONS_MASK)
        template = self.assets.template(BUFF_SPECS[kind].template, color=True)
        results = self.matcher.match_multiple(source, template, threshold, 2, mask=mask)
        matches = [result.match for result in results if result.found]
        if not matches:
            return False
        if len(matches) == 2:
            return True

        other = BUFF_SPECS[SIMILAR_POTIONS[kind]]
        other_template = self.assets.template(other.template, color=True)
        try:
            other_match = self.matcher.match(source, other_template, threshold, mask=mask)
        except TemplateNotFound:
            return True
        return other_match.confidence < matches[0].confidence

    def detect_rune_arrows(self) -> List[ArrowKey]:
        """
        Read the four rune arrows, left to right.

        Raises:
            DetectionCountMismatch: If not exactly four arrows were found
        """
        detector = self._neural_detector("rune", self.config.rune_confidence)
        detections = detector.detect_ordered(self.frame, RUNE_ARROW_COUNT)
        arrows = [ArrowKey(d.class_id) for d in detections]
        self.log.info(
            "solving rune result "
            + ", ".join(f"{a.name} ({d.confidence:.3f})" for a, d in zip(arrows, detections))
        )
        return arrows

    def detect_erda_shower(self) -> Rect:
        """
        Find the Erda Shower skill icon in the skill bar.

        Raises:
            TemplateNotFound: If the skill is not on the bar or on cooldown
        """
        gray = self.grayscale()
        region = skill_bar_region(gray, self.config.skill_bar_region)
        return self._match(
            crop(gray, region), "erda_shower", self.config.erda_shower_threshold, region.tl
        )


class FrameDetector(Detector):
    """Detector computing every representation on demand."""

    def __init__(self, frame: np.ndarray, **kwargs):
        ensure_channels(frame, 4)
        super().__init__(**kwargs)
        self._frame = frame

    @property
    def frame(self) -> np.ndarray:
        return self._frame

    def grayscale(self) -> np.ndarray:
        return to_grayscale(self._frame, add_contrast=True)

    def buffs_grayscale(self) -> np.ndarray:
        gray = self.grayscale()
        return crop(gray, buffs_region(gray, self.config.buffs_region))


class CachedDetector(Detector):
    """
    Detector computing each representation of another detector once.

    Meant to live for one tick, when several capabilities share the same
    grayscale frame. Wrap the next frame in a new instance.
    """

    def __init__(self, inner: Detector):
        super().__init__(
            assets=inner.assets,
            matcher=inner.matcher,
            config=inner.config,
            calibration=inner.calibration,
        )
        self.inner = inner
        self._lock = threading.RLock()
        self._cache: Dict[str, Any] = {}

    def _memoize(self, key: str, factory: Callable[[], Any]) -> Any:
        with self._lock:
            if key not in self._cache:
                self._cache[key] = factory()
            return self._cache[key]

    @property
    def frame(self) -> np.ndarray:
        return self.inner.frame

    def grayscale(self) -> np.ndarray:
        return self._memoize("grayscale", self.inner.grayscale)

    def buffs_grayscale(self) -> np.ndarray:
        def build():
            gray = self.grayscale()
            return crop(gray, buffs_region(gray, self.config.buffs_region))

        return self._memoize("buffs_grayscale", build)
