"""Data models for detection geometry, buffs and tunable constants."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, NamedTuple, Tuple


class Point(NamedTuple):
    """Integer pixel coordinate."""
    x: int
    y: int


@dataclass(frozen=True)
class Rect:
    """Integer axis-aligned rectangle (x, y, width, height)."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_points(cls, tl: Tuple[int, int], br: Tuple[int, int]) -> "Rect":
        """Build a rectangle from top-left and bottom-right corners."""
        x1, x2 = min(tl[0], br[0]), max(tl[0], br[0])
        y1, y2 = min(tl[1], br[1]), max(tl[1], br[1])
        return cls(int(x1), int(y1), int(x2 - x1), int(y2 - y1))

    @property
    def tl(self) -> Point:
        """Top-left corner."""
        return Point(self.x, self.y)

    @property
    def br(self) -> Point:
        """Bottom-right corner (exclusive)."""
        return Point(self.x + self.width, self.y + self.height)

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width // 2, self.y + self.height // 2)

    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def translate(self, dx: int, dy: int) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def contains(self, other: "Rect") -> bool:
        """Check whether `other` lies fully inside this rectangle."""
        return (self & other) == other

    def contains_point(self, point: Tuple[int, int]) -> bool:
        """Check whether a point lies inside, edges included."""
        return (
            self.x <= point[0] <= self.x + self.width
            and self.y <= point[1] <= self.y + self.height
        )

    def clamp(self, width: int, height: int) -> "Rect":
        """Clamp to an image of the given size."""
        return self & Rect(0, 0, width, height)

    def __and__(self, other: "Rect") -> "Rect":
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        x2 = min(self.x + self.width, other.x + other.width)
        y2 = min(self.y + self.height, other.y + other.height)
        if x2 <= x1 or y2 <= y1:
            return Rect(0, 0, 0, 0)
        return Rect(x1, y1, x2 - x1, y2 - y1)

    def __or__(self, other: "Rect") -> "Rect":
        if self.is_empty():
            return other
        if other.is_empty():
            return self
        x1 = min(self.x, other.x)
        y1 = min(self.y, other.y)
        x2 = max(self.x + self.width, other.x + other.width)
        y2 = max(self.y + self.height, other.y + other.height)
        return Rect(x1, y1, x2 - x1, y2 - y1)


class BuffKind(Enum):
    """Status effects that can be detected in the buff tray."""
    RUNE = "rune"
    SAYRAM_ELIXIR = "sayram_elixir"
    AURELIA_ELIXIR = "aurelia_elixir"
    EXP_COUPON_X3 = "exp_coupon_x3"
    BONUS_EXP_COUPON = "bonus_exp_coupon"
    LEGION_WEALTH = "legion_wealth"
    LEGION_LUCK = "legion_luck"
    WEALTH_ACQUISITION_POTION = "wealth_acquisition_potion"
    EXP_ACCUMULATION_POTION = "exp_accumulation_potion"
    EXTREME_RED_POTION = "extreme_red_potion"
    EXTREME_BLUE_POTION = "extreme_blue_potion"
    EXTREME_GREEN_POTION = "extreme_green_potion"
    EXTREME_GOLD_POTION = "extreme_gold_potion"


@dataclass(frozen=True)
class BuffSpec:
    """How a buff is matched: template, threshold and source colorspace."""
    template: str
    threshold: float
    color: bool = False


BUFF_SPECS: Dict[BuffKind, BuffSpec] = {
    BuffKind.RUNE: BuffSpec("rune_buff", 0.75),
    BuffKind.SAYRAM_ELIXIR: BuffSpec("sayram_elixir_buff", 0.75),
    BuffKind.AURELIA_ELIXIR: BuffSpec("aurelia_elixir_buff", 0.8),
    BuffKind.EXP_COUPON_X3: BuffSpec("exp_coupon_x3_buff", 0.75),
    BuffKind.BONUS_EXP_COUPON: BuffSpec("bonus_exp_coupon_buff", 0.75),
    BuffKind.LEGION_WEALTH: BuffSpec("legion_wealth_buff", 0.76, color=True),
    BuffKind.LEGION_LUCK: BuffSpec("legion_luck_buff", 0.75, color=True),
    BuffKind.WEALTH_ACQUISITION_POTION: BuffSpec(
        "wealth_acquisition_potion_buff", 0.75, color=True
    ),
    BuffKind.EXP_ACCUMULATION_POTION: BuffSpec(
        "exp_accumulation_potion_buff", 0.75, color=True
    ),
    BuffKind.EXTREME_RED_POTION: BuffSpec("extreme_red_potion_buff", 0.75, color=True),
    BuffKind.EXTREME_BLUE_POTION: BuffSpec("extreme_blue_potion_buff", 0.75, color=True),
    BuffKind.EXTREME_GREEN_POTION: BuffSpec("extreme_green_potion_buff", 0.75, color=True),
    BuffKind.EXTREME_GOLD_POTION: BuffSpec("extreme_gold_potion_buff", 0.75, color=True),
}

# The two potions look nearly identical and share one mask
SIMILAR_POTIONS: Dict[BuffKind, BuffKind] = {
    BuffKind.WEALTH_ACQUISITION_POTION: BuffKind.EXP_ACCUMULATION_POTION,
    BuffKind.EXP_ACCUMULATION_POTION: BuffKind.WEALTH_ACQUISITION_POTION,
}
SIMILAR_POTIONS_MASK = "wealth_exp_potion_mask"


class ArrowKey(Enum):
    """Rune arrow directions, indexed by network class id."""
    UP = 0
    DOWN = 1
    LEFT = 2
    RIGHT = 3


@dataclass
class DetectionConfig:
    """Tuned detection constants.

    None of these have a derivation; they were picked empirically
    against live captures and are kept configurable.
    """

    # Assets
    template_dir: str = "assets/templates"
    model_dir: str = "assets/models"

    # Neural detectors
    network_input_size: int = 640
    object_confidence: float = 0.5
    rune_confidence: float = 0.8

    # Template thresholds
    esc_settings_threshold: float = 0.85
    elite_boss_bar_threshold: float = 0.9
    portal_threshold: float = 0.8
    rune_threshold: float = 0.6
    player_default_threshold: float = 0.6
    player_ideal_threshold: float = 0.75
    dead_threshold: float = 0.8
    cash_shop_threshold: float = 0.7
    hp_bar_threshold: float = 0.8
    hp_separator_threshold: float = 0.7
    hp_shield_threshold: float = 0.8
    erda_shower_threshold: float = 0.96

    # Minimap locator
    minimap_expand_factor: float = 0.008
    minimap_min_area_delta: int = 1100
    minimap_border_trim: float = 0.1
    minimap_border_threshold: int = 170
    portal_padding: int = 5

    # Text regions
    text_threshold: float = 0.7
    link_threshold: float = 0.4
    text_min_area: int = 10
    text_resize_factor: float = 5.0
    text_recognition_size: Tuple[int, int] = (100, 32)

    # Screen to minimap transform
    transform_a: Tuple[float, float] = (0.065789476, 0.12062144)
    transform_b: Tuple[float, float] = (0.0, 0.07263514)
    transform_bias: float = 20.0

    # Crop fractions (denominators of the frame size)
    buffs_region: Tuple[int, int] = (3, 4)
    boss_bar_region: int = 5
    skill_bar_region: Tuple[int, int] = (2, 5)

    # Per-buff threshold overrides
    buff_thresholds: Dict[str, float] = field(default_factory=dict)

    def buff_threshold(self, kind: BuffKind) -> float:
        """Get matching threshold for a buff, honouring overrides."""
        return self.buff_thresholds.get(kind.value, BUFF_SPECS[kind].threshold)
