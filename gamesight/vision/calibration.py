"""Self-correcting calibration for detectors with two known variants.

Some templates exist in two versions (for example the player marker at
the default and at the ideal client ratio) and the client scale is not
known up front. Each such detector owns a CalibrationFlag. A detection
call only tries the selected variant; when it fails, the flag flips so
the next call tries the other one. A wrong guess costs one missed tick.

Flags are read and written without a lock. A single attribute load or
store cannot be torn, so the only race is two callers reading the same
stale value and flipping twice, which costs at most one more failed
attempt and never produces invalid geometry.
"""

from enum import Enum

from gamesight.utils.logger import get_logger


class Variant(Enum):
    """Which of the two known variants a detector uses."""
    DEFAULT = "default"
    ALTERNATE = "alternate"


class CalibrationFlag:
    """Two-state variant selector, flipped on failure."""

    def __init__(self, name: str, default: Variant = Variant.DEFAULT):
        self.name = name
        self.default = default
        self._variant = default
        self.log = get_logger("calibration")

    @property
    def variant(self) -> Variant:
        return self._variant

    @property
    def is_default(self) -> bool:
        return self._variant is Variant.DEFAULT

    def flip(self, observed: Variant) -> Variant:
        """
        Switch away from `observed`, the variant that just failed.

        Two callers failing on the same variant both store the other one.
        """
        new = Variant.ALTERNATE if observed is Variant.DEFAULT else Variant.DEFAULT
        self._variant = new
        self.log.debug(f"{self.name}: {observed.value} failed, next attempt uses {new.value}")
        return new

    def reset(self) -> None:
        self._variant = self.default

    def __repr__(self) -> str:
        return f"CalibrationFlag({self.name!r}, {self._variant.value})"


class CalibrationState:
    """Process-wide calibration flags, one per ambiguous detector."""

    def __init__(self):
        # DEFAULT: default-ratio player template, ALTERNATE: ideal-ratio template
        self.player_ratio = CalibrationFlag("player_ratio")
        # DEFAULT: separator style 1, ALTERNATE: separator style 2
        self.hp_separator = CalibrationFlag("hp_separator")

    def flags(self):
        return [self.player_ratio, self.hp_separator]

    def reset(self) -> None:
        for flag in self.flags():
            flag.reset()


CALIBRATION = CalibrationState()
