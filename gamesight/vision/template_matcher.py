"""Template matching module using OpenCV."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from gamesight.data.models import Point, Rect
from gamesight.utils.errors import TemplateNotFound
from gamesight.utils.logger import get_logger
from gamesight.vision.assets import AssetRegistry, get_registry


@dataclass
class Match:
    """Represents a template match result."""

    x: int
    y: int
    width: int
    height: int
    confidence: float

    @property
    def center(self) -> Tuple[int, int]:
        """Get center point of the match."""
        return (self.x + self.width // 2, self.y + self.height // 2)

    @property
    def region(self) -> Rect:
        """Get region as a Rect."""
        return Rect(self.x, self.y, self.width, self.height)


@dataclass
class MatchResult:
    """One attempt of a multi-match search: a match, or the best score seen."""

    score: float
    match: Optional[Match] = None

    @property
    def found(self) -> bool:
        return self.match is not None


class TemplateMatcher:
    """
    Template matching using normalized cross-correlation.

    Works on raw arrays (`match`, `match_multiple`) or on named
    templates from an AssetRegistry (`find`, `find_any`).
    """

    # Matching method
    METHOD = cv2.TM_CCOEFF_NORMED

    # Default threshold for considering a match valid
    DEFAULT_THRESHOLD = 0.8

    def __init__(
        self,
        assets: Optional[AssetRegistry] = None,
        default_threshold: float = DEFAULT_THRESHOLD,
    ):
        """
        Initialize template matcher.

        Args:
            assets: Registry to load named templates from (process-wide one if omitted)
            default_threshold: Default confidence threshold for named lookups
        """
        self._assets = assets
        self.default_threshold = default_threshold
        self.log = get_logger("matcher")

    @property
    def assets(self) -> AssetRegistry:
        if self._assets is None:
            self._assets = get_registry()
        return self._assets

    def score_map(
        self,
        source: np.ndarray,
        template: np.ndarray,
        mask: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """
        Compute the correlation score map of `template` over `source`.

        Returns:
            Writable float32 array of shape (H - h + 1, W - w + 1)

        Raises:
            ValueError: If the template is larger than the source
        """
        if template.shape[0] > source.shape[0] or template.shape[1] > source.shape[1]:
            raise ValueError(
                f"template {template.shape[:2]} larger than source {source.shape[:2]}"
            )
        if mask is None:
            return cv2.matchTemplate(source, template, self.METHOD)

        result = cv2.matchTemplate(source, template, self.METHOD, mask=mask)
        # Masked correlation divides by zero over flat windows
        return np.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)

    def _best(
        self,
        scores: np.ndarray,
        template_size: Tuple[int, int],
        offset: Tuple[int, int],
        threshold: float,
    ) -> Tuple[MatchResult, Point]:
        _, max_val, _, max_loc = cv2.minMaxLoc(scores)
        if max_val < threshold:
            return MatchResult(score=max_val), Point(*max_loc)

        width, height = template_size
        match = Match(
            x=max_loc[0] + offset[0],
            y=max_loc[1] + offset[1],
            width=width,
            height=height,
            confidence=max_val,
        )
        return MatchResult(score=max_val, match=match), Point(*max_loc)

    def match(
        self,
        source: np.ndarray,
        template: np.ndarray,
        threshold: float,
        offset: Tuple[int, int] = (0, 0),
        mask: Optional[np.ndarray] = None,
    ) -> Match:
        """
        Find the single best match of `template` in `source`.

        Args:
            source: Image to search in
            template: Template with the same channel count as `source`
            threshold: Minimum score to accept
            offset: Added to the match position, for searches inside a crop
            mask: Optional mask of template pixels to consider

        Returns:
            Match in `source` coordinates plus `offset`

        Raises:
            TemplateNotFound: If the best score is below `threshold`
        """
        result = self.match_multiple(source, template, threshold, 1, offset, mask)[0]
        if not result.found:
            raise TemplateNotFound(result.score, threshold)
        return result.match

    def match_multiple(
        self,
        source: np.ndarray,
        template: np.ndarray,
        threshold: float,
        max_matches: int,
        offset: Tuple[int, int] = (0, 0),
        mask: Optional[np.ndarray] = None,
    ) -> List[MatchResult]:
        """
        Find up to `max_matches` non-overlapping matches.

        Each accepted match has its footprint zeroed in the score map
        before the next search. The search stops at the first attempt
        that falls below `threshold`; that failed attempt is still the
        last entry of the returned list.

        Returns:
            MatchResult per attempt, in attempt order
        """
        scores = self.score_map(source, template, mask)
        height, width = template.shape[:2]
        template_size = (width, height)

        results: List[MatchResult] = []
        for _ in range(max(max_matches, 1)):
            result, loc = self._best(scores, template_size, offset, threshold)
            results.append(result)
            if not result.found:
                break
            scores[loc.y:loc.y + height, loc.x:loc.x + width] = 0.0
        return results

    def find(
        self,
        screen: np.ndarray,
        template_name: str,
        threshold: Optional[float] = None,
        offset: Tuple[int, int] = (0, 0),
    ) -> Optional[Match]:
        """
        Find a named template, returning None when absent.

        `screen` decides the template colorspace: single channel images
        are searched with the grayscale template, BGR images with the
        color one.
        """
        if threshold is None:
            threshold = self.default_threshold

        template = self.assets.template(template_name, color=screen.ndim == 3)
        try:
            return self.match(screen, template, threshold, offset)
        except TemplateNotFound as e:
            self.log.debug(f"{template_name}: {e}")
            return None

    def find_any(
        self,
        screen: np.ndarray,
        template_names: Sequence[str],
        threshold: Optional[float] = None,
        offset: Tuple[int, int] = (0, 0),
    ) -> Optional[Tuple[str, Match]]:
        """
        Find the first matching template from a list.

        Returns:
            Tuple of (template_name, Match) or None if none found
        """
        for name in template_names:
            match = self.find(screen, name, threshold, offset)
            if match:
                return (name, match)
        return None

    def draw_match(
        self,
        image: np.ndarray,
        match: Match,
        color: Tuple[int, int, int] = (0, 255, 0),
        thickness: int = 2,
        label: bool = True,
    ) -> np.ndarray:
        """
        Draw a rectangle around a match on an image.

        Args:
            image: Image to draw on (will be modified)
            match: Match to highlight
            color: BGR color for rectangle
            thickness: Line thickness
            label: Whether to draw confidence label

        Returns:
            Image with match highlighted
        """
        cv2.rectangle(
            image,
            (match.x, match.y),
            (match.x + match.width, match.y + match.height),
            color,
            thickness,
        )

        if label:
            cv2.putText(
                image,
                f"{match.confidence:.2f}",
                (match.x, match.y - 5),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                color,
                1,
            )

        return image
