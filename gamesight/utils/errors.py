"""Detection error taxonomy.

Every exception here is an expected outcome the caller can recover from
(usually by trying again on the next frame). Contract violations such as
a frame with the wrong channel count raise ValueError instead and are not
part of this hierarchy.
"""

from typing import Optional


class DetectionError(Exception):
    """Base class for recoverable detection failures."""
    pass


class TemplateNotFound(DetectionError):
    """No template match cleared its threshold."""

    def __init__(self, score: float, threshold: Optional[float] = None):
        self.score = float(score)
        self.threshold = threshold
        message = f"template not found (best score {self.score:.3f}"
        if threshold is not None:
            message += f", threshold {threshold:.3f}"
        super().__init__(message + ")")


class DetectionCountMismatch(DetectionError):
    """A fixed-arity decode produced the wrong number of candidates."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"expected {expected} detections, got {actual}")


class MinimapNotFound(DetectionError):
    """The minimap locator failed one of its validation gates."""

    def __init__(self, reason: str = "minimap not found"):
        self.reason = reason
        super().__init__(reason)


class ParseFailure(DetectionError):
    """Recognized text could not be parsed as the expected value."""

    def __init__(self, text: Optional[str], expected: str = "unsigned integer"):
        self.text = text
        self.expected = expected
        super().__init__(f"cannot parse {text!r} as {expected}")
