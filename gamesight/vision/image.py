"""Image preprocessing for template matching and neural network input."""

from typing import Tuple

import cv2
import numpy as np

from gamesight.data.models import Rect

# ImageNet mean/std premultiplied by 255 (CRAFT normalizeMeanVariance)
TEXT_MEAN = np.array([123.675, 116.28, 103.53], dtype=np.float32)
TEXT_STD = np.array([58.395, 57.12, 57.375], dtype=np.float32)


def ensure_channels(image: np.ndarray, *channels: int) -> None:
    """Raise ValueError unless `image` has one of the given channel counts."""
    count = 1 if image.ndim == 2 else image.shape[2]
    if count not in channels:
        raise ValueError(f"expected {channels} channel image, got shape {image.shape}")


def image_size(image: np.ndarray) -> Tuple[int, int]:
    """Get (width, height) of an image."""
    return image.shape[1], image.shape[0]


def crop(image: np.ndarray, rect: Rect) -> np.ndarray:
    """
    Get a view of `rect` inside `image`.

    The view shares storage with `image`.

    Raises:
        ValueError: If `rect` is empty or not fully inside the image
    """
    width, height = image_size(image)
    if rect.is_empty() or not Rect(0, 0, width, height).contains(rect):
        raise ValueError(f"region {rect} outside image of size {width}x{height}")
    return image[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width]


def buffs_region(image: np.ndarray, fractions: Tuple[int, int] = (3, 4)) -> Rect:
    """Top-right region holding the buff tray."""
    width, height = image_size(image)
    crop_x = width // fractions[0]
    crop_y = height // fractions[1]
    return Rect(width - crop_x, 0, crop_x, crop_y)


def top_region(image: np.ndarray, fraction: int = 5) -> Rect:
    """Top strip of the image (boss bars)."""
    width, height = image_size(image)
    return Rect(0, 0, width, height // fraction)


def skill_bar_region(image: np.ndarray, fractions: Tuple[int, int] = (2, 5)) -> Rect:
    """Bottom-right region holding the skill bar."""
    width, height = image_size(image)
    crop_x = width // fractions[0]
    crop_y = height // fractions[1]
    return Rect(width - crop_x, height - crop_y, crop_x, crop_y)


def to_bgr(image: np.ndarray) -> np.ndarray:
    """Convert a BGRA capture to BGR."""
    ensure_channels(image, 4)
    return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)


def to_grayscale(image: np.ndarray, add_contrast: bool = False) -> np.ndarray:
    """
    Convert a BGRA capture to grayscale.

    Args:
        image: BGRA image
        add_contrast: Stretch contrast by a fixed amount (1.5x - 80),
                      which the bundled templates were cut with

    Returns:
        Single channel uint8 image
    """
    ensure_channels(image, 4)
    gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if add_contrast:
        gray = cv2.addWeighted(gray, 1.5, gray, 0.0, -80.0)
    return gray


def to_rgb(image: np.ndarray) -> np.ndarray:
    """Convert a BGRA capture to RGB."""
    ensure_channels(image, 4)
    return cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)


def resize_ratios(image: np.ndarray, width: int, height: int) -> Tuple[float, float]:
    """Get (width, height) ratios of original size over resized size."""
    orig_w, orig_h = image_size(image)
    return orig_w / width, orig_h / height


def preprocess_for_yolo(image: np.ndarray, size: int = 640) -> Tuple[np.ndarray, float, float]:
    """
    Prepare a BGRA capture for a bounding box network.

    Returns:
        (RGB float32 image in [0, 1] resized to size x size,
         width ratio, height ratio) with ratios = original / resized
    """
    w_ratio, h_ratio = resize_ratios(image, size, size)
    rgb = to_rgb(image)
    rgb = cv2.resize(rgb, (size, size), interpolation=cv2.INTER_AREA)
    return rgb.astype(np.float32) / 255.0, w_ratio, h_ratio


def preprocess_for_text(image: np.ndarray, factor: float = 5.0) -> Tuple[np.ndarray, float, float]:
    """
    Prepare a BGRA crop for the text detection network.

    Follows the CRAFT reference preprocessing: upscale, round both sides
    up to a multiple of 32, then mean/variance normalize.

    Returns:
        (normalized RGB float32 image, width ratio, height ratio)
    """
    width, height = image_size(image)
    longest = max(width, height)
    ratio = (factor * longest) / longest

    resize_w = (int(ratio * width) + 31) & ~31
    resize_h = (int(ratio * height) + 31) & ~31

    rgb = to_rgb(image)
    rgb = cv2.resize(rgb, (resize_w, resize_h), interpolation=cv2.INTER_CUBIC)
    normalized = (rgb.astype(np.float32) - TEXT_MEAN) / TEXT_STD
    return normalized, width / resize_w, height / resize_h


def to_input_blob(image: np.ndarray) -> np.ndarray:
    """Convert an HxWx3 float32 image to a contiguous 1x3xHxW tensor."""
    return np.ascontiguousarray(image.transpose(2, 0, 1)[np.newaxis], dtype=np.float32)
