"""Filter resolver: raw request parameters to a validated FilterPipeline."""

import math
import re
from typing import Callable, Dict, Mapping, Tuple

from .exceptions import Constraint, ValidationError
from .filters import (
    BrightnessAdjust,
    ContrastAdjust,
    CropToSize,
    FilterPipeline,
    GaussianBlur,
    Grayscale,
    Invert,
    Pixelate,
    ResolvedFilter,
    Resize,
    Rotate,
    SaturationAdjust,
)

MAX_IMAGE_WIDTH = 4000
MAX_IMAGE_HEIGHT = 4000
MAX_PIXELATE_SIZE = 50
MIN_BLUR_RADIUS = 0.1
MAX_BLUR_RADIUS = 50.0
MAX_BRIGHTNESS = 100.0
MAX_CONTRAST = 100.0
MAX_SATURATION = 200.0
MAX_ROTATION = 360.0

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def parse_int_param(param: str, param_name: str, filter_name: str) -> int:
    """Parse a non-negative integer parameter."""
    if param == "":
        raise ValidationError(
            f"{param_name} parameter is required", filter_name, Constraint.MISSING
        )
    if not _INT_PATTERN.match(param):
        raise ValidationError(
            f"invalid {param_name}: must be an integer", filter_name, Constraint.NON_NUMERIC
        )

    value = int(param)
    if value < 0:
        raise ValidationError(
            f"{param_name} must be positive", filter_name, Constraint.OUT_OF_RANGE
        )
    return value


def parse_float_param(
    param: str, param_name: str, filter_name: str, minimum: float, maximum: float
) -> float:
    """Parse a decimal parameter that must lie in the closed range [minimum, maximum]."""
    if param == "":
        raise ValidationError(
            f"{param_name} parameter is required", filter_name, Constraint.MISSING
        )
    if not _FLOAT_PATTERN.match(param):
        raise ValidationError(
            f"invalid {param_name}: must be a number", filter_name, Constraint.NON_NUMERIC
        )

    value = float(param)
    if not math.isfinite(value) or value < minimum or value > maximum:
        raise ValidationError(
            f"{param_name} must be between {minimum:.1f} and {maximum:.1f}",
            filter_name,
            Constraint.OUT_OF_RANGE,
        )
    return value


def parse_dimensions(param: str, filter_name: str) -> Tuple[int, int]:
    """Parse ``"<width>x<height>"`` bounded by the maximum image size."""
    if param == "":
        raise ValidationError(
            "dimensions parameter is required", filter_name, Constraint.MISSING
        )

    parts = param.split("x")
    if len(parts) != 2:
        raise ValidationError(
            "dimensions must be in format 'widthxheight'",
            filter_name,
            Constraint.MALFORMED_DIMENSIONS,
        )

    width = parse_int_param(parts[0], "width", filter_name)
    height = parse_int_param(parts[1], "height", filter_name)

    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValidationError(
            f"dimensions too large (max {MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})",
            filter_name,
            Constraint.OUT_OF_RANGE,
        )
    return width, height


def _resize(param: str, name: str) -> ResolvedFilter:
    width, height = parse_dimensions(param, name)
    return Resize(width=width, height=height)


def _crop_to_size(param: str, name: str) -> ResolvedFilter:
    width, height = parse_dimensions(param, name)
    return CropToSize(width=width, height=height)


def _rotate(param: str, name: str) -> ResolvedFilter:
    angle = parse_float_param(param, "rotation angle", name, -MAX_ROTATION, MAX_ROTATION)
    return Rotate(angle=angle)


def _signed(sign: int, param_name: str, maximum: float, variant) -> Callable[[str, str], ResolvedFilter]:
    # *_increase and *_decrease share one variant; only the sign differs
    def build(param: str, name: str) -> ResolvedFilter:
        value = parse_float_param(param, param_name, name, 0.0, maximum)
        return variant(percentage=sign * value)

    return build


def _gaussian_blur(param: str, name: str) -> ResolvedFilter:
    sigma = parse_float_param(param, "blur radius", name, MIN_BLUR_RADIUS, MAX_BLUR_RADIUS)
    return GaussianBlur(sigma=sigma)


def _pixelate(param: str, name: str) -> ResolvedFilter:
    value = parse_int_param(param, "pixelate size", name)
    if value > MAX_PIXELATE_SIZE:
        raise ValidationError(
            f"pixelate size too large (max {MAX_PIXELATE_SIZE})",
            name,
            Constraint.OUT_OF_RANGE,
        )
    return Pixelate(size=value)


# Insertion order is the canonical application order
FILTER_BUILDERS: Dict[str, Callable[[str, str], ResolvedFilter]] = {
    "resize": _resize,
    "crop_to_size": _crop_to_size,
    "rotate": _rotate,
    "brightness_increase": _signed(1, "brightness", MAX_BRIGHTNESS, BrightnessAdjust),
    "brightness_decrease": _signed(-1, "brightness", MAX_BRIGHTNESS, BrightnessAdjust),
    "contrast_increase": _signed(1, "contrast", MAX_CONTRAST, ContrastAdjust),
    "contrast_decrease": _signed(-1, "contrast", MAX_CONTRAST, ContrastAdjust),
    "saturation_increase": _signed(1, "saturation", MAX_SATURATION, SaturationAdjust),
    "saturation_decrease": _signed(-1, "saturation", MAX_SATURATION, SaturationAdjust),
    "gaussian_blur": _gaussian_blur,
    "pixelate": _pixelate,
    "grayscale": lambda param, name: Grayscale(),
    "invert": lambda param, name: Invert(),
}

SUPPORTED_FILTERS: Tuple[str, ...] = tuple(FILTER_BUILDERS)

FILTER_DESCRIPTIONS: Dict[str, str] = {
    "resize": f"<width>x<height>, each 0-{MAX_IMAGE_WIDTH}; 0 keeps the aspect ratio",
    "crop_to_size": f"<width>x<height>, each up to {MAX_IMAGE_WIDTH}; left anchored",
    "rotate": f"degrees counter-clockwise, -{MAX_ROTATION:.0f} to {MAX_ROTATION:.0f}",
    "brightness_increase": f"percentage, 0 to {MAX_BRIGHTNESS:.0f}",
    "brightness_decrease": f"percentage, 0 to {MAX_BRIGHTNESS:.0f}",
    "contrast_increase": f"percentage, 0 to {MAX_CONTRAST:.0f}",
    "contrast_decrease": f"percentage, 0 to {MAX_CONTRAST:.0f}",
    "saturation_increase": f"percentage, 0 to {MAX_SATURATION:.0f}",
    "saturation_decrease": f"percentage, 0 to {MAX_SATURATION:.0f}",
    "gaussian_blur": f"sigma, {MIN_BLUR_RADIUS} to {MAX_BLUR_RADIUS:.0f}",
    "pixelate": f"cell size in pixels, 0 to {MAX_PIXELATE_SIZE}",
    "grayscale": "no parameter",
    "invert": "no parameter",
}


def create_filter(filter_name: str, param: str) -> ResolvedFilter:
    """Build the resolved filter for a single request key."""
    builder = FILTER_BUILDERS.get(filter_name)
    if builder is None:
        raise ValidationError("unsupported filter", filter_name, Constraint.UNSUPPORTED)
    return builder(param, filter_name)


def resolve(params: Mapping[str, str]) -> FilterPipeline:
    """
    Resolve request parameters into a FilterPipeline.

    Unknown keys are skipped. Recognized keys are validated and emitted in
    canonical order, one filter per key, regardless of the mapping's order.

    Raises:
        ValidationError: on the first invalid parameter, or when no
            recognized filter is present.
    """
    filters = [
        create_filter(name, params[name] or "")
        for name in SUPPORTED_FILTERS
        if name in params
    ]

    if not filters:
        raise ValidationError("no valid filters specified", constraint=Constraint.NO_FILTERS)

    return FilterPipeline(filters=tuple(filters))
