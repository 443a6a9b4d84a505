"""Resolved filter variants and the filter pipeline they form."""

import math
from typing import Annotated, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _FilterBase(BaseModel):
    """Common base: resolved filters are immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    def output_size(self, width: int, height: int) -> Tuple[int, int]:
        """Bounds of the image this filter produces from a width x height input."""
        return width, height


class Resize(_FilterBase):
    kind: Literal["resize"] = "resize"
    width: int
    height: int

    def output_size(self, width: int, height: int) -> Tuple[int, int]:
        if self.width == 0 and self.height == 0:
            return 0, 0
        if self.width == 0:
            return max(1, math.floor(width * self.height / height + 0.5)), self.height
        if self.height == 0:
            return self.width, max(1, math.floor(height * self.width / width + 0.5))
        return self.width, self.height


class CropToSize(_FilterBase):
    kind: Literal["crop_to_size"] = "crop_to_size"
    width: int
    height: int

    def output_size(self, width: int, height: int) -> Tuple[int, int]:
        if self.width == 0 or self.height == 0:
            return 0, 0
        return min(self.width, width), min(self.height, height)


class Rotate(_FilterBase):
    kind: Literal["rotate"] = "rotate"
    angle: float

    def output_size(self, width: int, height: int) -> Tuple[int, int]:
        # Same bounding box Pillow computes for rotate(expand=True)
        angle = self.angle % 360.0
        if angle in (0.0, 180.0):
            return width, height
        if angle in (90.0, 270.0):
            return height, width
        radians = -math.radians(angle)
        cos_a = round(math.cos(radians), 15)
        sin_a = round(math.sin(radians), 15)
        cx, cy = width / 2.0, height / 2.0
        xs, ys = [], []
        for x, y in ((0, 0), (width, 0), (width, height), (0, height)):
            xs.append(cos_a * (x - cx) + sin_a * (y - cy) + cx)
            ys.append(-sin_a * (x - cx) + cos_a * (y - cy) + cy)
        return (
            math.ceil(max(xs)) - math.floor(min(xs)),
            math.ceil(max(ys)) - math.floor(min(ys)),
        )


class BrightnessAdjust(_FilterBase):
    kind: Literal["brightness"] = "brightness"
    percentage: float


class ContrastAdjust(_FilterBase):
    kind: Literal["contrast"] = "contrast"
    percentage: float


class SaturationAdjust(_FilterBase):
    kind: Literal["saturation"] = "saturation"
    percentage: float


class GaussianBlur(_FilterBase):
    kind: Literal["gaussian_blur"] = "gaussian_blur"
    sigma: float


class Pixelate(_FilterBase):
    kind: Literal["pixelate"] = "pixelate"
    size: int


class Grayscale(_FilterBase):
    kind: Literal["grayscale"] = "grayscale"


class Invert(_FilterBase):
    kind: Literal["invert"] = "invert"


ResolvedFilter = Union[
    Resize,
    CropToSize,
    Rotate,
    BrightnessAdjust,
    ContrastAdjust,
    SaturationAdjust,
    GaussianBlur,
    Pixelate,
    Grayscale,
    Invert,
]


class FilterPipeline(BaseModel):
    """Ordered, non-empty, read-only sequence of resolved filters."""

    model_config = ConfigDict(frozen=True)

    filters: Tuple[Annotated[ResolvedFilter, Field(discriminator="kind")], ...]

    @field_validator("filters")
    @classmethod
    def _check_not_empty(cls, value: Tuple[ResolvedFilter, ...]) -> Tuple[ResolvedFilter, ...]:
        if not value:
            raise ValueError("a filter pipeline needs at least one filter")
        return value

    def __len__(self) -> int:
        return len(self.filters)

    def names(self) -> Tuple[str, ...]:
        return tuple(f.kind for f in self.filters)

    def output_size(self, width: int, height: int) -> Tuple[int, int]:
        """Compose every filter's bounds transform, in pipeline order."""
        for resolved in self.filters:
            width, height = resolved.output_size(width, height)
        return width, height
