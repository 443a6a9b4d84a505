"""Image processing utilities: filter kernels, pipeline executor and codec."""

import io
import math
from typing import Callable, Dict, Tuple

import numpy as np
from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from .exceptions import DecodeError, EncodeError, FilterError
from .filters import FilterPipeline, ResolvedFilter

JPEG_QUALITY = 90

Kernel = Callable[[Image.Image, ResolvedFilter], Image.Image]


def _split_alpha(img: Image.Image) -> Tuple[Image.Image, Image.Image]:
    rgba = img.convert("RGBA")
    return rgba.convert("RGB"), rgba.getchannel("A")


def _with_alpha(rgb: Image.Image, alpha: Image.Image) -> Image.Image:
    rgb = rgb.convert("RGB")
    rgb.putalpha(alpha)
    return rgb


def _map_channels(img: Image.Image, fn: Callable[[np.ndarray], np.ndarray]) -> Image.Image:
    """Apply ``fn`` to the colour channels normalized to [0, 1]; alpha is kept."""
    pixels = np.asarray(img.convert("RGBA"), dtype=np.float32) / 255.0
    pixels[..., :3] = np.clip(fn(pixels[..., :3]), 0.0, 1.0)
    return Image.fromarray((pixels * 255.0 + 0.5).astype(np.uint8))


def resize(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    width, height = f.output_size(*img.size)
    if width == 0 or height == 0:
        raise FilterError("resize would produce an empty image")
    return img.resize((width, height), Image.Resampling.LANCZOS)


def crop_to_size(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    """Left-anchored, vertically centred crop clamped to the image bounds."""
    width, height = f.output_size(*img.size)
    if width == 0 or height == 0:
        raise FilterError("crop would produce an empty image")
    top = (img.height - height) // 2
    return img.crop((0, top, width, top + height))


def rotate(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    return img.convert("RGBA").rotate(
        f.angle,
        resample=Image.Resampling.BICUBIC,
        expand=True,
        fillcolor=(0, 0, 0, 0),
    )


def brightness(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    if f.percentage == 0:
        return img.copy()
    shift = f.percentage / 100.0
    return _map_channels(img, lambda channels: channels + shift)


def contrast(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    if f.percentage == 0:
        return img.copy()
    p = 1.0 + f.percentage / 100.0

    def adjust(channels: np.ndarray) -> np.ndarray:
        if p <= 1.0:
            return 0.5 + (channels - 0.5) * p
        if p < 2.0:
            return 0.5 + (channels - 0.5) / (2.0 - p)
        return np.where(channels < 0.5, 0.0, 1.0)

    return _map_channels(img, adjust)


def saturation(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    factor = max(0.0, 1.0 + f.percentage / 100.0)
    rgb, alpha = _split_alpha(img)
    return _with_alpha(ImageEnhance.Color(rgb).enhance(factor), alpha)


def gaussian_blur(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    return img.filter(ImageFilter.GaussianBlur(f.sigma))


def pixelate(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    if f.size < 2:
        return img.copy()
    width, height = img.size
    cells = (max(1, math.ceil(width / f.size)), max(1, math.ceil(height / f.size)))
    return img.resize(cells, Image.Resampling.BOX).resize(
        (width, height), Image.Resampling.NEAREST
    )


def grayscale(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    rgb, alpha = _split_alpha(img)
    return _with_alpha(ImageOps.grayscale(rgb), alpha)


def invert(img: Image.Image, f: ResolvedFilter) -> Image.Image:
    rgb, alpha = _split_alpha(img)
    return _with_alpha(ImageOps.invert(rgb), alpha)


def normalize_mode(img: Image.Image) -> Image.Image:
    """
    Bring any decoded mode to RGB, or RGBA when it carries alpha or transparency.

    16-bit and 32-bit greyscale samples are scaled down to 8 bits first.
    """
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("I", "F") or img.mode.startswith("I;16"):
        samples = np.asarray(img, dtype=np.float64)
        if img.mode.startswith("I;16") or samples.max(initial=0) > 255:
            samples = samples / 257.0
        img = Image.fromarray(np.clip(samples + 0.5, 0, 255).astype(np.uint8), "L")
    if img.mode in ("LA", "La", "PA", "RGBa") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


KERNELS: Dict[str, Kernel] = {
    "resize": resize,
    "crop_to_size": crop_to_size,
    "rotate": rotate,
    "brightness": brightness,
    "contrast": contrast,
    "saturation": saturation,
    "gaussian_blur": gaussian_blur,
    "pixelate": pixelate,
    "grayscale": grayscale,
    "invert": invert,
}


def apply_pipeline(img: Image.Image, pipeline: FilterPipeline) -> Image.Image:
    """
    Apply every filter of the pipeline, in order, to one decoded image.

    Each kernel returns a new image, so the input is never modified and the
    pipeline can be shared by concurrent callers. Kernel exceptions propagate.

    Args:
        img: Decoded PIL image
        pipeline: Resolved filter pipeline

    Returns:
        The processed PIL image; its size is ``pipeline.output_size(*img.size)``
    """
    img = normalize_mode(img)
    for resolved in pipeline.filters:
        img = KERNELS[resolved.kind](img, resolved)
    return img


def decode_image(data: bytes, max_width: int, max_height: int) -> Image.Image:
    """
    Decode image bytes, rejecting anything larger than max_width x max_height.

    The size check runs on the header, before pixel data is loaded. The
    result is always RGB or RGBA.
    """
    try:
        img = Image.open(io.BytesIO(data))
        if img.width > max_width or img.height > max_height:
            raise DecodeError(f"image too large (max {max_width}x{max_height})")
        img.load()
        img = normalize_mode(img)
    except DecodeError:
        raise
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"failed to decode image: {e}") from e
    return img


def encode_image(img: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    """Serialize to JPEG; alpha is dropped."""
    try:
        if img.mode != "RGB":
            img = img.convert("RGB")
        output = io.BytesIO()
        img.save(output, format="JPEG", quality=quality)
    except (OSError, ValueError, SystemError) as e:
        raise EncodeError(f"failed to encode image: {e}") from e
    return output.getvalue()


def calculate_object_key(prefix: str, name: str) -> str:
    """
    Calculate the object storage key for a stored name.

    Args:
        prefix: Logical prefix, with or without trailing slash
        name: Stored object name

    Returns:
        Object storage key
    """
    if prefix:
        return f"{prefix.rstrip('/')}/{name}"
    return name


def processed_filename(base_filename: str, index: int) -> str:
    """Name hint for the processed output of the index-th source."""
    return f"{base_filename}_{index}.jpg"
