"""
Image quality gate for captured delivery-note pages.

Decides whether a camera frame or imported file is legible enough to keep
as a document page and produces a bounded-size JPEG for storage.

Pipeline (admit):
    decode + EXIF orientation -> resolution floor -> downscale to the
    storage bound -> JPEG re-encode -> Laplacian sharpness score -> blur
    threshold -> accept

The sharpness score is the population variance of the 4-neighbour
Laplacian response over interior luma pixels, divided by 100. It is
computed on a centred crop of at most ``score_max_edge`` pixels per side
for speed. Cropping keeps the native edge response that resampling would
average away; the stored image is never affected by that copy.
This is a coarse heuristic: a human can always retake a rejected page.
"""

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class RejectReason(Enum):
    """Why a captured image was declined."""
    TOO_SMALL = "too_small"
    BLURRY = "blurry"
    UNDECODABLE = "undecodable"


@dataclass
class GateSettings:
    """
    Quality thresholds.

    Attributes:
        min_long_edge: Resolution floor in pixels (longer edge)
        max_long_edge: Longer edge bound of the stored image
        jpeg_quality: Quality factor (0-1) for admitted pages
        rotate_quality: Quality factor (0-1) after rotation
        min_sharpness: Score below which a page counts as blurry
        score_max_edge: Side bound of the centred scoring crop (None = full size)
    """
    min_long_edge: int = 1500
    max_long_edge: int = 2500
    jpeg_quality: float = 0.85
    rotate_quality: float = 0.90
    min_sharpness: float = 60.0
    score_max_edge: Optional[int] = 800


@dataclass
class AdmittedImage:
    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"
    sharpness: Optional[float] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class Rejected:
    reason: RejectReason
    width: Optional[int] = None
    height: Optional[int] = None
    sharpness: Optional[float] = None
    detail: str = ""


class ImageQualityGate:
    """Admits, normalizes and rotates page images."""

    def __init__(self, settings: Optional[GateSettings] = None):
        self.settings = settings or GateSettings()

    # ---------------- Public API -----------------
    def admit(self, raw: bytes) -> Union[AdmittedImage, Rejected]:
        """
        Validate and normalize a captured image.

        Args:
            raw: Encoded image bytes (JPEG, PNG, ...)

        Returns:
            AdmittedImage with the re-encoded JPEG, or Rejected with a reason
        """
        try:
            img = self._decode(raw)
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
            logger.info("Rejected undecodable image: %s", e)
            return Rejected(RejectReason.UNDECODABLE, detail=str(e))

        width, height = img.size
        if max(width, height) < self.settings.min_long_edge:
            logger.info("Rejected %dx%d image: below %dpx floor", width, height, self.settings.min_long_edge)
            return Rejected(
                RejectReason.TOO_SMALL,
                width=width,
                height=height,
                detail=f"long edge {max(width, height)} < {self.settings.min_long_edge}"
            )

        img = self._fit(img, self.settings.max_long_edge)
        data = self._encode(img, self.settings.jpeg_quality)

        score = self.sharpness_score(img)
        if score < self.settings.min_sharpness:
            logger.info("Rejected blurry image: score=%.2f threshold=%.2f", score, self.settings.min_sharpness)
            return Rejected(
                RejectReason.BLURRY,
                width=img.width,
                height=img.height,
                sharpness=score,
                detail=f"sharpness {score:.2f} < {self.settings.min_sharpness}"
            )

        logger.info("Admitted page %dx%d sharpness=%.2f bytes=%d", img.width, img.height, score, len(data))
        return AdmittedImage(data=data, width=img.width, height=img.height, sharpness=score)

    def rotate(self, image: AdmittedImage, degrees: float) -> AdmittedImage:
        """
        Rotate an admitted image clockwise around its centre.

        The canvas grows to hold the whole rotated page
        (new_w = |w cos t| + |h sin t|, likewise for height). Quality
        admission is not repeated.
        """
        img = self._to_rgb(Image.open(io.BytesIO(image.data)))
        rotated = img.rotate(
            -degrees,
            resample=Image.Resampling.BICUBIC,
            expand=True,
            fillcolor=(255, 255, 255)
        )
        data = self._encode(rotated, self.settings.rotate_quality)
        return AdmittedImage(
            data=data,
            width=rotated.width,
            height=rotated.height,
            mime_type="image/jpeg",
            sharpness=image.sharpness
        )

    def sharpness_score(self, image: Image.Image) -> float:
        """Laplacian-variance focus score of an RGB image."""
        img = self._to_rgb(image)
        if self.settings.score_max_edge:
            img = self._center_crop(img, self.settings.score_max_edge)

        rgb = np.asarray(img, dtype=np.float64)
        luma = rgb[..., 0] * LUMA_WEIGHTS[0] + rgb[..., 1] * LUMA_WEIGHTS[1] + rgb[..., 2] * LUMA_WEIGHTS[2]
        return laplacian_variance(luma) / 100.0

    # ---------------- Helpers -----------------
    def _decode(self, raw: bytes) -> Image.Image:
        img = Image.open(io.BytesIO(raw))
        img.load()
        img = ImageOps.exif_transpose(img)
        return self._to_rgb(img)

    @staticmethod
    def _to_rgb(img: Image.Image) -> Image.Image:
        # Transparent pixels land on white paper
        if img.mode == 'P':
            img = img.convert('RGBA')
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        if img.mode != 'RGB':
            return img.convert('RGB')
        return img

    @staticmethod
    def _fit(img: Image.Image, max_edge: int) -> Image.Image:
        """Downscale so the longer edge is at most max_edge. Never upscales."""
        width, height = img.size
        long_edge = max(width, height)
        if long_edge <= max_edge:
            return img
        scale = max_edge / long_edge
        size = (max(1, round(width * scale)), max(1, round(height * scale)))
        return img.resize(size, Image.Resampling.LANCZOS)

    @staticmethod
    def _center_crop(img: Image.Image, max_edge: int) -> Image.Image:
        """Central region of at most max_edge x max_edge pixels, unscaled."""
        width, height = img.size
        crop_w, crop_h = min(width, max_edge), min(height, max_edge)
        if (crop_w, crop_h) == (width, height):
            return img
        left = (width - crop_w) // 2
        top = (height - crop_h) // 2
        return img.crop((left, top, left + crop_w, top + crop_h))

    @staticmethod
    def _encode(img: Image.Image, quality: float) -> bytes:
        buf = io.BytesIO()
        img.save(buf, 'JPEG', quality=_quality_percent(quality), optimize=True)
        return buf.getvalue()


def laplacian_variance(luma: np.ndarray) -> float:
    """
    Population variance of the 4-neighbour Laplacian over interior pixels.

    Kernel [[0, 1, 0], [1, -4, 1], [0, 1, 0]]; the 1-pixel border is excluded.
    """
    if luma.ndim != 2 or luma.shape[0] < 3 or luma.shape[1] < 3:
        return 0.0
    center = luma[1:-1, 1:-1]
    vertical = luma[:-2, 1:-1] + luma[2:, 1:-1]
    horizontal = luma[1:-1, :-2] + luma[1:-1, 2:]
    response = (vertical + horizontal) - 4.0 * center
    return float(response.var())


def _quality_percent(quality: float) -> int:
    if 0 < quality <= 1:
        quality = quality * 100
    return max(1, min(95, int(round(quality))))
