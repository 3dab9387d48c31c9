"""Normalization of embedded PDF images into PNG or JPEG payloads."""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Hashable, Sequence

from PIL import Image

from .constants import (
    IMAGE_BATCH_SIZE,
    IMAGE_CACHE_CAPACITY,
    JPEG_AREA_THRESHOLD,
    JPEG_QUALITY_TIERS,
    MAX_IMAGE_DIMENSION,
)
from .models import Degraded, ImageAsset, Ok, Outcome

LOGGER = logging.getLogger(__name__)

__all__ = [
    "EncodingPlan",
    "ImageCache",
    "ImageNormalizer",
    "plan_encoding",
]

_RAW_MODES = {"RGB", "RGBA", "L", "LA", "CMYK"}
_PNG_MODES = {"1", "L", "LA", "P", "RGB", "RGBA"}

CacheKey = tuple[int, int, str, int, str]


class ImageCache:
    """Bounded, thread-safe store of encoded images with oldest-first eviction."""

    def __init__(self, capacity: int = IMAGE_CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, bytes] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> bytes | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: Hashable, value: bytes) -> None:
        with self._lock:
            if key in self._entries:
                return
            self._entries[key] = value
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                LOGGER.debug("Evicted cached image %s", evicted)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True, slots=True)
class EncodingPlan:
    width: int
    height: int
    format: str
    quality: int


def _quality_for_area(area: int) -> int:
    for limit, quality in JPEG_QUALITY_TIERS:
        if limit is None or area <= limit:
            return quality
    return JPEG_QUALITY_TIERS[-1][1]


def plan_encoding(
    width: int,
    height: int,
    *,
    max_dimension: int = MAX_IMAGE_DIMENSION,
    jpeg_threshold: int = JPEG_AREA_THRESHOLD,
) -> EncodingPlan:
    """Decide output size, format and quality from declared pixel dimensions."""

    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image dimensions {width}x{height}")
    largest = max(width, height)
    if largest > max_dimension:
        scale = max_dimension / largest
        width = max(1, int(round(width * scale)))
        height = max(1, int(round(height * scale)))
    area = width * height
    if area > jpeg_threshold:
        return EncodingPlan(width, height, "JPEG", _quality_for_area(area))
    # Quality is irrelevant for PNG; 0 keeps cache keys stable.
    return EncodingPlan(width, height, "PNG", 0)


def _fingerprint(data: bytes) -> str:
    return hashlib.blake2b(data, digest_size=16).hexdigest()


def _decode(asset: ImageAsset) -> Image.Image:
    source_format = asset.format.upper()
    if source_format in _RAW_MODES:
        return Image.frombytes(source_format, (asset.width, asset.height), asset.data)
    image = Image.open(io.BytesIO(asset.data))
    image.load()
    return image


def _flatten(image: Image.Image) -> Image.Image:
    if image.mode in {"RGBA", "LA", "P"}:
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode not in {"RGB", "L"}:
        return image.convert("RGB")
    return image


class ImageNormalizer:
    """Re-encode :class:`ImageAsset` payloads with a size and quality policy.

    The optional *cache* is purely an optimization: results are identical with a
    cold, warm or missing cache.
    """

    def __init__(
        self,
        cache: ImageCache | None = None,
        *,
        batch_size: int = IMAGE_BATCH_SIZE,
        max_dimension: int = MAX_IMAGE_DIMENSION,
        jpeg_threshold: int = JPEG_AREA_THRESHOLD,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.cache = cache
        self.batch_size = batch_size
        self.max_dimension = max_dimension
        self.jpeg_threshold = jpeg_threshold

    def plan(self, asset: ImageAsset) -> EncodingPlan:
        return plan_encoding(
            asset.width,
            asset.height,
            max_dimension=self.max_dimension,
            jpeg_threshold=self.jpeg_threshold,
        )

    def cache_key(self, asset: ImageAsset, plan: EncodingPlan) -> CacheKey:
        return (asset.width, asset.height, plan.format, plan.quality, _fingerprint(asset.data))

    def encode(self, asset: ImageAsset) -> ImageAsset:
        """Return a copy of *asset* carrying the encoded blob; raises on failure."""

        plan = self.plan(asset)
        key = self.cache_key(asset, plan) if self.cache is not None else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return replace(asset, processed=cached, processed_format=plan.format, error=None)

        with _decode(asset) as image:
            working = image
            if working.size != (plan.width, plan.height):
                working = working.resize((plan.width, plan.height), Image.LANCZOS)
            buffer = io.BytesIO()
            if plan.format == "JPEG":
                _flatten(working).save(buffer, format="JPEG", quality=plan.quality)
            else:
                if working.mode not in _PNG_MODES:
                    working = working.convert("RGB")
                working.save(buffer, format="PNG")
        blob = buffer.getvalue()

        if key is not None:
            self.cache.put(key, blob)
        return replace(asset, processed=blob, processed_format=plan.format, error=None)

    def normalize(self, asset: ImageAsset) -> Outcome[ImageAsset]:
        """Encode *asset*, degrading to the unprocessed asset instead of raising."""

        try:
            return Ok(self.encode(asset))
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            LOGGER.warning("Failed to normalize image %s: %s", asset.id, reason)
            return Degraded(reason, replace(asset, processed=None, processed_format=None, error=reason))

    async def normalize_all(self, assets: Sequence[ImageAsset]) -> list[Outcome[ImageAsset]]:
        """Normalize *assets* in fixed-size concurrent batches, preserving order."""

        outcomes: list[Outcome[ImageAsset]] = []
        for start in range(0, len(assets), self.batch_size):
            batch = list(assets[start : start + self.batch_size])
            try:
                encoded = await asyncio.gather(
                    *(asyncio.to_thread(self.encode, asset) for asset in batch)
                )
            except Exception as exc:
                LOGGER.warning(
                    "Image batch starting at %d failed (%s); processing individually", start, exc
                )
                for asset in batch:
                    outcomes.append(await asyncio.to_thread(self.normalize, asset))
            else:
                outcomes.extend(Ok(asset) for asset in encoded)
        return outcomes
