from __future__ import annotations

import secrets

from .aspect_ratio import AspectClassification

RANDOM_ID_BYTES = 32
VIDEO_KEY_PREFIX = "videos"
THUMBNAIL_KEY_PREFIX = "thumbnails"

_THUMBNAIL_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def new_random_id() -> bytes:
    return secrets.token_bytes(RANDOM_ID_BYTES)


def encode_random_id(random_id: bytes) -> str:
    """Return the lowercase hex form used in keys and staging file names."""
    if len(random_id) != RANDOM_ID_BYTES:
        raise ValueError(f"random id must be {RANDOM_ID_BYTES} bytes, got {len(random_id)}")
    return random_id.hex()


def build_storage_key(random_id: bytes, classification: AspectClassification | str) -> str:
    label = AspectClassification(classification).value
    return f"{VIDEO_KEY_PREFIX}/{label}/{encode_random_id(random_id)}.mp4"


def thumbnail_extension(media_type: str) -> str:
    try:
        return _THUMBNAIL_EXTENSIONS[media_type]
    except KeyError:
        raise ValueError(f"unsupported thumbnail media type: {media_type}") from None


def build_thumbnail_key(random_id: bytes, media_type: str) -> str:
    return f"{THUMBNAIL_KEY_PREFIX}/{encode_random_id(random_id)}.{thumbnail_extension(media_type)}"


__all__ = [
    "RANDOM_ID_BYTES",
    "new_random_id",
    "encode_random_id",
    "build_storage_key",
    "build_thumbnail_key",
    "thumbnail_extension",
]
