from __future__ import annotations
"""Validation and storage of uploaded images."""
from io import BytesIO
import logging
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from .key_utils import build_object_url, format_size, replace_extension
from .settings import DEFAULT_MAX_UPLOAD_BYTES, GallerySettings

LOGGER = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/png", "image/jpeg")
FALLBACK_MIME_TYPE = "application/octet-stream"

# (offset, signature, mime type); first match wins
_SIGNATURES: tuple[tuple[int, bytes, str], ...] = (
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"BM", "image/bmp"),
    (0, b"\x00\x00\x01\x00", "image/x-icon"),
    (0, b"II*\x00", "image/tiff"),
    (0, b"MM\x00*", "image/tiff"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"PK\x03\x04", "application/zip"),
    (0, b"\x1f\x8b\x08", "application/x-gzip"),
    (4, b"ftypavif", "image/avif"),
    (4, b"ftypheic", "image/heic"),
)


class ValidationError(ValueError):
    """Raised when an upload violates a size, type or shape constraint."""


class ObjectWriter(Protocol):
    def put(self, key: str, mime_type: str, data: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def sniff_mime_type(payload: bytes) -> str:
    """Detect the content type from the leading bytes of ``payload``."""

    for offset, signature, mime_type in _SIGNATURES:
        if payload[offset:offset + len(signature)] == signature:
            return mime_type
    if payload[:4] == b"RIFF" and payload[8:12] == b"WEBP":
        return "image/webp"
    head = payload[:512].lstrip()
    if head[:5].lower() == b"<?xml" or head[:4].lower() == b"<svg":
        return "text/xml"
    if payload and b"\x00" not in head:
        try:
            head.decode("utf-8")
        except UnicodeDecodeError:
            return FALLBACK_MIME_TYPE
        return "text/plain"
    return FALLBACK_MIME_TYPE


class ImageIngestPipeline:
    """Stores PNG and JPEG uploads verbatim after validating them."""

    def __init__(self, store: ObjectWriter, *, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES):
        if max_bytes <= 0:
            raise ValueError("max_bytes must be greater than zero")
        self._store = store
        self._max_bytes = max_bytes

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def check_limits(self, name: str, payload: bytes) -> None:
        if not name or not name.strip():
            raise ValidationError("empty name")
        if len(payload) > self._max_bytes:
            raise ValidationError(
                f"payload of {format_size(len(payload))} exceeds the "
                f"{format_size(self._max_bytes)} upload limit"
            )

    def validate(self, name: str, payload: bytes) -> str:
        """Return the sniffed MIME type or raise :class:`ValidationError`."""

        self.check_limits(name, payload)
        mime_type = sniff_mime_type(payload)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                f"unsupported content type {mime_type}; expected one of {', '.join(ALLOWED_MIME_TYPES)}"
            )
        return mime_type

    def target_key(self, name: str) -> str:
        """Key that an insert of ``name`` writes to."""

        return name

    def insert(self, name: str, payload: bytes) -> str:
        mime_type = self.validate(name, payload)
        self._store.put(name, mime_type, payload)
        LOGGER.debug("Ingested '%s' as %s", name, mime_type)
        return name

    def delete(self, name: str) -> None:
        self._store.delete(name)


class TranscodingImageIngest(ImageIngestPipeline):
    """Older ingest behaviour: shrink into a bounding box and store as JPEG.

    Kept for clients that expect ``.jpg`` thumbnails or a full retrieval URL
    back; :class:`ImageIngestPipeline` is the default.
    """

    def __init__(
        self,
        store: ObjectWriter,
        *,
        max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        box: tuple[int, int] = (300, 300),
        quality: int = 85,
        url_base: tuple[str, str] | None = None,
    ):
        super().__init__(store, max_bytes=max_bytes)
        width, height = box
        if width <= 0 or height <= 0:
            raise ValueError("bounding box dimensions must be greater than zero")
        self._box = (width, height)
        self._quality = quality
        self._url_base = url_base

    def transcode(self, payload: bytes) -> bytes:
        try:
            with Image.open(BytesIO(payload)) as image:
                image.load()
                converted = image.convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError(f"payload is not a decodable image: {exc}") from exc
        converted.thumbnail(self._box)
        buffer = BytesIO()
        converted.save(buffer, format="JPEG", quality=self._quality)
        return buffer.getvalue()

    def target_key(self, name: str) -> str:
        return replace_extension(name, ".jpg")

    def insert(self, name: str, payload: bytes) -> str:
        self.check_limits(name, payload)
        output = self.transcode(payload)
        key = self.target_key(name)
        mime_type = sniff_mime_type(output)
        self._store.put(key, mime_type, output)
        LOGGER.debug("Transcoded '%s' to '%s' (%d -> %d bytes)", name, key, len(payload), len(output))
        if self._url_base:
            endpoint_url, bucket = self._url_base
            return build_object_url(endpoint_url, bucket, key)
        return key


def create_ingest(store, settings: GallerySettings, *, endpoint_url: str = "", bucket: str = "") -> ImageIngestPipeline:
    """Pick the ingest behaviour configured in ``settings``."""

    if settings.ingest_mode == "transcode":
        return TranscodingImageIngest(
            store,
            max_bytes=settings.max_upload_bytes,
            box=(settings.thumbnail_width, settings.thumbnail_height),
            url_base=(endpoint_url, bucket) if settings.return_url else None,
        )
    return ImageIngestPipeline(store, max_bytes=settings.max_upload_bytes)
