from __future__ import annotations
"""Helpers for composing object keys and human readable sizes."""
import posixpath

SIZE_UNIT_FACTORS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def parse_size_bytes(value: str) -> int | None:
    """Parse ``"10MB"``, ``"512 KB"`` or ``"2048"`` into a byte count."""

    text = (value or "").strip().upper()
    digits = text.rstrip("BKMG ")
    unit = text[len(digits):].strip() or "B"
    try:
        amount = int(digits)
    except ValueError:
        return None
    if amount <= 0:
        return None
    factor = SIZE_UNIT_FACTORS.get(unit)
    if not factor:
        return None
    return amount * factor


def compose_key(prefix: str, name: str) -> str:
    key_name = name.strip()
    if not key_name:
        raise ValueError("Object name cannot be empty")
    cleaned_prefix = prefix.strip().lstrip("/")
    if cleaned_prefix and not cleaned_prefix.endswith("/"):
        cleaned_prefix += "/"
    return f"{cleaned_prefix}{key_name}" if cleaned_prefix else key_name


def replace_extension(key: str, extension: str) -> str:
    """Swap the extension of the last key segment, e.g. ``a/b.png`` -> ``a/b.jpg``."""

    head, sep, leaf = key.rpartition("/")
    stem, _old = posixpath.splitext(leaf)
    return f"{head}{sep}{stem}{extension}"


def build_object_url(endpoint_url: str, bucket: str, key: str) -> str:
    """Path-style retrieval URL ``<host>/<bucket>/<key>``."""

    return f"{endpoint_url.rstrip('/')}/{bucket}/{key.lstrip('/')}"


def suggest_filename(key: str) -> str:
    cleaned = key.strip().rstrip("/")
    if not cleaned:
        return "local-file"
    name = cleaned.rsplit("/", 1)[-1]
    return name or "local-file"
