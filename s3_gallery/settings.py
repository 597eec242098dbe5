from __future__ import annotations
"""Gallery settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
INGEST_MODES = ("validate", "transcode")
FOLDER_IDENTITIES = ("name", "path")


@dataclass
class GallerySettings:
    """Tunable behaviour for listing and image ingestion."""

    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    ingest_mode: str = "validate"
    thumbnail_width: int = 300
    thumbnail_height: int = 300
    return_url: bool = False
    folder_identity: str = "name"
    page_size: int = 0
    acl: str = ""


def _positive_int(value: object, default: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _choice(value: object, choices: tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in choices:
        return value.strip().lower()
    return default


class SettingsStorage:
    """JSON-backed persistence for :class:`GallerySettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3_gallery_settings.json"
        self._path = Path(storage_path)

    def load(self) -> GallerySettings:
        if not self._path.exists():
            return GallerySettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return GallerySettings()
        if not isinstance(data, dict):
            return GallerySettings()
        defaults = GallerySettings()
        page_size = data.get("page_size", defaults.page_size)
        acl = data.get("acl", defaults.acl)
        return GallerySettings(
            max_upload_bytes=_positive_int(data.get("max_upload_bytes"), defaults.max_upload_bytes),
            ingest_mode=_choice(data.get("ingest_mode"), INGEST_MODES, defaults.ingest_mode),
            thumbnail_width=_positive_int(data.get("thumbnail_width"), defaults.thumbnail_width),
            thumbnail_height=_positive_int(data.get("thumbnail_height"), defaults.thumbnail_height),
            return_url=data.get("return_url") is True,
            folder_identity=_choice(data.get("folder_identity"), FOLDER_IDENTITIES, defaults.folder_identity),
            # 0 lets the backend pick its own page size
            page_size=_positive_int(page_size, 0) if page_size else 0,
            acl=acl if isinstance(acl, str) else defaults.acl,
        )

    def save(self, settings: GallerySettings) -> None:
        payload = asdict(settings)
        payload["max_upload_bytes"] = max(int(settings.max_upload_bytes), 1)
        payload["thumbnail_width"] = max(int(settings.thumbnail_width), 1)
        payload["thumbnail_height"] = max(int(settings.thumbnail_height), 1)
        payload["page_size"] = max(int(settings.page_size), 0)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
