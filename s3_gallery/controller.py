from __future__ import annotations
"""Image store operations exposed to callers."""

from contextlib import contextmanager
import logging
import threading
from typing import Iterator

from .folders import FolderTreeBuilder
from .ingest import ImageIngestPipeline, create_ingest
from .listing import ListingAggregator, keys_under_prefix
from .models import FolderNode, ObjectMetadata, StoredObject
from .profiles import ConnectionProfile
from .services import S3ObjectStore
from .settings import GallerySettings

LOGGER = logging.getLogger(__name__)


class KeyLocks:
    """Hands out one lock per object key so writers of a key never overlap."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class ImageStoreController:
    """Coordinates listing, folder synthesis and ingestion for one bucket."""

    def __init__(
        self,
        store: S3ObjectStore,
        *,
        ingest: ImageIngestPipeline | None = None,
        tree_builder: FolderTreeBuilder | None = None,
        locks: KeyLocks | None = None,
    ):
        self._store = store
        self._listing = ListingAggregator(store)
        self._ingest = ingest if ingest is not None else ImageIngestPipeline(store)
        self._tree_builder = tree_builder if tree_builder is not None else FolderTreeBuilder()
        self._locks = locks if locks is not None else KeyLocks()

    @classmethod
    def from_profile(
        cls,
        profile: ConnectionProfile,
        settings: GallerySettings | None = None,
        *,
        client_factory=None,
    ) -> ImageStoreController:
        settings = settings or GallerySettings()
        store = S3ObjectStore(
            profile,
            client_factory=client_factory,
            page_size=settings.page_size,
            acl=settings.acl,
        )
        ingest = create_ingest(
            store,
            settings,
            endpoint_url=profile.endpoint_url,
            bucket=profile.bucket,
        )
        return cls(
            store,
            ingest=ingest,
            tree_builder=FolderTreeBuilder(identity=settings.folder_identity),
        )

    def list_all_images(self) -> list[str]:
        return self._listing.list_keys()

    def list_all_images_with_meta(self) -> list[ObjectMetadata]:
        return self._listing.list_all()

    def list_images_under_prefix(self, prefix: str) -> list[str]:
        return keys_under_prefix(self._listing.list_keys(), prefix)

    def list_image_folders(self) -> list[FolderNode]:
        keys = self._listing.list_keys()
        folders = self._tree_builder.build(keys)
        LOGGER.debug("Synthesized %d root folder(s) from %d key(s)", len(folders), len(keys))
        return folders

    def get_image(self, name: str) -> StoredObject:
        return self._store.get(name)

    def insert_image(self, name: str, payload: bytes, mime_type: str | None = None) -> str:
        """Validate and store ``payload``; returns the stored key (or URL).

        The declared ``mime_type`` is advisory; the sniffed type is stored.
        """

        with self._locks.hold(self._ingest.target_key(name)):
            stored = self._ingest.insert(name, payload)
        if mime_type:
            LOGGER.debug("Declared type for '%s' was %s", name, mime_type)
        return stored

    def delete_image(self, name: str) -> None:
        with self._locks.hold(name):
            self._ingest.delete(name)
