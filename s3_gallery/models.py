from __future__ import annotations
"""Data models representing object listings and synthesized folders."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ObjectMetadata:
    """Key and modification time of a single stored object."""

    key: str
    last_modified: Optional[datetime] = None


@dataclass
class ListingPage:
    """Represents a single page of a flat object listing."""

    entries: list[ObjectMetadata] = field(default_factory=list)
    truncated: bool = False
    next_token: Optional[str] = None


@dataclass
class StoredObject:
    """Contents and metadata of an object fetched from the store."""

    key: str
    data: bytes
    last_modified: Optional[datetime] = None
    content_type: Optional[str] = None


@dataclass
class FolderNode:
    """A folder synthesized from ``/``-delimited object keys."""

    name: str
    nested: list[FolderNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "nested": [child.to_dict() for child in self.nested],
        }
