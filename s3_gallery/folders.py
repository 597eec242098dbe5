from __future__ import annotations
"""Synthesizes a nested folder view from flat ``/``-delimited keys.

The store has no directories, so folders are inferred from key segments.
Nodes are kept in an arena and addressed by integer ids; edges are id lists.
Before the cleanup pass the graph may be a DAG (and, with name identity, may
even contain cycles), so nothing is materialized until the roots are known.

Two identity modes are supported:

``"name"``
    A folder is identified by its bare segment name. ``a/x/1.png`` and
    ``b/x/2.png`` therefore share a single ``x`` node that hangs under both
    ``a`` and ``b``. This is the historical behaviour and the default.
``"path"``
    A folder is identified by the tuple of its ancestor names, so identically
    named folders under different parents stay distinct.
"""
from dataclasses import dataclass, field
from typing import Hashable, Iterable

from .models import FolderNode
from .settings import FOLDER_IDENTITIES

DELIMITER = "/"


@dataclass
class _ArenaNode:
    name: str
    identity: Hashable
    children: list[int] = field(default_factory=list)


class _FolderArena:
    def __init__(self, identity: str):
        self._identity = identity
        self.nodes: list[_ArenaNode] = []
        # identity key -> node id; insertion ordered
        self.registry: dict[Hashable, int] = {}

    def identity_of(self, path: tuple[str, ...]) -> Hashable:
        return path[-1] if self._identity == "name" else path

    def lookup_or_create(self, path: tuple[str, ...]) -> int:
        identity = self.identity_of(path)
        node_id = self.registry.get(identity)
        if node_id is None:
            node_id = len(self.nodes)
            self.nodes.append(_ArenaNode(name=path[-1], identity=identity))
            self.registry[identity] = node_id
        return node_id

    def attach(self, parent_id: int, child_id: int) -> None:
        children = self.nodes[parent_id].children
        if child_id not in children:
            children.append(child_id)

    def remove_nested(self) -> None:
        """Drop every node that is somebody's child from the registry."""

        visited: set[int] = set()
        for start_id in list(self.registry.values()):
            stack = [start_id]
            while stack:
                node_id = stack.pop()
                if node_id in visited:
                    continue
                visited.add(node_id)
                for child_id in self.nodes[node_id].children:
                    self.registry.pop(self.nodes[child_id].identity, None)
                    stack.append(child_id)

    def materialize(self, node_id: int, ancestors: frozenset[int] = frozenset()) -> FolderNode:
        node = self.nodes[node_id]
        if node_id in ancestors:
            return FolderNode(name=node.name)
        lineage = ancestors | {node_id}
        return FolderNode(
            name=node.name,
            nested=[self.materialize(child_id, lineage) for child_id in node.children],
        )


def directory_segments(key: str) -> list[str] | None:
    """Return the folder segments of ``key`` or ``None`` for a bare object name."""

    if DELIMITER not in key:
        return None
    *folders, _leaf = key.split(DELIMITER)
    return [segment for segment in folders if segment]


class FolderTreeBuilder:
    """Builds the root set of folders for a sequence of object keys."""

    def __init__(self, identity: str = "name"):
        if identity not in FOLDER_IDENTITIES:
            raise ValueError(f"identity must be one of {', '.join(FOLDER_IDENTITIES)}")
        self._identity = identity

    @property
    def identity(self) -> str:
        return self._identity

    def build(self, keys: Iterable[str]) -> list[FolderNode]:
        arena = _FolderArena(self._identity)
        for key in keys:
            segments = directory_segments(key)
            if not segments:
                continue
            if len(segments) == 1:
                # "a/" marker or an object directly inside "a"
                arena.lookup_or_create((segments[0],))
                continue
            for index in range(len(segments) - 1, 0, -1):
                parent_id = arena.lookup_or_create(tuple(segments[:index]))
                child_id = arena.lookup_or_create(tuple(segments[: index + 1]))
                arena.attach(parent_id, child_id)

        arena.remove_nested()
        return [arena.materialize(node_id) for node_id in arena.registry.values()]

    def build_dicts(self, keys: Iterable[str]) -> list[dict[str, object]]:
        return [node.to_dict() for node in self.build(keys)]
