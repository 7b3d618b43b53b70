"""
Explicit tree model over ``tree_entries``.

The SQL side groups entry rows by ``tree_oid``; here a directory snapshot is
a :class:`TreeNode` owning an ordered name -> ref mapping, and traversal is
an explicit stack instead of a recursive CTE. Results match
:mod:`git_object_db.queries`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Union

from sqlalchemy import Connection, select

from git_object_db.objects import BlobLocation, FileEntry, ObjectKind, parse_oid
from git_object_db.schema import commits, tree_entries


@dataclass(frozen=True)
class BlobRef:
    oid: bytes


@dataclass(frozen=True)
class TreeRef:
    oid: bytes


@dataclass(frozen=True)
class GitlinkRef:
    """Submodule entry; points at a commit of another repository."""

    oid: bytes


@dataclass(frozen=True)
class OtherRef:
    kind: int
    oid: bytes


EntryRef = Union[BlobRef, TreeRef, GitlinkRef, OtherRef]


def make_ref(kind: int, oid: bytes) -> EntryRef:
    if kind == ObjectKind.BLOB:
        return BlobRef(oid)
    if kind == ObjectKind.TREE:
        return TreeRef(oid)
    if kind == ObjectKind.COMMIT:
        return GitlinkRef(oid)
    return OtherRef(kind, oid)


@dataclass
class TreeNode:
    oid: bytes
    entries: dict[str, EntryRef] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __getitem__(self, name: str) -> EntryRef:
        return self.entries[name]

    def subtrees(self) -> Iterator[tuple[str, TreeRef]]:
        for name, ref in self.entries.items():
            if isinstance(ref, TreeRef):
                yield name, ref

    def files(self) -> Iterator[tuple[str, BlobRef]]:
        for name, ref in self.entries.items():
            if isinstance(ref, BlobRef):
                yield name, ref


def load_tree(conn: Connection, tree_oid: bytes) -> TreeNode:
    """Build a node from the rows of one tree. Unknown trees come back empty."""
    rows = conn.execute(
        select(tree_entries.c.name, tree_entries.c.kind, tree_entries.c.oid)
        .where(tree_entries.c.tree_oid == tree_oid)
        .order_by(tree_entries.c.name)
    ).fetchall()
    return TreeNode(tree_oid, {r.name: make_ref(r.kind, r.oid) for r in rows})


def _join(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix else name


class TreeWalker:
    """
    Walks stored trees with a worklist, caching every node it loads.

    Subtrees shared between commits (or between directories of one commit)
    are read from the database once per walker.
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._nodes: dict[bytes, TreeNode] = {}

    def tree(self, tree_oid: bytes) -> TreeNode:
        node = self._nodes.get(tree_oid)
        if node is None:
            node = load_tree(self._conn, tree_oid)
            self._nodes[tree_oid] = node
        return node

    def iter_files(self, tree_oid: bytes, prefix: str = "") -> Iterator[FileEntry]:
        """Yield every blob below ``tree_oid``; directories are not yielded."""
        stack: list[tuple[str, bytes]] = [(prefix, parse_oid(tree_oid))]
        while stack:
            base, oid = stack.pop()
            node = self.tree(oid)
            for name, ref in node.entries.items():
                path = _join(base, name)
                if isinstance(ref, TreeRef):
                    stack.append((path, ref.oid))
                elif isinstance(ref, BlobRef):
                    yield FileEntry(path, ref.oid)

    def commit_files(self, commit_oid: bytes) -> list[FileEntry]:
        tree_oid = self._conn.execute(
            select(commits.c.tree_oid).where(commits.c.oid == parse_oid(commit_oid))
        ).scalar()
        if tree_oid is None:
            return []
        return sorted(self.iter_files(tree_oid))

    def locate(
        self,
        blob_oids: Iterable[bytes],
        commit_oids: Iterable[bytes] | None = None,
    ) -> list[BlobLocation]:
        targets = {parse_oid(oid) for oid in blob_oids}
        if commit_oids is not None:
            commit_oids = [parse_oid(oid) for oid in commit_oids]
        if not targets:
            return []
        if commit_oids is None:
            commit_oids = self._conn.execute(select(commits.c.oid)).scalars()

        found = [
            BlobLocation(commit_oid, entry.path, entry.oid)
            for commit_oid in set(commit_oids)
            for entry in self.commit_files(commit_oid)
            if entry.oid in targets
        ]
        return sorted(found)
