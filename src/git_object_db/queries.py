"""
Recursive queries over the stored object graph.

Two traversal directions are offered for finding where blobs live:

* downward: expand the whole tree of a commit (same walk as
  :func:`list_files`) and keep the rows that match. One full expansion per
  commit checked, so asking "which commits" over many commits is expensive.
* upward: start at the tree entries that point at the blob and climb the
  containment relation until a tree is some commit's root. Usually much
  cheaper, and gives the same ``(commit, path)`` pairs whenever the blob is
  reachable from a commit's root tree.

The tree walks rely on the object graph being acyclic, which content
addressing guarantees upstream; nothing here checks it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from sqlalchemy import Connection, and_, func, select
from sqlalchemy.sql.expression import CTE

from git_object_db import config
from git_object_db.objects import BlobLocation, FileEntry, ObjectKind, parse_oid
from git_object_db.schema import blobs, commits, tree_entries

LOG = logging.getLogger(__name__)

TREE = int(ObjectKind.TREE)
BLOB = int(ObjectKind.BLOB)


def _paths_cte(commit_oid: bytes) -> CTE:
    """
    paths(path, kind, oid): every entry below the root tree of ``commit_oid``.
    """
    root = tree_entries.alias("te")
    seed = (
        select(root.c.name.label("path"), root.c.kind, root.c.oid)
        .select_from(root.join(commits, commits.c.tree_oid == root.c.tree_oid))
        .where(commits.c.oid == commit_oid)
    )
    paths = seed.cte("paths", recursive=True)

    child = tree_entries.alias("child")
    step = select(
        (paths.c.path + "/" + child.c.name).label("path"),
        child.c.kind,
        child.c.oid,
    ).select_from(
        paths.join(child, and_(child.c.tree_oid == paths.c.oid, paths.c.kind == TREE))
    )
    return paths.union_all(step)


def _containers_cte(blob_oids: Sequence[bytes]) -> CTE:
    """
    trees(blob_oid, tree_oid, path): for every tree on the way up from a
    target blob, the path of the blob relative to that tree.
    """
    leaf = tree_entries.alias("leaf")
    seed = select(
        leaf.c.oid.label("blob_oid"),
        leaf.c.tree_oid,
        leaf.c.name.label("path"),
    ).where(leaf.c.oid.in_(blob_oids), leaf.c.kind == BLOB)
    trees = seed.cte("trees", recursive=True)

    parent = tree_entries.alias("parent")
    step = select(
        trees.c.blob_oid,
        parent.c.tree_oid,
        (parent.c.name + "/" + trees.c.path).label("path"),
    ).select_from(
        trees.join(parent, and_(parent.c.oid == trees.c.tree_oid, parent.c.kind == TREE))
    )
    return trees.union_all(step)


def list_files(conn: Connection, commit_oid: bytes) -> list[FileEntry]:
    """Return ``(path, oid)`` for every file reachable from a commit."""
    paths = _paths_cte(parse_oid(commit_oid))
    rows = conn.execute(
        select(paths.c.path, paths.c.oid)
        .where(paths.c.kind == BLOB)
        .order_by(paths.c.path)
    ).fetchall()
    return [FileEntry(r.path, r.oid) for r in rows]


def locate_blobs_upward(
    conn: Connection,
    blob_oids: Iterable[bytes],
    commit_oids: Iterable[bytes] | None = None,
) -> list[BlobLocation]:
    """Find ``(commit, path)`` for each blob by climbing to root trees."""
    targets = sorted({parse_oid(oid) for oid in blob_oids})
    wanted = None if commit_oids is None else sorted({parse_oid(oid) for oid in commit_oids})
    if not targets or wanted == []:
        return []

    trees = _containers_cte(targets)
    stmt = select(
        commits.c.oid.label("commit_oid"),
        trees.c.path,
        trees.c.blob_oid,
    ).select_from(trees.join(commits, commits.c.tree_oid == trees.c.tree_oid))
    if wanted is not None:
        stmt = stmt.where(commits.c.oid.in_(wanted))

    rows = conn.execute(
        stmt.distinct().order_by(commits.c.oid, trees.c.path)
    ).fetchall()
    return [BlobLocation(r.commit_oid, r.path, r.blob_oid) for r in rows]


def locate_blobs_downward(
    conn: Connection,
    blob_oids: Iterable[bytes],
    commit_oids: Iterable[bytes] | None = None,
) -> list[BlobLocation]:
    """Find ``(commit, path)`` for each blob by expanding every commit's tree."""
    targets = sorted({parse_oid(oid) for oid in blob_oids})
    if commit_oids is not None:
        candidates = sorted({parse_oid(oid) for oid in commit_oids})
    if not targets:
        return []
    if commit_oids is None:
        candidates = list(conn.execute(select(commits.c.oid).order_by(commits.c.oid)).scalars())

    found: list[BlobLocation] = []
    for commit_oid in candidates:
        paths = _paths_cte(commit_oid)
        rows = conn.execute(
            select(paths.c.path, paths.c.oid)
            .where(paths.c.kind == BLOB, paths.c.oid.in_(targets))
            .order_by(paths.c.path)
        ).fetchall()
        found.extend(BlobLocation(commit_oid, r.path, r.oid) for r in rows)

    LOG.debug("downward search over %d commits: %d hits", len(candidates), len(found))
    return found


def sample_blob_oids(conn: Connection, limit: int | None = None) -> list[bytes]:
    """Pick up to ``limit`` stored blob oids at random."""
    limit = config.SAMPLE_SIZE if limit is None else limit
    return list(
        conn.execute(select(blobs.c.oid).order_by(func.random()).limit(limit)).scalars()
    )


def reachable_sample(
    conn: Connection, commit_oid: bytes, limit: int | None = None
) -> list[FileEntry]:
    """
    Draw a random sample of stored blobs and return the files of
    ``commit_oid`` whose content is one of them, in a single statement.
    """
    limit = config.SAMPLE_SIZE if limit is None else limit
    sample = select(blobs.c.oid).order_by(func.random()).limit(limit).subquery("bl")
    paths = _paths_cte(parse_oid(commit_oid))
    rows = conn.execute(
        select(paths.c.path, paths.c.oid)
        .select_from(paths.join(sample, sample.c.oid == paths.c.oid))
        .where(paths.c.kind == BLOB)
        .order_by(paths.c.path)
    ).fetchall()
    return [FileEntry(r.path, r.oid) for r in rows]
