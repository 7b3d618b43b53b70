"""
Insert and fetch helpers for the immutable objects (blobs, trees, commits,
tags) and for repos.

Objects are content addressed, so every add_* call is insert-if-absent:
storing an object twice is a no-op that returns False. Nothing here
updates or deletes object rows.
"""

from __future__ import annotations

import logging
from typing import Iterable

import lz4.frame
from sqlalchemy import Connection, insert, select

from git_object_db import config
from git_object_db.objects import (
    CommitRecord,
    ObjectKind,
    Signature,
    TagRecord,
    TreeEntry,
    join_date,
    pack_parents,
    parse_oid,
    split_date,
    unpack_parents,
)
from git_object_db.schema import blobs, commits, repos, tags, tree_entries

LOG = logging.getLogger(__name__)


def compress(buffer: bytes, level: int | None = None) -> bytes:
    return lz4.frame.compress(
        buffer,
        compression_level=config.LZ4_LEVEL if level is None else level,
    )


def decompress(buffer: bytes) -> bytes:
    return lz4.frame.decompress(buffer)


# Repos
def add_repo(conn: Connection, repo_id: int, name: str) -> bool:
    if conn.execute(select(repos.c.id).where(repos.c.id == repo_id)).first():
        return False
    conn.execute(insert(repos).values(id=repo_id, name=name))
    LOG.info("added repo %d (%s)", repo_id, name)
    return True


def get_repo_id(conn: Connection, name: str) -> int | None:
    return conn.execute(
        select(repos.c.id).where(repos.c.name == name).order_by(repos.c.id)
    ).scalar()


# Blobs
def blob_exists(conn: Connection, oid: bytes) -> bool:
    return bool(conn.execute(select(blobs.c.id).where(blobs.c.oid == oid)).first())


def put_blob(conn: Connection, oid: bytes, content: bytes) -> bool:
    """Store ``content`` under ``oid`` unless already present."""
    oid = parse_oid(oid)
    if blob_exists(conn, oid):
        return False
    conn.execute(insert(blobs).values(oid=oid, content_lz4=compress(content)))
    return True


def get_blob(conn: Connection, oid: bytes) -> bytes | None:
    row = conn.execute(select(blobs.c.content_lz4).where(blobs.c.oid == oid)).first()
    return decompress(row.content_lz4) if row else None


# Trees
def tree_exists(conn: Connection, tree_oid: bytes) -> bool:
    return bool(
        conn.execute(
            select(tree_entries.c.name).where(tree_entries.c.tree_oid == tree_oid).limit(1)
        ).first()
    )


def add_tree(conn: Connection, tree_oid: bytes, entries: Iterable[TreeEntry]) -> bool:
    """
    Insert the entries of one directory snapshot.

    A tree whose rows already exist is left alone. An empty tree has no
    rows at all, so adding one writes nothing.
    """
    tree_oid = parse_oid(tree_oid)
    if tree_exists(conn, tree_oid):
        return False

    rows = [
        {
            "tree_oid": tree_oid,
            "name": e.name,
            "kind": int(e.kind),
            "oid": parse_oid(e.oid),
        }
        for e in entries
    ]
    if rows:
        conn.execute(insert(tree_entries), rows)
    return bool(rows)


def get_tree_entries(conn: Connection, tree_oid: bytes) -> list[TreeEntry]:
    rows = conn.execute(
        select(tree_entries.c.name, tree_entries.c.kind, tree_entries.c.oid)
        .where(tree_entries.c.tree_oid == tree_oid)
        .order_by(tree_entries.c.name)
    ).fetchall()
    return [TreeEntry(r.name, _kind(r.kind), r.oid) for r in rows]


def _kind(code: int) -> ObjectKind:
    try:
        return ObjectKind(code)
    except ValueError:
        LOG.warning("unknown tree entry kind %r", code)
        return ObjectKind.NONE


# Commits
def add_commit(conn: Connection, commit: CommitRecord) -> bool:
    oid = parse_oid(commit.oid)
    if conn.execute(select(commits.c.oid).where(commits.c.oid == oid)).first():
        return False

    author_date, author_offset = split_date(commit.author.date)
    committer_date, committer_offset = split_date(commit.committer.date)
    conn.execute(
        insert(commits).values(
            oid=oid,
            tree_oid=parse_oid(commit.tree_oid),
            message=commit.message,
            parents=pack_parents(commit.parents),
            author_name=commit.author.name,
            author_email=commit.author.email,
            author_date=author_date,
            author_offset=author_offset,
            committer_name=commit.committer.name,
            committer_email=commit.committer.email,
            committer_date=committer_date,
            committer_offset=committer_offset,
        )
    )
    return True


def get_commit(conn: Connection, oid: bytes) -> CommitRecord | None:
    row = conn.execute(select(commits).where(commits.c.oid == oid)).first()
    if row is None:
        return None
    return CommitRecord(
        oid=row.oid,
        tree_oid=row.tree_oid,
        message=row.message,
        author=Signature(
            row.author_name, row.author_email, join_date(row.author_date, row.author_offset)
        ),
        committer=Signature(
            row.committer_name,
            row.committer_email,
            join_date(row.committer_date, row.committer_offset),
        ),
        parents=unpack_parents(row.parents, len(row.oid)),
    )


def commit_tree(conn: Connection, oid: bytes) -> bytes | None:
    return conn.execute(select(commits.c.tree_oid).where(commits.c.oid == oid)).scalar()


# Tags
def add_tag(conn: Connection, tag: TagRecord) -> bool:
    oid = parse_oid(tag.oid)
    if conn.execute(select(tags.c.oid).where(tags.c.oid == oid)).first():
        return False

    tagger_date, tagger_offset = split_date(tag.tagger.date)
    conn.execute(
        insert(tags).values(
            oid=oid,
            name=tag.name,
            message=tag.message,
            tagger_name=tag.tagger.name,
            tagger_email=tag.tagger.email,
            tagger_date=tagger_date,
            tagger_offset=tagger_offset,
            target_oid=parse_oid(tag.target_oid),
        )
    )
    return True


def get_tag(conn: Connection, oid: bytes) -> TagRecord | None:
    row = conn.execute(select(tags).where(tags.c.oid == oid)).first()
    if row is None:
        return None
    return TagRecord(
        oid=row.oid,
        name=row.name,
        message=row.message,
        tagger=Signature(
            row.tagger_name, row.tagger_email, join_date(row.tagger_date, row.tagger_offset)
        ),
        target_oid=row.target_oid,
    )
