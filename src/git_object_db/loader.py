"""
Load an object graph described in a YAML manifest.

* ``repos``: list of ``{id, name}``.
* ``blobs``: list of ``{oid, content}``; content is text (utf-8) or !!binary.
* ``trees``: mapping ``tree oid -> {entry name: {kind, oid}}``; kind is one of
  ``blob``, ``tree``, ``commit`` (gitlink).
* ``commits``: list of ``{oid, tree, parents, message, author, committer}``;
  a signature is ``{name, email, date}`` and committer defaults to author.
* ``tags``: list of ``{oid, name, message, tagger, target}``.
* ``refs``: list of ``{repo, name, target}`` or ``{repo, name, symbolic}``.

All oids are quoted hex strings (YAML reads an unquoted all-digit oid as an
int, which is rejected). Dates are epoch seconds or ISO 8601 text; an offset,
when given, is kept. Everything is written in one transaction; objects already
present are skipped, so loading the same manifest twice changes nothing.

Usage
-----
git-object-db load graph.yml
"""

from __future__ import annotations

import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Connection

from git_object_db import refs, storage
from git_object_db.objects import (
    CommitRecord,
    ObjectKind,
    Signature,
    TagRecord,
    TreeEntry,
    parse_oid,
)

LOG = logging.getLogger(__name__)


# Helpers
def read_manifest(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise FileNotFoundError(f"{path} not found")

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def parse_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"cannot read a date from {value!r}")


def parse_signature(data: dict[str, Any]) -> Signature:
    return Signature(
        name=str(data["name"]),
        email=str(data.get("email", "")),
        date=parse_date(data["date"]),
    )


def parse_entry(name: str, data: dict[str, Any]) -> TreeEntry:
    kind = data.get("kind", "blob")
    kind = ObjectKind(kind) if isinstance(kind, int) else ObjectKind.from_name(kind)
    return TreeEntry(str(name), kind, parse_oid(data["oid"]))


def parse_commit(data: dict[str, Any]) -> CommitRecord:
    author = parse_signature(data["author"])
    committer = parse_signature(data["committer"]) if "committer" in data else author
    return CommitRecord(
        oid=parse_oid(data["oid"]),
        tree_oid=parse_oid(data["tree"]),
        message=str(data.get("message", "")),
        author=author,
        committer=committer,
        parents=[parse_oid(p) for p in data.get("parents") or []],
    )


def parse_tag(data: dict[str, Any]) -> TagRecord:
    return TagRecord(
        oid=parse_oid(data["oid"]),
        name=str(data["name"]),
        message=str(data.get("message", "")),
        tagger=parse_signature(data["tagger"]),
        target_oid=parse_oid(data["target"]),
    )


def _content(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


# Main
def load_manifest(conn: Connection, data: dict[str, Any]) -> dict[str, int]:
    """
    Write the manifest's rows through ``conn``; return counts of new rows.
    Refs count only when they were created or moved.
    """
    added = {"repos": 0, "blobs": 0, "trees": 0, "commits": 0, "tags": 0, "refs": 0}

    for repo in data.get("repos") or []:
        added["repos"] += storage.add_repo(conn, int(repo["id"]), str(repo["name"]))

    for blob in data.get("blobs") or []:
        added["blobs"] += storage.put_blob(
            conn, parse_oid(blob["oid"]), _content(blob.get("content", ""))
        )

    for tree_oid, entries in (data.get("trees") or {}).items():
        added["trees"] += storage.add_tree(
            conn,
            parse_oid(tree_oid),
            [parse_entry(name, e) for name, e in (entries or {}).items()],
        )

    for commit in data.get("commits") or []:
        added["commits"] += storage.add_commit(conn, parse_commit(commit))

    for tag in data.get("tags") or []:
        added["tags"] += storage.add_tag(conn, parse_tag(tag))

    for ref in data.get("refs") or []:
        repo_id = int(ref["repo"])
        if "symbolic" in ref:
            changed = refs.set_symbolic_ref(
                conn, repo_id, str(ref["name"]), str(ref["symbolic"])
            )
        else:
            changed = refs.set_direct_ref(
                conn, repo_id, str(ref["name"]), parse_oid(ref["target"])
            )
        added["refs"] += changed

    LOG.info(
        "loaded %s",
        ", ".join(f"{n} {kind}" for kind, n in added.items()),
    )
    return added


def load_file(conn: Connection, path: Path) -> dict[str, int]:
    return load_manifest(conn, read_manifest(path))
