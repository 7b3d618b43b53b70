"""
Refs are the only mutable rows: a direct ref can be moved to another
object, a symbolic ref re-pointed at another ref name. A ref name is either
direct or symbolic within a repo, never both.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Mapping, NamedTuple

from git import Repo
from sqlalchemy import Connection, delete, insert, select, update

from git_object_db.objects import is_hex_oid, parse_oid
from git_object_db.schema import direct_refs, symbolic_refs, tags

LOG = logging.getLogger(__name__)

MAX_SYMREF_DEPTH = 5


class Ref(NamedTuple):
    name: str
    target_oid: bytes | None = None
    target_ref: str | None = None

    @property
    def is_symbolic(self) -> bool:
        return self.target_ref is not None


class RefDiff(NamedTuple):
    name: str
    old_target: bytes | None
    new_target: bytes | None


def set_direct_ref(conn: Connection, repo_id: int, name: str, target_oid: bytes) -> bool:
    """Point ``name`` at ``target_oid``. Returns False when nothing changed."""
    target_oid = parse_oid(target_oid)
    where = (direct_refs.c.repo_id == repo_id, direct_refs.c.name == name)
    current = conn.execute(select(direct_refs.c.target_oid).where(*where)).scalar()
    dropped = conn.execute(
        delete(symbolic_refs).where(
            symbolic_refs.c.repo_id == repo_id, symbolic_refs.c.name == name
        )
    ).rowcount

    if current is None:
        conn.execute(
            insert(direct_refs).values(repo_id=repo_id, name=name, target_oid=target_oid)
        )
    elif current != target_oid:
        conn.execute(update(direct_refs).where(*where).values(target_oid=target_oid))
    else:
        return bool(dropped)
    return True


def set_symbolic_ref(conn: Connection, repo_id: int, name: str, target_ref: str) -> bool:
    """Point ``name`` at the ref ``target_ref``. Returns False when nothing changed."""
    if name == target_ref:
        raise ValueError(f"symbolic ref {name!r} cannot point at itself")
    where = (symbolic_refs.c.repo_id == repo_id, symbolic_refs.c.name == name)
    current = conn.execute(select(symbolic_refs.c.target_ref).where(*where)).scalar()
    dropped = conn.execute(
        delete(direct_refs).where(direct_refs.c.repo_id == repo_id, direct_refs.c.name == name)
    ).rowcount

    if current is None:
        conn.execute(
            insert(symbolic_refs).values(repo_id=repo_id, name=name, target_ref=target_ref)
        )
    elif current != target_ref:
        conn.execute(update(symbolic_refs).where(*where).values(target_ref=target_ref))
    else:
        return bool(dropped)
    return True


def delete_ref(conn: Connection, repo_id: int, name: str) -> bool:
    removed = conn.execute(
        delete(direct_refs).where(direct_refs.c.repo_id == repo_id, direct_refs.c.name == name)
    ).rowcount
    removed += conn.execute(
        delete(symbolic_refs).where(
            symbolic_refs.c.repo_id == repo_id, symbolic_refs.c.name == name
        )
    ).rowcount
    return bool(removed)


def get_ref(conn: Connection, repo_id: int, name: str) -> Ref | None:
    oid = conn.execute(
        select(direct_refs.c.target_oid).where(
            direct_refs.c.repo_id == repo_id, direct_refs.c.name == name
        )
    ).scalar()
    if oid is not None:
        return Ref(name, target_oid=oid)
    target = conn.execute(
        select(symbolic_refs.c.target_ref).where(
            symbolic_refs.c.repo_id == repo_id, symbolic_refs.c.name == name
        )
    ).scalar()
    if target is not None:
        return Ref(name, target_ref=target)
    return None


def list_refs(conn: Connection, repo_id: int) -> list[Ref]:
    found = [
        Ref(r.name, target_oid=r.target_oid)
        for r in conn.execute(
            select(direct_refs.c.name, direct_refs.c.target_oid).where(
                direct_refs.c.repo_id == repo_id
            )
        )
    ]
    found += [
        Ref(r.name, target_ref=r.target_ref)
        for r in conn.execute(
            select(symbolic_refs.c.name, symbolic_refs.c.target_ref).where(
                symbolic_refs.c.repo_id == repo_id
            )
        )
    ]
    return sorted(found, key=lambda ref: ref.name)


def resolve_ref(conn: Connection, repo_id: int, name: str) -> bytes | None:
    """
    Follow symbolic refs until a direct one. Returns None when the chain ends
    at a missing ref; raises ValueError on a loop or an overlong chain.
    """
    chain = [name]
    for _ in range(MAX_SYMREF_DEPTH + 1):
        ref = get_ref(conn, repo_id, chain[-1])
        if ref is None:
            return None
        if not ref.is_symbolic:
            return ref.target_oid
        if ref.target_ref in chain:
            raise ValueError("symbolic ref loop: " + " -> ".join(chain + [ref.target_ref]))
        chain.append(ref.target_ref)
    raise ValueError(f"symbolic ref chain too deep: {' -> '.join(chain)}")


def peel(conn: Connection, oid: bytes) -> bytes:
    """Follow annotated tags to the object they finally point at."""
    seen = set()
    while oid not in seen:
        seen.add(oid)
        target = conn.execute(select(tags.c.target_oid).where(tags.c.oid == oid)).scalar()
        if target is None:
            return oid
        oid = target
    raise ValueError(f"tag loop at {oid.hex()}")


def resolve_commitish(conn: Connection, rev: str, repo_id: int | None = None) -> bytes:
    """Turn a hex oid or a ref name (full or short) into a peeled oid."""
    if is_hex_oid(rev):
        return peel(conn, parse_oid(rev))
    if repo_id is None:
        raise ValueError(f"{rev!r} is not an oid and no repo was given to look it up")

    for candidate in (rev, f"refs/heads/{rev}", f"refs/tags/{rev}"):
        oid = resolve_ref(conn, repo_id, candidate)
        if oid is not None:
            return peel(conn, oid)
    raise ValueError(f"unknown revision {rev!r} in repo {repo_id}")


def diff_refs(
    conn: Connection,
    repo_id: int,
    new_refs: Mapping[str, bytes],
    pattern: str = "refs/heads/*",
) -> list[RefDiff]:
    """
    Compare stored direct refs matching ``pattern`` with ``new_refs``.

    Unchanged refs are left out; a created ref has no old target and a
    removed one no new target.
    """
    stored = {
        r.name: r.target_oid
        for r in conn.execute(
            select(direct_refs.c.name, direct_refs.c.target_oid).where(
                direct_refs.c.repo_id == repo_id
            )
        )
        if fnmatchcase(r.name, pattern)
    }
    incoming = {
        name: parse_oid(oid) for name, oid in new_refs.items() if fnmatchcase(name, pattern)
    }

    diffs = []
    for name in sorted(stored.keys() | incoming.keys()):
        old, new = stored.get(name), incoming.get(name)
        if old != new:
            diffs.append(RefDiff(name, old, new))
    return diffs


def sync_refs(
    conn: Connection,
    repo_id: int,
    new_refs: Mapping[str, bytes],
    pattern: str = "refs/heads/*",
    head: str | bytes | None = None,
) -> list[RefDiff]:
    """Apply :func:`diff_refs` to the stored refs; ``head`` sets HEAD."""
    diffs = diff_refs(conn, repo_id, new_refs, pattern)
    for d in diffs:
        if d.new_target is None:
            delete_ref(conn, repo_id, d.name)
            LOG.info("deleted %s", d.name)
        else:
            set_direct_ref(conn, repo_id, d.name, d.new_target)
            LOG.info(
                "%s %s -> %s",
                d.name,
                d.old_target.hex()[:7] if d.old_target else "(new)",
                d.new_target.hex()[:7],
            )

    if isinstance(head, str):
        set_symbolic_ref(conn, repo_id, "HEAD", head)
    elif head is not None:
        set_direct_ref(conn, repo_id, "HEAD", head)
    return diffs


def read_git_refs(
    repo_path: str, pattern: str = "refs/heads/*"
) -> tuple[dict[str, bytes], str | bytes | None]:
    """
    Read refs matching ``pattern`` and HEAD from a local Git repository.

    HEAD comes back as the ref name it points at, or as a raw oid when
    detached. Refs are read only; no object is parsed or copied.
    """
    with Repo(repo_path) as repo:
        found = {
            ref.path: ref.object.binsha
            for ref in repo.references
            if fnmatchcase(ref.path, pattern)
        }
        if repo.head.is_detached:
            head: str | bytes | None = repo.head.commit.binsha
        else:
            head = repo.head.reference.path
    LOG.info("read %d refs from %s", len(found), repo_path)
    return found, head
