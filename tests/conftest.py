"""Shared fixtures: in-memory SQLite engine and a small object graph.

The sample graph:

    C1 (root commit)  tree R1 = {"a.txt": B1, "dir": T2}
                      T2      = {"b.txt": B2}
    C2 (child of C1)  tree R2 = {"a.txt": B1, "dir": T2, "new": T3, "sub": gitlink}
                      T3      = {"deep": T4}, T4 = {"b-copy.txt": B2}
    C3                tree E  = {} (no rows)
    B9 is stored but never referenced.
"""

from datetime import datetime, timezone

import pytest

from git_object_db import storage
from git_object_db.db import init_db, make_engine
from git_object_db.objects import CommitRecord, ObjectKind, Signature, TreeEntry


def oid(label: str) -> bytes:
    """Deterministic 20-byte oid for a short label."""
    return label.encode().ljust(20, b"\0")


B1, B2, B9 = oid("B1"), oid("B2"), oid("B9")
R1, R2, T2, T3, T4, E = oid("R1"), oid("R2"), oid("T2"), oid("T3"), oid("T4"), oid("E")
C1, C2, C3 = oid("C1"), oid("C2"), oid("C3")
SUBMODULE = oid("SUB")

ALICE = Signature(
    "Alice", "alice@example.com", datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
)


def make_commit(commit_oid, tree_oid, parents=(), message="msg"):
    return CommitRecord(
        oid=commit_oid,
        tree_oid=tree_oid,
        message=message,
        author=ALICE,
        committer=ALICE,
        parents=list(parents),
    )


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = make_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def conn(engine):
    """Connection inside a transaction that is rolled back after the test."""
    with engine.connect() as connection:
        tx = connection.begin()
        yield connection
        tx.rollback()


@pytest.fixture
def graph(conn):
    storage.put_blob(conn, B1, b"alpha\n")
    storage.put_blob(conn, B2, b"beta\n")
    storage.put_blob(conn, B9, b"orphan\n")

    storage.add_tree(conn, T2, [TreeEntry("b.txt", ObjectKind.BLOB, B2)])
    storage.add_tree(
        conn,
        R1,
        [
            TreeEntry("a.txt", ObjectKind.BLOB, B1),
            TreeEntry("dir", ObjectKind.TREE, T2),
        ],
    )
    storage.add_tree(conn, T4, [TreeEntry("b-copy.txt", ObjectKind.BLOB, B2)])
    storage.add_tree(conn, T3, [TreeEntry("deep", ObjectKind.TREE, T4)])
    storage.add_tree(
        conn,
        R2,
        [
            TreeEntry("a.txt", ObjectKind.BLOB, B1),
            TreeEntry("dir", ObjectKind.TREE, T2),
            TreeEntry("new", ObjectKind.TREE, T3),
            TreeEntry("sub", ObjectKind.COMMIT, SUBMODULE),
        ],
    )
    storage.add_tree(conn, E, [])

    storage.add_commit(conn, make_commit(C1, R1, message="first"))
    storage.add_commit(conn, make_commit(C2, R2, parents=[C1], message="second"))
    storage.add_commit(conn, make_commit(C3, E, parents=[C2], message="empty"))
    return conn
