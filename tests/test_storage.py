from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from git_object_db import storage
from git_object_db.objects import CommitRecord, ObjectKind, Signature, TagRecord, TreeEntry
from git_object_db.schema import blobs, commits, tree_entries

from conftest import ALICE, B1, C1, C2, R1, T2, make_commit, oid


class TestBlobs:
    def test_roundtrip_is_compressed(self, conn):
        data = b"".join(f"line {i}\n".encode() for i in range(500))
        assert storage.put_blob(conn, B1, data) is True
        stored = conn.execute(select(blobs.c.content_lz4)).scalar_one()
        assert len(stored) < len(data)
        assert storage.get_blob(conn, B1) == data

    def test_second_put_is_ignored(self, conn):
        assert storage.put_blob(conn, B1, b"first")
        assert storage.put_blob(conn, B1, b"second") is False
        assert storage.get_blob(conn, B1) == b"first"

    def test_missing_blob(self, conn):
        assert storage.get_blob(conn, B1) is None
        assert storage.blob_exists(conn, B1) is False

    def test_empty_content(self, conn):
        storage.put_blob(conn, B1, b"")
        assert storage.get_blob(conn, B1) == b""

    def test_bad_oid_length(self, conn):
        with pytest.raises(ValueError):
            storage.put_blob(conn, b"short", b"x")


class TestTrees:
    def test_entries_roundtrip(self, graph):
        assert storage.get_tree_entries(graph, R1) == [
            TreeEntry("a.txt", ObjectKind.BLOB, B1),
            TreeEntry("dir", ObjectKind.TREE, T2),
        ]

    def test_existing_tree_not_rewritten(self, graph):
        assert storage.add_tree(graph, T2, [TreeEntry("other", ObjectKind.BLOB, B1)]) is False
        names = graph.execute(
            select(tree_entries.c.name).where(tree_entries.c.tree_oid == T2)
        ).scalars().all()
        assert names == ["b.txt"]

    def test_empty_tree_writes_nothing(self, conn):
        assert storage.add_tree(conn, oid("E"), []) is False
        assert storage.get_tree_entries(conn, oid("E")) == []


class TestCommits:
    def test_roundtrip_with_parents(self, graph):
        commit = storage.get_commit(graph, C2)
        assert commit.tree_oid == oid("R2")
        assert commit.parents == [C1]
        assert commit.author == ALICE
        assert commit.message == "second"

    def test_root_commit_has_no_parents(self, graph):
        assert storage.get_commit(graph, C1).parents == []

    def test_merge_commit_parent_order(self, conn):
        storage.add_commit(conn, make_commit(oid("M"), R1, parents=[C2, C1]))
        assert storage.get_commit(conn, oid("M")).parents == [C2, C1]

    def test_add_is_insert_if_absent(self, graph):
        assert storage.add_commit(graph, make_commit(C1, T2, message="changed")) is False
        assert storage.get_commit(graph, C1).message == "first"
        assert storage.commit_tree(graph, C1) == R1

    def test_unknown_commit(self, conn):
        assert storage.get_commit(conn, oid("none")) is None
        assert storage.commit_tree(conn, oid("none")) is None


class TestDates:
    def _commit(self, commit_oid, date):
        signer = Signature("Alice", "alice@example.com", date)
        return CommitRecord(commit_oid, R1, "", signer, signer)

    def test_same_instant_is_stored_as_same_utc_value(self, conn):
        epoch = datetime.fromtimestamp(1714557600, tz=timezone.utc)
        local = datetime.fromisoformat("2024-05-01T12:00:00+02:00")
        storage.add_commit(conn, self._commit(oid("EPOCH"), epoch))
        storage.add_commit(conn, self._commit(oid("LOCAL"), local))

        rows = conn.execute(
            select(commits.c.oid, commits.c.author_date, commits.c.author_offset)
        ).fetchall()
        stored = {r.oid: (r.author_date, r.author_offset) for r in rows}
        assert stored[oid("EPOCH")] == (datetime(2024, 5, 1, 10, 0), 0)
        assert stored[oid("LOCAL")] == (datetime(2024, 5, 1, 10, 0), 120)

    def test_offset_survives_roundtrip(self, conn):
        local = datetime.fromisoformat("2024-05-01T12:00:00+02:00")
        storage.add_commit(conn, self._commit(oid("LOCAL"), local))
        author = storage.get_commit(conn, oid("LOCAL")).author
        assert author.date == local
        assert author.date.utcoffset() == timedelta(hours=2)
        assert author.date.hour == 12

    def test_naive_dates_are_taken_as_utc(self, conn):
        storage.add_commit(conn, self._commit(oid("NAIVE"), datetime(2024, 5, 1, 10, 0)))
        date = storage.get_commit(conn, oid("NAIVE")).author.date
        assert date == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


class TestTagsAndRepos:
    def test_tag_roundtrip(self, conn):
        pdt = timezone(timedelta(hours=-7))
        tagger = Signature("Bob", "bob@example.com", datetime(2024, 6, 1, tzinfo=pdt))
        tag = TagRecord(oid("TAG"), "v1.0", "release\n", tagger, C1)
        assert storage.add_tag(conn, tag)
        assert storage.add_tag(conn, tag) is False
        stored = storage.get_tag(conn, oid("TAG"))
        assert stored == tag
        assert stored.tagger.date.utcoffset() == timedelta(hours=-7)

    def test_add_repo(self, conn):
        assert storage.add_repo(conn, 1, "demo")
        assert storage.add_repo(conn, 1, "renamed") is False
        assert storage.get_repo_id(conn, "demo") == 1
        assert storage.get_repo_id(conn, "renamed") is None
