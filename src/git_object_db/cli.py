"""
Command line entry point.

Examples
--------
git-object-db --db sqlite:///objects.sqlite init
git-object-db load graph.yml
git-object-db ls-files main --repo-id 1
git-object-db locate 0d43989d2e1987bc91a20021d942c95b844d9e07 --method up
git-object-db sync-refs --repo-id 1 --repo-name demo --repo-path ./demo
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from git.exc import GitError
from sqlalchemy.exc import SQLAlchemyError

from git_object_db import config, loader, queries, refs, restore, storage
from git_object_db.db import init_db, make_engine
from git_object_db.graph import TreeWalker
from git_object_db.objects import parse_oid, to_hex
from git_object_db.schema import schema_ddl

LOG = logging.getLogger("git_object_db")


# ──────────────────────────── COMMANDS ─────────────────────────────────────
def cmd_init(engine, args) -> None:
    init_db(engine)
    print(f"initialized {engine.url.render_as_string(hide_password=True)}")


def cmd_schema(engine, args) -> None:
    print(schema_ddl(engine.dialect))


def cmd_load(engine, args) -> None:
    init_db(engine)
    with engine.begin() as conn:
        added = loader.load_file(conn, Path(args.manifest))
    for kind, n in added.items():
        print(f"{kind}\t{n}")


def cmd_ls_files(engine, args) -> None:
    with engine.connect() as conn:
        commit_oid = refs.resolve_commitish(conn, args.rev, args.repo_id)
        for entry in queries.list_files(conn, commit_oid):
            print(f"{entry.path}\t{to_hex(entry.oid)}")


def cmd_locate(engine, args) -> None:
    blob_oids = [parse_oid(b) for b in args.blobs]
    with engine.connect() as conn:
        commit_oids = None
        if args.commits:
            commit_oids = [refs.resolve_commitish(conn, c, args.repo_id) for c in args.commits]

        if args.method == "up":
            found = queries.locate_blobs_upward(conn, blob_oids, commit_oids)
        elif args.method == "down":
            found = queries.locate_blobs_downward(conn, blob_oids, commit_oids)
        else:
            found = TreeWalker(conn).locate(blob_oids, commit_oids)

    for loc in found:
        print(f"{to_hex(loc.commit_oid)}\t{loc.path}")


def cmd_sample(engine, args) -> None:
    with engine.connect() as conn:
        commit_oid = refs.resolve_commitish(conn, args.rev, args.repo_id)
        for entry in queries.reachable_sample(conn, commit_oid, args.limit):
            print(f"{entry.path}\t{to_hex(entry.oid)}")


def cmd_restore(engine, args) -> None:
    with engine.connect() as conn:
        commit_oid = refs.resolve_commitish(conn, args.rev, args.repo_id)
        written = restore.restore_commit(conn, commit_oid, args.out)
    print(f"Restored {written} files to {args.out}")


def cmd_refs(engine, args) -> None:
    with engine.connect() as conn:
        for ref in refs.list_refs(conn, args.repo_id):
            target = f"ref: {ref.target_ref}" if ref.is_symbolic else to_hex(ref.target_oid)
            print(f"{ref.name}\t{target}")


def cmd_sync_refs(engine, args) -> None:
    init_db(engine)
    new_refs, head = refs.read_git_refs(args.repo_path, args.glob)
    with engine.begin() as conn:
        storage.add_repo(conn, args.repo_id, args.repo_name)
        diffs = refs.sync_refs(conn, args.repo_id, new_refs, args.glob, head)
    for d in diffs:
        old = to_hex(d.old_target) if d.old_target else "-"
        new = to_hex(d.new_target) if d.new_target else "-"
        print(f"{d.name}\t{old}\t{new}")


# ────────────────────────────── CLI ────────────────────────────────────────
def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="git-object-db",
        description="Query a Git object graph stored in a relational database.",
    )
    parser.add_argument("--db", default=config.DB_URL, help="SQLAlchemy database URL")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="create tables and indexes")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("schema", help="print the DDL for the database dialect")
    p.set_defaults(func=cmd_schema)

    p = sub.add_parser("load", help="load a YAML manifest")
    p.add_argument("manifest")
    p.set_defaults(func=cmd_load)

    p = sub.add_parser("ls-files", help="list files reachable from a commit")
    p.add_argument("rev", help="commit oid or ref name")
    p.add_argument("--repo-id", type=int)
    p.set_defaults(func=cmd_ls_files)

    p = sub.add_parser("locate", help="list commits and paths containing blobs")
    p.add_argument("blobs", nargs="+", help="blob oids")
    p.add_argument("--commit", dest="commits", action="append", help="restrict to commit")
    p.add_argument("--repo-id", type=int)
    p.add_argument(
        "--method",
        choices=["up", "down", "walk"],
        default="up",
        help="up: climb from the blob (default); down: expand each commit; "
        "walk: in-process tree walk",
    )
    p.set_defaults(func=cmd_locate)

    p = sub.add_parser("sample", help="files of a commit found in a random blob sample")
    p.add_argument("rev")
    p.add_argument("--limit", type=int, default=config.SAMPLE_SIZE)
    p.add_argument("--repo-id", type=int)
    p.set_defaults(func=cmd_sample)

    p = sub.add_parser("restore", help="write the files of a commit to a folder")
    p.add_argument("rev")
    p.add_argument("--out", required=True, help="destination directory")
    p.add_argument("--repo-id", type=int)
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("refs", help="list refs of a repo")
    p.add_argument("--repo-id", type=int, required=True)
    p.set_defaults(func=cmd_refs)

    p = sub.add_parser("sync-refs", help="copy refs of a local Git repository")
    p.add_argument("--repo-id", type=int, required=True)
    p.add_argument("--repo-name", required=True)
    p.add_argument("--repo-path", required=True)
    p.add_argument("--glob", default=config.REF_GLOB)
    p.set_defaults(func=cmd_sync_refs)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s %(message)s",
    )

    engine = make_engine(args.db)
    try:
        args.func(engine, args)
    except (ValueError, FileNotFoundError, SQLAlchemyError, GitError) as exc:
        LOG.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
