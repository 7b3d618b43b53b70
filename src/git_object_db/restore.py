"""
Restore all files of a commit snapshot into a local folder.

Example
-------
git-object-db restore 044ef9dd08be2185d89a6aa0a53e903422a79707 \
    --out ./restored/snapshot
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath

from sqlalchemy import Connection

from git_object_db import storage
from git_object_db.queries import list_files

LOG = logging.getLogger(__name__)


def restore_commit(conn: Connection, commit_oid: bytes, out_dir: str | os.PathLike) -> int:
    """
    Write every file reachable from ``commit_oid`` below ``out_dir``.

    Files whose content is not stored are logged and skipped. Returns the
    number of files written.
    """
    files = list_files(conn, commit_oid)
    if not files:
        LOG.warning("no files found for commit %s", commit_oid.hex())
        return 0

    root = Path(out_dir)
    root.mkdir(parents=True, exist_ok=True)
    written = 0

    for entry in files:
        rel_path = PurePosixPath(entry.path)
        if rel_path.is_absolute() or ".." in rel_path.parts:
            LOG.warning("skipping unsafe path %r", entry.path)
            continue

        content = storage.get_blob(conn, entry.oid)
        if content is None:
            LOG.warning("missing content for %s (%s)", entry.path, entry.oid.hex())
            continue

        dst = root.joinpath(*rel_path.parts)
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_bytes(content)
        written += 1

    LOG.info("restored %d of %d files to %s", written, len(files), root)
    return written
