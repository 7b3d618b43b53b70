from sqlalchemy import (
    MetaData,
    Table,
    Column,
    Integer,
    SmallInteger,
    LargeBinary,
    Text,
    DateTime,
    Index,
    Sequence,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import CreateIndex, CreateTable

metadata = MetaData()

# named containers that scope refs
repos = Table(
    "repos",
    metadata,
    Column("id", Integer, Sequence("repos_id_seq"), primary_key=True),
    Column("name", Text, nullable=False),
)

# file contents, lz4 frame compressed
blobs = Table(
    "blobs",
    metadata,
    Column("id", Integer, Sequence("blobs_id_seq"), primary_key=True, autoincrement=True),
    Column("oid", LargeBinary, nullable=False),
    Column("content_lz4", LargeBinary, nullable=False),
    sqlite_autoincrement=True,
)
Index("blob_oid_idx", blobs.c.oid, unique=True)

# one row = one commit; parents is the concatenation of raw parent oids.
# *_date columns hold UTC, *_offset the signer's UTC offset in minutes
commits = Table(
    "commits",
    metadata,
    Column("oid", LargeBinary, primary_key=True, nullable=False),
    Column("tree_oid", LargeBinary, nullable=False),
    Column("message", Text, nullable=False),
    Column("parents", LargeBinary, nullable=False),
    Column("author_name", Text, nullable=False),
    Column("author_email", Text, nullable=False),
    Column("author_date", DateTime, nullable=False),
    Column("author_offset", SmallInteger, nullable=False, default=0),
    Column("committer_name", Text, nullable=False),
    Column("committer_email", Text, nullable=False),
    Column("committer_date", DateTime, nullable=False),
    Column("committer_offset", SmallInteger, nullable=False, default=0),
)
Index("commits_tree_oid_idx", commits.c.tree_oid)

# one row = one child of a directory snapshot
tree_entries = Table(
    "tree_entries",
    metadata,
    Column("tree_oid", LargeBinary, primary_key=True, nullable=False),
    Column("name", Text, primary_key=True, nullable=False),
    Column("kind", SmallInteger, nullable=False),
    Column("oid", LargeBinary, nullable=False),
)
Index("tree_entries_oid_idx", tree_entries.c.oid)

# annotated tag objects
tags = Table(
    "tags",
    metadata,
    Column("oid", LargeBinary, primary_key=True, nullable=False),
    Column("name", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("tagger_name", Text, nullable=False),
    Column("tagger_email", Text, nullable=False),
    Column("tagger_date", DateTime, nullable=False),
    Column("tagger_offset", SmallInteger, nullable=False, default=0),
    Column("target_oid", LargeBinary, nullable=False),
)

# mutable pointers at an object
direct_refs = Table(
    "direct_refs",
    metadata,
    Column("repo_id", Integer, primary_key=True, nullable=False),
    Column("name", Text, primary_key=True, nullable=False),
    Column("target_oid", LargeBinary, nullable=False),
)
Index("direct_refs_target_oid_idx", direct_refs.c.target_oid)

# mutable pointers at another ref of the same repo
symbolic_refs = Table(
    "symbolic_refs",
    metadata,
    Column("repo_id", Integer, primary_key=True, nullable=False),
    Column("name", Text, primary_key=True, nullable=False),
    Column("target_ref", Text, nullable=False),
)
Index("symbolic_refs_target_ref_idx", symbolic_refs.c.target_ref)


def schema_ddl(dialect: Dialect) -> str:
    """Render CREATE TABLE / CREATE INDEX statements for ``dialect``."""
    statements = []
    for table in metadata.sorted_tables:
        statements.append(str(CreateTable(table).compile(dialect=dialect)).strip())
        for index in sorted(table.indexes, key=lambda i: i.name):
            statements.append(str(CreateIndex(index).compile(dialect=dialect)).strip())
    return ";\n\n".join(statements) + ";\n"


__all__ = [
    "metadata",
    "repos",
    "blobs",
    "commits",
    "tree_entries",
    "tags",
    "direct_refs",
    "symbolic_refs",
    "schema_ddl",
]
