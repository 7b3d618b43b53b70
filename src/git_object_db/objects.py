"""
Value types shared by the storage, query and traversal modules.

Oids travel through the package as raw bytes (20 bytes for SHA-1
repositories, 32 for SHA-256 ones) and are turned into hex only when
printed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, timezone
from enum import IntEnum
from typing import Iterable, NamedTuple

OID_LENGTHS = (20, 32)


class ObjectKind(IntEnum):
    """Kind codes stored in ``tree_entries.kind``."""

    NONE = 0
    ANY = 1
    COMMIT = 2  # gitlink / submodule entry
    TREE = 3
    BLOB = 4
    TAG = 5

    @classmethod
    def from_name(cls, name: str) -> "ObjectKind":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"unknown object kind: {name!r}") from None


def parse_oid(value: str | bytes) -> bytes:
    """Accept a hex string (40 or 64 digits) or raw bytes, return raw bytes."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
    elif not isinstance(value, str):
        raise ValueError(
            f"oid must be a hex string or bytes, got {type(value).__name__}: {value!r}"
            " (quote hex oids in YAML)"
        )
    else:
        text = value.strip()
        if len(text) not in (n * 2 for n in OID_LENGTHS):
            raise ValueError(f"oid must be 40 or 64 hex digits, got {len(text)}: {text!r}")
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"oid is not hexadecimal: {text!r}") from None
    if len(raw) not in OID_LENGTHS:
        raise ValueError(f"oid must be 20 or 32 bytes, got {len(raw)}")
    return raw


def is_hex_oid(value: str) -> bool:
    try:
        parse_oid(value)
    except ValueError:
        return False
    return True


def to_hex(oid: bytes) -> str:
    return oid.hex()


def pack_parents(parents: Iterable[bytes]) -> bytes:
    """Concatenate parent oids in order (empty bytes for a root commit)."""
    return b"".join(parse_oid(p) for p in parents)


def unpack_parents(raw: bytes, oid_length: int = 20) -> list[bytes]:
    if oid_length not in OID_LENGTHS:
        raise ValueError(f"unsupported oid length {oid_length}")
    if len(raw) % oid_length:
        raise ValueError(
            f"parents field of {len(raw)} bytes is not a multiple of {oid_length}"
        )
    return [raw[i : i + oid_length] for i in range(0, len(raw), oid_length)]


class Signature(NamedTuple):
    name: str
    email: str
    date: datetime


class TreeEntry(NamedTuple):
    name: str
    kind: ObjectKind
    oid: bytes


@dataclass(frozen=True)
class CommitRecord:
    oid: bytes
    tree_oid: bytes
    message: str
    author: Signature
    committer: Signature
    parents: list[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class TagRecord:
    oid: bytes
    name: str
    message: str
    tagger: Signature
    target_oid: bytes


class FileEntry(NamedTuple):
    """A file reachable from a commit."""

    path: str
    oid: bytes


class BlobLocation(NamedTuple):
    """A place where a blob shows up: under ``path`` in ``commit_oid``."""

    commit_oid: bytes
    path: str
    blob_oid: bytes


def split_date(value: datetime) -> tuple[datetime, int]:
    """
    Split a timestamp into its UTC wall clock (naive) and the UTC offset in
    minutes it was written with. Naive values are taken to be UTC already.
    """
    offset = value.utcoffset()
    if offset is None:
        return value, 0
    return value.astimezone(UTC).replace(tzinfo=None), int(offset.total_seconds() // 60)


def join_date(utc: datetime, offset: int) -> datetime:
    """Inverse of :func:`split_date`: an aware datetime in the signer's zone."""
    return utc.replace(tzinfo=UTC).astimezone(timezone(timedelta(minutes=offset)))
