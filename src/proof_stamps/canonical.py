"""Deterministic canonicalization and record hashing helpers."""

from __future__ import annotations

import base64
import hashlib
import json
from collections.abc import Mapping

__all__ = [
    "HASH_VERSION",
    "canonical_pairs_json",
    "canonicalize",
    "record_hash",
    "sorted_pairs",
    "versioned_record_hash",
]

# Identifies the hashing mechanism (algorithm + content layout)
HASH_VERSION = "v0.0.0"


class _SafeJSONEncoder(json.JSONEncoder):
    """JSON encoder restricted to plain JSON types."""

    def default(self, o: object) -> object:
        if isinstance(o, tuple):
            return list(o)
        raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def canonicalize(obj: object) -> str:
    """
    Return a deterministic JSON serialization for `obj`.

    Keys are sorted and separators are compact so the output is suitable as
    a signing input. Non-JSON objects are rejected.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        cls=_SafeJSONEncoder,
    )


def sorted_pairs(record: Mapping[str, object]) -> list[list[object]]:
    """Return ``record`` as ``[[key, value], ...]`` ordered by key code point."""

    return [[key, record[key]] for key in sorted(record)]


def canonical_pairs_json(record: Mapping[str, object]) -> str:
    """Serialize the sorted pairs of ``record`` as compact JSON."""

    return json.dumps(
        sorted_pairs(record),
        separators=(",", ":"),
        ensure_ascii=False,
        sort_keys=True,
        cls=_SafeJSONEncoder,
    )


def record_hash(key: str, record: Mapping[str, object]) -> str:
    """Return ``base64(sha256(key || canonical_pairs_json(record)))``.

    The issuer key is prepended to the canonical form so the hash cannot be
    recomputed, or brute forced from guessed record values, without it.
    """

    digest = hashlib.sha256()
    digest.update(key.encode("utf-8"))
    digest.update(canonical_pairs_json(record).encode("utf-8"))
    return base64.b64encode(digest.digest()).decode("ascii")


def versioned_record_hash(key: str, record: Mapping[str, object]) -> str:
    """Return :func:`record_hash` prefixed with :data:`HASH_VERSION`."""

    return f"{HASH_VERSION}:{record_hash(key, record)}"
