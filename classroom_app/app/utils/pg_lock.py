"""Postgres advisory locks keyed by string names.

Used to serialize work on one (assignment, user) or (invitation, user) pair across
web workers and the job worker. Lock keys are integers; we compute a 64-bit key by
hashing the name. On databases without advisory locks (SQLite in tests) the context
managers do not lock and yield True; the unique constraints on the tables are the
remaining guard there.
"""
from __future__ import annotations

import hashlib
from contextlib import contextmanager
from typing import Generator
from sqlalchemy import text
from .. import db


def _lock_key(name: str) -> int:
    # produce a stable 64-bit signed integer from the name
    h = hashlib.sha256(name.encode("utf-8")).digest()
    val = int.from_bytes(h[:8], byteorder="big", signed=False)
    # Postgres advisory lock takes bigint (signed), so fit into signed 64-bit
    if val > (2 ** 63 - 1):
        val = val - 2 ** 64
    return val


def _supports_advisory_locks() -> bool:
    return db.engine.dialect.name == "postgresql"


@contextmanager
def _advisory_lock(name: str, blocking: bool) -> Generator[bool, None, None]:
    if not _supports_advisory_locks():
        yield True
        return
    key = _lock_key(name)
    conn = db.engine.connect()
    trans = conn.begin()
    locked = False
    try:
        if blocking:
            conn.execute(text("SELECT pg_advisory_lock(:k)"), {"k": key})
            locked = True
        else:
            result = conn.execute(text("SELECT pg_try_advisory_lock(:k)"), {"k": key})
            locked = bool(result.scalar())
        yield locked
    finally:
        if locked:
            conn.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": key})
        try:
            trans.commit()
        except Exception:
            trans.rollback()
        conn.close()


def pg_try_advisory_lock(name: str):
    """Try to acquire the lock for ``name``. Yields True if acquired, False if another session holds it.

    Usage:
        with pg_try_advisory_lock('create_repository:1:2') as locked:
            if not locked:
                return
            # perform job
    """
    return _advisory_lock(name, blocking=False)


def pg_advisory_lock(name: str):
    """Block until the lock for ``name`` is held. Always yields True."""
    return _advisory_lock(name, blocking=True)
