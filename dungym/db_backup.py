"""Backup and restoration helpers for the local session database.

A single up-to-date copy of the database lives in a ``backup`` folder next
to it.  :func:`create_backup` refreshes that copy after the session list
changes and :func:`restore_if_corrupt` swaps it in when the main file fails
SQLite's integrity check.  Copies go through a temporary file followed by an
atomic rename to avoid partial writes.
"""
from __future__ import annotations

from pathlib import Path
import logging
import os
import sqlite3
import shutil

logger = logging.getLogger(__name__)


def backup_path_for(db_path: Path) -> Path:
    """Return the location of the backup copy for ``db_path``."""

    db_path = Path(db_path)
    return db_path.parent / "backup" / db_path.name


def _atomic_copy(src: Path, dest: Path) -> None:
    """Copy ``src`` to ``dest`` using a temporary file then rename."""

    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_suffix(".tmp")
    shutil.copy2(src, tmp)
    os.replace(tmp, dest)


def create_backup(db_path: Path, conn: sqlite3.Connection | None = None) -> None:
    """Write a fresh backup of ``db_path``.

    Parameters
    ----------
    db_path:
        The main database file.
    conn:
        Optional open connection to the source database. If omitted a new
        connection to ``db_path`` is created.
    """

    backup = backup_path_for(db_path)
    backup.parent.mkdir(parents=True, exist_ok=True)
    tmp_backup = backup.with_suffix(".tmp")
    if conn is None:
        with sqlite3.connect(str(db_path)) as src, sqlite3.connect(str(tmp_backup)) as dst:
            src.backup(dst)
    else:
        with sqlite3.connect(str(tmp_backup)) as dst:
            conn.backup(dst)
    try:
        os.replace(tmp_backup, backup)
    except PermissionError:
        # On Windows the destination may be locked if opened by another process.
        with open(tmp_backup, "rb") as src, open(backup, "wb") as dst:
            shutil.copyfileobj(src, dst)
        os.remove(tmp_backup)


def restore_if_corrupt(db_path: Path) -> bool:
    """Replace a corrupt ``db_path`` with its backup if one exists.

    Returns ``True`` when the backup was restored.
    """

    db_path = Path(db_path)
    if not db_path.exists():
        return False
    try:
        with sqlite3.connect(str(db_path)) as conn:
            cur = conn.cursor()
            cur.execute("PRAGMA integrity_check")
            result = cur.fetchone()
            if not result or result[0] != "ok":
                raise sqlite3.DatabaseError("integrity check failed")
    except sqlite3.DatabaseError:
        backup = backup_path_for(db_path)
        if not backup.exists():
            logger.warning("Database %s is corrupt and no backup exists", db_path)
            return False
        db_path.unlink()
        _atomic_copy(backup, db_path)
        logger.warning("Restored %s from backup", db_path)
        return True
    return False
