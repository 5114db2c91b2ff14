"""SQLite connection helpers shared by the metadata store and the ledger."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from trendledger.errors import StorageError
from trendledger.logger import get_logger

logger = get_logger(__name__)

BUSY_TIMEOUT_SECONDS = 30.0


def connect(db_path: Path) -> sqlite3.Connection:
    """Open an autocommit connection. Transactions are opened explicitly."""
    try:
        return sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None)
    except sqlite3.Error as e:
        logger.error(f"Could not open database {db_path}: {e}", exc_info=True)
        raise StorageError("Storage unavailable") from e


@contextmanager
def transaction(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Run a block inside a single ``BEGIN IMMEDIATE`` transaction.

    The write lock is taken up front, so a read-modify-write inside the block
    cannot interleave with another writer. Any sqlite error rolls back and is
    re-raised as StorageError.
    """
    conn = connect(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.execute("COMMIT")
    except sqlite3.Error as e:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        logger.error(f"Database transaction failed: {e}", exc_info=True)
        raise StorageError("Storage failure") from e
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


@contextmanager
def read_only(db_path: Path) -> Iterator[sqlite3.Connection]:
    """Open a connection for plain reads."""
    conn = connect(db_path)
    try:
        yield conn
    except sqlite3.Error as e:
        logger.error(f"Database read failed: {e}", exc_info=True)
        raise StorageError("Storage failure") from e
    finally:
        conn.close()
