import sqlite3

import pytest

from one_time_share.core.infrastructure.storage.sqlite_adapter import transaction


@pytest.fixture
def rollback_journal_db(tmp_path):
    # rollback journal: an open reader blocks the writer's COMMIT
    path = str(tmp_path / "journal.sqlite3")
    writer = sqlite3.connect(path, isolation_level=None, timeout=0.05, check_same_thread=False)
    writer.execute("PRAGMA journal_mode=DELETE")
    writer.execute("CREATE TABLE items (v INTEGER)")
    reader = sqlite3.connect(path, isolation_level=None, timeout=0.05)
    yield writer, reader
    reader.close()
    writer.close()


def test_block_error_rolls_back(rollback_journal_db):
    writer, _ = rollback_journal_db
    with pytest.raises(RuntimeError):
        with transaction(writer) as cur:
            cur.execute("INSERT INTO items (v) VALUES (1)")
            raise RuntimeError("boom")
    assert not writer.in_transaction
    assert writer.execute("SELECT COUNT(*) FROM items").fetchone() == (0,)


def test_failed_commit_does_not_leave_transaction_open(rollback_journal_db):
    writer, reader = rollback_journal_db

    reader.execute("BEGIN")
    reader.execute("SELECT COUNT(*) FROM items").fetchone()

    with pytest.raises(sqlite3.OperationalError):
        with transaction(writer) as cur:
            cur.execute("INSERT INTO items (v) VALUES (1)")
    assert not writer.in_transaction

    reader.execute("COMMIT")

    # the shared connection stays usable after the lock is gone
    with transaction(writer) as cur:
        cur.execute("INSERT INTO items (v) VALUES (2)")
    assert writer.execute("SELECT v FROM items").fetchall() == [(2,)]
