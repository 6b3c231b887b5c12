"""
Tests for the SQLite discriminator directory.
"""

import sqlite3
from unittest.mock import patch

import pytest

from discdir.database.directory_store import DirectoryStore
from discdir.database.errors import (
    DatabaseConnectionError,
    DatabaseError,
    DataParsingError,
    InsertionError,
)

PROGRAM_ID = "Prog111111111111111111111111111111111111111"
DISCRIMINATOR = bytes(range(1, 9))


def count_rows(store, table):
    return store._query(f"SELECT COUNT(*) AS n FROM {table}")[0]['n']


def all_counts(store):
    return {table: count_rows(store, table) for table in ("programs", "accounts", "instructions", "discriminators")}


def test_upsert_creates_all_rows(store):
    store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x0a\x0b", "alice")

    discriminators = store.list_discriminators(PROGRAM_ID)

    assert len(discriminators) == 1
    entry = discriminators[0]
    assert entry.id == f"{PROGRAM_ID}_{DISCRIMINATOR.hex()}"
    assert entry.discriminator_id == "0102030405060708"
    assert entry.discriminator_data == DISCRIMINATOR
    assert entry.account_id == "alice"
    assert entry.program_id == PROGRAM_ID
    assert entry.instruction.instruction_id == "0a0b"
    assert entry.instruction.instruction_data == b"\x0a\x0b"
    assert entry.instruction.id == f"{PROGRAM_ID}_{DirectoryStore.hash_key('0a0b')}"
    assert all_counts(store) == {"programs": 1, "accounts": 1, "instructions": 1, "discriminators": 1}


def test_upsert_is_idempotent(store):
    for _ in range(3):
        store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x0a\x0b", "alice")

    assert all_counts(store) == {"programs": 1, "accounts": 1, "instructions": 1, "discriminators": 1}


def test_reupload_reflects_latest_account_and_payload(store):
    store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x01", "alice")
    store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x02", "bob")

    discriminators = store.list_discriminators(PROGRAM_ID)

    assert len(discriminators) == 1
    assert discriminators[0].account_id == "bob"
    assert discriminators[0].instruction.instruction_data == b"\x02"
    # accounts and instructions are never removed
    assert count_rows(store, "accounts") == 2
    assert count_rows(store, "instructions") == 2


def test_same_discriminator_in_two_programs(store):
    store.upsert_discriminator("ProgA", DISCRIMINATOR, b"\x01", "alice")
    store.upsert_discriminator("ProgB", DISCRIMINATOR, b"\x01", "alice")

    assert len(store.list_discriminators("ProgA")) == 1
    assert len(store.list_discriminators("ProgB")) == 1
    assert count_rows(store, "discriminators") == 2


@pytest.mark.parametrize("length", [0, 7, 9])
def test_wrong_discriminator_length_writes_nothing(store, length):
    with pytest.raises(DataParsingError):
        store.upsert_discriminator(PROGRAM_ID, b"\x01" * length, b"\x0a", "alice")

    assert all_counts(store) == {"programs": 0, "accounts": 0, "instructions": 0, "discriminators": 0}


def test_failed_write_rolls_back_whole_upsert(store):
    with patch.object(DirectoryStore, "_upsert_discriminator_row", side_effect=InsertionError("boom")):
        with pytest.raises(InsertionError):
            store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x0a", "alice")

    assert all_counts(store) == {"programs": 0, "accounts": 0, "instructions": 0, "discriminators": 0}

    # the store stays usable after a rollback
    store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x0a", "alice")
    assert count_rows(store, "discriminators") == 1


def test_list_discriminators_unknown_program(store):
    assert store.list_discriminators("Unknown") == []


def test_list_program_ids(store):
    assert store.list_program_ids() == []

    store.upsert_discriminator("ProgB", DISCRIMINATOR, b"", "alice")
    store.upsert_discriminator("ProgA", DISCRIMINATOR, b"", "alice")
    store.upsert_discriminator("ProgA", bytes(8), b"", "bob")

    assert store.list_program_ids() == ["ProgA", "ProgB"]


def test_instruction_payloads_not_scoped_to_program(store):
    store.upsert_discriminator("ProgA", DISCRIMINATOR, b"\x0a\x0b", "alice")
    store.upsert_discriminator("ProgB", DISCRIMINATOR, b"\x0c", "alice")
    store.upsert_discriminator("ProgB", bytes(8), b"\x0d", "alice")

    payloads = store.list_instruction_payloads(DISCRIMINATOR.hex())

    assert sorted(payloads) == ["0a0b", "0c"]
    assert store.list_instruction_payloads("ffffffffffffffff") == []


def test_data_survives_reopen(db_path):
    first = DirectoryStore(db_path)
    first.initialize()
    first.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"\x0a", "alice")
    first.close()

    second = DirectoryStore(db_path)
    second.initialize()
    try:
        assert second.list_program_ids() == [PROGRAM_ID]
    finally:
        second.close()


def test_unreachable_database(tmp_path):
    blocker = tmp_path / "not_a_directory"
    blocker.write_text("")
    directory_store = DirectoryStore(str(blocker / "directory.db"))

    with pytest.raises(DatabaseConnectionError) as exc_info:
        directory_store.initialize()

    assert isinstance(exc_info.value, DatabaseError)
    directory_store.close()



def test_locked_database_is_a_connection_error(store, db_path):
    holder = sqlite3.connect(db_path, isolation_level=None)
    holder.execute("BEGIN IMMEDIATE")
    busy_store = DirectoryStore(db_path, timeout=0.1)
    try:
        with pytest.raises(DatabaseConnectionError):
            busy_store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"", "alice")

        holder.execute("ROLLBACK")
        busy_store.upsert_discriminator(PROGRAM_ID, DISCRIMINATOR, b"", "alice")
        assert busy_store.list_program_ids() == [PROGRAM_ID]
    finally:
        holder.close()
        busy_store.close()


@pytest.mark.asyncio
async def test_async_wrappers(store):
    await store.upsert_discriminator_async(PROGRAM_ID, DISCRIMINATOR, b"\x0a", "alice")

    assert await store.list_program_ids_async() == [PROGRAM_ID]
    discriminators = await store.list_discriminators_async(PROGRAM_ID)
    assert discriminators[0].account_id == "alice"
    assert await store.list_instruction_payloads_async(DISCRIMINATOR.hex()) == ["0a"]

    with pytest.raises(DataParsingError):
        await store.upsert_discriminator_async(PROGRAM_ID, b"\x01", b"", "alice")
