"""
Tests for directory lookups and the backfill from program accounts.
"""

from unittest.mock import MagicMock

import pytest

from discdir.utils.directory_query import DirectoryQueryHandler, DiscriminatorsNotFoundError
from discdir.utils.models.transaction import ProgramAccount
from discdir.utils.solana_error import TransportError

PROGRAM_ID = "ProgBackfill"


@pytest.fixture
def on_backfilled():
    return MagicMock()


@pytest.fixture
def handler(store, fake_connection, on_backfilled):
    return DirectoryQueryHandler(store, fake_connection, on_program_backfilled=on_backfilled)


@pytest.mark.asyncio
async def test_backfill_when_directory_is_empty(handler, fake_connection, on_backfilled):
    fake_connection.accounts[PROGRAM_ID] = [
        ProgramAccount(account_id="Acct1", data=bytes(range(10))),
        ProgramAccount(account_id="Acct2", data=bytes(4)),
    ]

    discriminators = await handler.query_discriminators(PROGRAM_ID)

    assert len(discriminators) == 1
    entry = discriminators[0]
    assert entry.discriminator_data == bytes(range(8))
    assert entry.instruction.instruction_data == b"\x08\x09"
    assert entry.account_id == "Acct1"
    assert entry.program_id == PROGRAM_ID
    on_backfilled.assert_called_once_with(PROGRAM_ID)


@pytest.mark.asyncio
async def test_stored_entries_skip_backfill(handler, store, fake_connection, on_backfilled):
    store.upsert_discriminator(PROGRAM_ID, bytes(8), b"\x01", "alice")
    fake_connection.accounts[PROGRAM_ID] = TransportError("should not be called")

    discriminators = await handler.query_discriminators(PROGRAM_ID)

    assert [d.account_id for d in discriminators] == ["alice"]
    on_backfilled.assert_not_called()


@pytest.mark.asyncio
async def test_not_found_when_no_account_has_a_discriminator(handler, fake_connection, on_backfilled):
    fake_connection.accounts[PROGRAM_ID] = [ProgramAccount(account_id="Acct1", data=b"\x01\x02")]

    with pytest.raises(DiscriminatorsNotFoundError):
        await handler.query_discriminators(PROGRAM_ID)

    on_backfilled.assert_not_called()


@pytest.mark.asyncio
async def test_transport_error_propagates(handler, fake_connection, store):
    fake_connection.accounts[PROGRAM_ID] = TransportError("RPC error in get_program_accounts")

    with pytest.raises(TransportError):
        await handler.query_discriminators(PROGRAM_ID)

    assert store.list_program_ids() == []


@pytest.mark.asyncio
async def test_backfill_counts_uploads(handler, fake_connection):
    fake_connection.accounts[PROGRAM_ID] = [
        ProgramAccount(account_id=f"Acct{i}", data=bytes([i]) * 9) for i in range(3)
    ]

    assert await handler.backfill(PROGRAM_ID) == 3


@pytest.mark.asyncio
async def test_upload_and_query_instructions(handler):
    await handler.upload_discriminator(PROGRAM_ID, bytes(range(8)), b"\xde\xad", "alice")

    assert await handler.query_instructions(bytes(range(8)).hex()) == ["dead"]
