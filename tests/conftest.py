"""
Pytest configuration for the discriminator directory tests.
"""

from typing import Dict, List, Optional, Union

import pytest

from discdir.database.directory_store import DirectoryStore
from discdir.utils.models.transaction import DecodedTransaction, ProgramAccount

# Register the asyncio marker
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio coroutine"
    )


class FakeConnection:
    """
    In-memory stand-in for SolanaConnection.

    transactions maps a signature to a DecodedTransaction, to None when the
    node does not have it yet, or to an exception the fetch should raise.
    """

    def __init__(self):
        self.signatures: Dict[str, List[str]] = {}
        self.transactions: Dict[str, Union[DecodedTransaction, Exception, None]] = {}
        self.accounts: Dict[str, Union[List[ProgramAccount], Exception]] = {}
        self.signature_error: Optional[Exception] = None
        self.fetched: List[str] = []
        self.closed = False

    async def get_signatures(self, program_id: str) -> List[str]:
        if self.signature_error is not None:
            raise self.signature_error
        return list(self.signatures.get(program_id, []))

    async def get_transaction(self, signature: str) -> Optional[DecodedTransaction]:
        self.fetched.append(signature)
        outcome = self.transactions.get(signature)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def get_program_accounts(self, program_id: str) -> List[ProgramAccount]:
        outcome = self.accounts.get(program_id, [])
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "directory.db")


@pytest.fixture
def store(db_path):
    """An initialized store backed by a temporary SQLite file."""
    directory_store = DirectoryStore(db_path, pool_size=2)
    directory_store.initialize()
    yield directory_store
    directory_store.close()


@pytest.fixture
def fake_connection():
    return FakeConnection()
