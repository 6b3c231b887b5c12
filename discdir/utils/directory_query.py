"""
Read and upload operations on the discriminator directory, including the
backfill from current program accounts when a program has no entries yet.
"""

import logging
from typing import Callable, List, Optional

from ..database.directory_store import DirectoryStore
from .handlers.discriminator_extractor import split_discriminator
from .metrics import discriminators_stored
from .models.directory import Discriminator
from .solana_connection import SolanaConnection

logger = logging.getLogger(__name__)


class DiscriminatorsNotFoundError(Exception):
    """Raised when a program has no entries and none could be backfilled."""
    pass


class DirectoryQueryHandler:
    """
    Serves directory lookups for the HTTP layer.

    Store and transport errors are raised to the caller instead of being
    logged and skipped as the listeners do.
    """

    def __init__(self, store: DirectoryStore, connection: SolanaConnection,
                 on_program_backfilled: Optional[Callable[[str], object]] = None):
        self.store = store
        self.connection = connection
        self.on_program_backfilled = on_program_backfilled

    async def query_discriminators(self, program_id: str) -> List[Discriminator]:
        """
        Get the discriminators of a program, backfilling from its accounts when
        the directory has none.

        Raises:
            DiscriminatorsNotFoundError: no stored entries and no account carried a discriminator
            DatabaseError: the store failed
            TransportError: the accounts could not be fetched
        """
        discriminators = await self.store.list_discriminators_async(program_id)
        if discriminators:
            return discriminators

        logger.info(f"No discriminators stored for program {program_id}, backfilling from program accounts")
        uploaded = await self.backfill(program_id)
        if not uploaded:
            raise DiscriminatorsNotFoundError(f"No discriminators found in accounts of program {program_id}")

        if self.on_program_backfilled is not None:
            self.on_program_backfilled(program_id)

        return await self.store.list_discriminators_async(program_id)

    async def backfill(self, program_id: str) -> int:
        """
        Store a discriminator for every account of the program whose data holds one.

        Each entry is attributed to the account it was read from.

        Returns:
            Number of discriminators written
        """
        accounts = await self.connection.get_program_accounts(program_id)

        uploaded = 0
        for account in accounts:
            parts = split_discriminator(account.data)
            if parts is None:
                continue
            discriminator_data, instruction_data = parts

            await self.store.upsert_discriminator_async(
                program_id, discriminator_data, instruction_data, account.account_id
            )
            discriminators_stored.labels(source="backfill").inc()
            uploaded += 1

        logger.info(f"Backfilled {uploaded} of {len(accounts)} accounts for program {program_id}")
        return uploaded

    async def upload_discriminator(self, program_id: str, discriminator_data: bytes,
                                   instruction_data: bytes, account_id: str) -> None:
        logger.info(f"Uploading discriminator for program_id: {program_id}")
        await self.store.upsert_discriminator_async(program_id, discriminator_data, instruction_data, account_id)
        discriminators_stored.labels(source="upload").inc()

    async def query_instructions(self, discriminator_id: str) -> List[str]:
        logger.info(f"Querying instructions for discriminator_id: {discriminator_id}")
        return await self.store.list_instruction_payloads_async(discriminator_id)
