"""
Background listeners that poll tracked programs for new transactions and
record the discriminators found in them.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..config import LISTENER_CONFIG
from ..database.directory_store import DirectoryStore
from ..database.errors import DatabaseError
from ..utils.handlers.discriminator_extractor import extract_discriminators
from ..utils.metrics import (
    discriminators_stored,
    instructions_skipped,
    record_failure,
    signatures_processed,
)
from ..utils.models.transaction import SkippedInstruction
from ..utils.signature_window import SignatureWindow
from ..utils.solana_connection import SolanaConnection
from ..utils.solana_error import TransactionDecodeError, TransportError

# Configure logging
logger = logging.getLogger("discdir.tasks.program_listener")


class ListenerState(Enum):
    """Phase of a listener's polling cycle"""
    POLLING = "polling"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    SLEEPING = "sleeping"


@dataclass
class PollStats:
    """Counters for one polling cycle."""
    signatures: int = 0
    duplicates: int = 0
    fetch_failures: int = 0
    transactions: int = 0
    stored: int = 0
    skipped: int = 0
    failed: int = 0


class ProgramListener:
    """
    Polls one program for recent signatures and stores the discriminators of
    every instruction in transactions it has not processed yet.

    Each instruction is stored under the program it targets, which need not
    be the program being polled.
    """

    def __init__(self, program_id: str, connection: SolanaConnection, store: DirectoryStore,
                 poll_interval: float = LISTENER_CONFIG['poll_interval'],
                 window: Optional[SignatureWindow] = None):
        self.program_id = program_id
        self.connection = connection
        self.store = store
        self.poll_interval = poll_interval
        self.window = window or SignatureWindow(LISTENER_CONFIG['signature_window_size'])
        self.state = ListenerState.POLLING

    async def poll_once(self) -> PollStats:
        """
        Run one polling cycle.

        A failure to list signatures skips the whole cycle; a failure to fetch
        one transaction skips only that signature.
        """
        stats = PollStats()
        self.state = ListenerState.POLLING

        try:
            signatures = await self.connection.get_signatures(self.program_id)
        except TransportError as e:
            logger.error(f"Error fetching transactions for program {self.program_id}: {e}")
            record_failure("signatures", e)
            return stats

        logger.info(f"Fetched {len(signatures)} signatures for program {self.program_id}")

        for signature in signatures:
            stats.signatures += 1
            if signature in self.window:
                stats.duplicates += 1
                continue
            await self.process_signature(signature, stats)

        return stats

    async def process_signature(self, signature: str, stats: PollStats) -> None:
        """Fetch one transaction, store its discriminators and mark it as seen."""
        self.state = ListenerState.FETCHING
        try:
            transaction = await self.connection.get_transaction(signature)
        except TransactionDecodeError as e:
            # Retrying will not make it decodable
            logger.warning(str(e))
            record_failure("decode", e)
            self.window.insert(signature)
            return
        except TransportError as e:
            logger.error(f"Failed to get transaction {signature}: {e}")
            record_failure("transaction", e)
            stats.fetch_failures += 1
            return

        if transaction is None:
            logger.warning(f"Transaction {signature} not available yet")
            stats.fetch_failures += 1
            return

        self.state = ListenerState.EXTRACTING
        logger.debug(f"Processing {len(transaction.instructions)} instructions in transaction {signature}")

        for result in extract_discriminators(transaction):
            if isinstance(result, SkippedInstruction):
                instructions_skipped.labels(reason=result.reason.value).inc()
                stats.skipped += 1
                continue

            self.state = ListenerState.PERSISTING
            try:
                await self.store.upsert_discriminator_async(
                    result.program_id,
                    result.discriminator,
                    result.payload,
                    result.account_id,
                )
            except DatabaseError as e:
                logger.error(f"Failed to store transaction data for {signature}: {e}")
                record_failure("persist", e)
                stats.failed += 1
                continue

            discriminators_stored.labels(source="listener").inc()
            stats.stored += 1
            logger.debug(f"Successfully stored discriminator from transaction {signature}")

        self.window.insert(signature)
        signatures_processed.labels(program_id=self.program_id).inc()
        stats.transactions += 1

    async def run(self) -> None:
        """Poll forever, sleeping poll_interval seconds between cycles."""
        logger.info(f"Starting real-time listener for program {self.program_id}")

        while True:
            try:
                stats = await self.poll_once()
                logger.info(
                    f"Cycle for program {self.program_id} done: {stats.transactions} new transactions, "
                    f"{stats.stored} discriminators stored, {stats.skipped} instructions skipped, "
                    f"{stats.failed} writes failed"
                )
            except Exception as e:
                logger.error(f"Unexpected error in listener for program {self.program_id}: {str(e)}")
                logger.exception(e)
                record_failure("cycle", e)

            self.state = ListenerState.SLEEPING
            logger.debug(f"Waiting before next polling cycle for program {self.program_id}")
            await asyncio.sleep(self.poll_interval)


class ListenerSupervisor:
    """
    Owns one listener task per tracked program.
    """

    def __init__(self, connection: SolanaConnection, store: DirectoryStore,
                 poll_interval: float = LISTENER_CONFIG['poll_interval'],
                 window_size: int = LISTENER_CONFIG['signature_window_size']):
        self.connection = connection
        self.store = store
        self.poll_interval = poll_interval
        self.window_size = window_size
        self.listeners: Dict[str, ProgramListener] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def program_ids(self) -> List[str]:
        return [program_id for program_id, task in self._tasks.items() if not task.done()]

    def start(self, program_ids: Iterable[str]) -> None:
        for program_id in program_ids:
            self.ensure_listener(program_id)
        logger.info(f"Started listeners for {len(self._tasks)} programs")

    def ensure_listener(self, program_id: str) -> bool:
        """
        Start a listener for the program unless one is already running.

        Returns:
            True if a new listener was started
        """
        task = self._tasks.get(program_id)
        if task is not None and not task.done():
            return False

        listener = ProgramListener(
            program_id,
            self.connection,
            self.store,
            poll_interval=self.poll_interval,
            window=SignatureWindow(self.window_size),
        )
        task = asyncio.create_task(listener.run(), name=f"listener:{program_id}")
        task.add_done_callback(self._on_task_done)
        self.listeners[program_id] = listener
        self._tasks[program_id] = task
        logger.info(f"Listener started for program {program_id}")
        return True

    @staticmethod
    def _on_task_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"Listener task {task.get_name()} failed: {task.exception()}")

    async def stop(self) -> None:
        """Cancel every listener and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self.listeners.clear()
        logger.info("All listeners stopped")
