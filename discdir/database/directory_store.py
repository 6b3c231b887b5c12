"""
SQLite storage for the discriminator directory.

Four relations are kept: programs, accounts, instructions and discriminators.
Programs and accounts are identity anchors created on first reference. An
instruction row is keyed by program id plus a hash of its hex payload, and a
discriminator row by program id plus its hex bytes, so uploading the same
pair twice updates a single row instead of adding another one.
"""
import asyncio
import functools
import hashlib
import logging
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, List

from ..config import Constants, DATABASE_PATH, DB_TIMEOUT, POOL_SIZE
from ..utils.models.directory import Discriminator, Instruction
from .errors import (
    DatabaseConnectionError,
    DatabaseError,
    DataParsingError,
    InsertionError,
    QueryError,
    TransactionError,
)

logger = logging.getLogger(__name__)

SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS programs (
        id TEXT PRIMARY KEY
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS accounts (
        id TEXT PRIMARY KEY
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS instructions (
        id TEXT PRIMARY KEY,
        instruction_id TEXT NOT NULL,
        instruction_data BLOB NOT NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS discriminators (
        id TEXT PRIMARY KEY,
        discriminator_id TEXT NOT NULL,
        discriminator_data BLOB NOT NULL,
        instruction_id TEXT NOT NULL REFERENCES instructions(id),
        account_id TEXT NOT NULL REFERENCES accounts(id),
        program_id TEXT NOT NULL REFERENCES programs(id)
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_discriminators_program_id ON discriminators(program_id)',
    'CREATE INDEX IF NOT EXISTS idx_discriminators_discriminator_id ON discriminators(discriminator_id)',
]


def _is_busy(error: sqlite3.Error) -> bool:
    """Whether the error is a lock wait that ran out of time."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


class DirectoryStore:
    """
    SQLite-backed discriminator directory.

    Every thread gets its own connection. Coroutines reach the database through
    the *_async methods, which run on a bounded thread pool so that at most
    pool_size connections are in use at once.
    """

    def __init__(self, db_path: str = DATABASE_PATH, pool_size: int = POOL_SIZE, timeout: float = DB_TIMEOUT):
        self.db_path = str(db_path)
        self.timeout = timeout
        self.pool_size = pool_size
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="directory-db")

    def _get_connection(self) -> sqlite3.Connection:
        """Get the calling thread's connection, opening it on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn

        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            # isolation_level=None: transactions are opened explicitly in _transaction()
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Error connecting to SQLite database at {self.db_path}: {e}")
            raise DatabaseConnectionError(f"Unable to open database at {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        self._local.conn = conn
        with self._connections_lock:
            self._connections.append(conn)

        logger.debug(f"Created new SQLite connection in thread {threading.get_ident()}")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """
        Run a block inside one write transaction.

        The transaction is committed when the block completes and rolled back
        when it raises, so either every statement in it is applied or none is.
        """
        conn = self._get_connection()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            if _is_busy(e):
                raise DatabaseConnectionError(f"Database busy, could not begin transaction: {e}") from e
            raise TransactionError(f"Failed to begin transaction: {e}") from e

        try:
            yield conn.cursor()
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            if _is_busy(e):
                raise DatabaseConnectionError(f"Database busy, could not commit transaction: {e}") from e
            raise TransactionError(f"Failed to commit transaction: {e}") from e

    def initialize(self) -> None:
        """
        Create the schema if it doesn't exist.

        This is also the startup connectivity check: it raises
        DatabaseConnectionError when the database cannot be reached.
        """
        try:
            with self._transaction() as cursor:
                for statement in SCHEMA:
                    cursor.execute(statement)
        except TransactionError as e:
            raise DatabaseConnectionError(str(e)) from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to create schema: {e}") from e
        logger.info(f"Directory schema ready at {self.db_path}")

    def close(self) -> None:
        """Shut down the worker pool and close every connection."""
        self._executor.shutdown(wait=True)
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.error(f"Error closing database connection: {e}")
            self._connections.clear()
        self._local = threading.local()

    @staticmethod
    def hash_key(value: str) -> str:
        """SHA-256 hex digest used to key instruction payloads."""
        return hashlib.sha256(value.encode()).hexdigest()

    @staticmethod
    def _execute_write(cursor: sqlite3.Cursor, sql: str, params: tuple, what: str) -> None:
        try:
            cursor.execute(sql, params)
        except sqlite3.Error as e:
            if _is_busy(e):
                raise DatabaseConnectionError(f"Database busy, could not write {what}: {e}") from e
            raise InsertionError(f"Failed to write {what}: {e}") from e

    def _ensure_program(self, cursor: sqlite3.Cursor, program_id: str) -> None:
        self._execute_write(
            cursor,
            "INSERT INTO programs (id) VALUES (?) ON CONFLICT(id) DO NOTHING",
            (program_id,),
            f"program {program_id}",
        )

    def _ensure_account(self, cursor: sqlite3.Cursor, account_id: str) -> None:
        self._execute_write(
            cursor,
            "INSERT INTO accounts (id) VALUES (?) ON CONFLICT(id) DO NOTHING",
            (account_id,),
            f"account {account_id}",
        )

    def _upsert_instruction(self, cursor: sqlite3.Cursor, key: str, instruction_id: str, instruction_data: bytes) -> None:
        self._execute_write(
            cursor,
            '''
            INSERT INTO instructions (id, instruction_id, instruction_data)
            VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                instruction_id = excluded.instruction_id,
                instruction_data = excluded.instruction_data
            ''',
            (key, instruction_id, instruction_data),
            f"instruction {key}",
        )

    def _upsert_discriminator_row(self, cursor: sqlite3.Cursor, key: str, discriminator_id: str,
                                  discriminator_data: bytes, instruction_key: str,
                                  account_id: str, program_id: str) -> None:
        self._execute_write(
            cursor,
            '''
            INSERT INTO discriminators
                (id, discriminator_id, discriminator_data, instruction_id, account_id, program_id)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                discriminator_id = excluded.discriminator_id,
                discriminator_data = excluded.discriminator_data,
                instruction_id = excluded.instruction_id,
                account_id = excluded.account_id
            ''',
            (key, discriminator_id, discriminator_data, instruction_key, account_id, program_id),
            f"discriminator {key}",
        )

    def upsert_discriminator(self, program_id: str, discriminator_data: bytes,
                             instruction_data: bytes, account_id: str) -> None:
        """
        Record a discriminator and its instruction payload for a program.

        Program and account rows are created when missing, and the instruction
        and discriminator rows are inserted or updated, all in one transaction.

        Args:
            program_id: Program the instruction targets
            discriminator_data: The first 8 bytes of the instruction data
            instruction_data: The instruction data after the discriminator
            account_id: Account the upload is attributed to

        Raises:
            DataParsingError: discriminator_data is not exactly 8 bytes
            DatabaseConnectionError: the database stayed locked past the timeout; nothing was written
            InsertionError: a statement failed; nothing was written
            TransactionError: the transaction could not begin or commit
        """
        logger.debug(f"Uploading discriminator for program {program_id}")

        discriminator_data = bytes(discriminator_data)
        instruction_data = bytes(instruction_data)
        if len(discriminator_data) != Constants.DISCRIMINATOR_LENGTH:
            raise DataParsingError(
                f"Invalid discriminator data length: {len(discriminator_data)}, "
                f"expected {Constants.DISCRIMINATOR_LENGTH} bytes"
            )

        discriminator_id = discriminator_data.hex()
        instruction_id = instruction_data.hex()
        discriminator_key = f"{program_id}_{discriminator_id}"
        instruction_key = f"{program_id}_{self.hash_key(instruction_id)}"

        with self._transaction() as cursor:
            self._ensure_program(cursor, program_id)
            self._ensure_account(cursor, account_id)
            self._upsert_instruction(cursor, instruction_key, instruction_id, instruction_data)
            self._upsert_discriminator_row(
                cursor, discriminator_key, discriminator_id, discriminator_data,
                instruction_key, account_id, program_id,
            )

        logger.info(f"Successfully uploaded discriminator {discriminator_id} for program {program_id}")

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = self._get_connection()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            if _is_busy(e):
                raise DatabaseConnectionError(f"Database busy, could not run query: {e}") from e
            raise QueryError(f"Failed to execute query: {e}") from e

    def list_discriminators(self, program_id: str) -> List[Discriminator]:
        """Get every discriminator of a program together with its instruction."""
        logger.debug(f"Querying discriminators for program {program_id}")

        rows = self._query(
            '''
            SELECT d.id, d.discriminator_id, d.discriminator_data, d.program_id, d.account_id,
                   i.id AS instruction_key, i.instruction_id, i.instruction_data
            FROM discriminators d
            JOIN instructions i ON d.instruction_id = i.id
            WHERE d.program_id = ?
            ORDER BY d.id
            ''',
            (program_id,),
        )

        discriminators = [
            Discriminator(
                id=row['id'],
                discriminator_id=row['discriminator_id'],
                discriminator_data=bytes(row['discriminator_data']),
                program_id=row['program_id'],
                account_id=row['account_id'],
                instruction=Instruction(
                    id=row['instruction_key'],
                    instruction_id=row['instruction_id'],
                    instruction_data=bytes(row['instruction_data']),
                ),
            )
            for row in rows
        ]

        logger.info(f"Found {len(discriminators)} discriminators for program {program_id}")
        return discriminators

    def list_program_ids(self) -> List[str]:
        """Get the ids of every program in the directory."""
        rows = self._query("SELECT id FROM programs ORDER BY id")
        program_ids = [row['id'] for row in rows]
        logger.info(f"Retrieved {len(program_ids)} program IDs")
        return program_ids

    def list_instruction_payloads(self, discriminator_id: str) -> List[str]:
        """
        Get the hex payloads recorded under a discriminator hex string.

        The lookup is not scoped to a program: rows of every program sharing
        the discriminator value are returned.
        """
        logger.debug(f"Querying instructions for discriminator {discriminator_id}")

        rows = self._query(
            '''
            SELECT i.instruction_data
            FROM instructions i
            JOIN discriminators d ON i.id = d.instruction_id
            WHERE d.discriminator_id = ?
            ORDER BY d.id
            ''',
            (discriminator_id,),
        )
        payloads = [bytes(row['instruction_data']).hex() for row in rows]

        logger.info(f"Found {len(payloads)} instructions for discriminator {discriminator_id}")
        return payloads

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def initialize_async(self) -> None:
        await self._run(self.initialize)

    async def upsert_discriminator_async(self, program_id: str, discriminator_data: bytes,
                                         instruction_data: bytes, account_id: str) -> None:
        await self._run(self.upsert_discriminator, program_id, discriminator_data, instruction_data, account_id)

    async def list_discriminators_async(self, program_id: str) -> List[Discriminator]:
        return await self._run(self.list_discriminators, program_id)

    async def list_program_ids_async(self) -> List[str]:
        return await self._run(self.list_program_ids)

    async def list_instruction_payloads_async(self, discriminator_id: str) -> List[str]:
        return await self._run(self.list_instruction_payloads, discriminator_id)

