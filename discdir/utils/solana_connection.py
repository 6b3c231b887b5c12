"""
Access to the Solana ledger: recent signatures of a program, decoded
transactions, and the accounts a program currently owns.
"""

import logging
from typing import Any, List, Optional

import httpx
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from ..config import Constants, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT, SIGNATURES_LIMIT, SOLANA_RPC_URL
from .models.transaction import CompiledInstruction, DecodedTransaction, ProgramAccount
from .solana_error import (
    InvalidAddressError,
    RateLimitError,
    RetryableError,
    TimeoutError,
    TransactionDecodeError,
    TransportError,
)

logger = logging.getLogger(__name__)

COMMITMENT = Commitment(Constants.COMMITMENT)

rpc_retry = retry(
    stop=stop_after_attempt(DEFAULT_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(RetryableError),
    before_sleep=before_sleep_log(logger, logging.INFO),
    reraise=True,
)


def _error_chain(error: BaseException) -> List[BaseException]:
    """The error followed by its causes; solana-py wraps transport errors in SolanaRpcException."""
    chain = []
    current: Optional[BaseException] = error
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def _status_code(error: BaseException) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def _is_timeout(error: BaseException) -> bool:
    # httpx2 timeout types are not httpx subclasses
    return isinstance(error, httpx.TimeoutException) or "Timeout" in type(error).__name__


def handle_rpc_error(error: Exception, context: str) -> TransportError:
    """Map an exception raised by the RPC client to a TransportError subclass."""
    chain = _error_chain(error)

    for exc in chain:
        error_msg = str(exc).lower()
        if _status_code(exc) == 429 or "429" in error_msg or "rate limit" in error_msg:
            return RateLimitError(f"Rate limit exceeded: {context}")

    for exc in chain:
        error_msg = str(exc).lower()
        if _is_timeout(exc) or "timeout" in error_msg or "timed out" in error_msg:
            return TimeoutError(f"Timeout: {context}")

    return TransportError(f"RPC error in {context}: {error}")


def parse_pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid program ID {address}: {e}") from e


def parse_signature(signature: str) -> Signature:
    try:
        return Signature.from_string(signature)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid signature {signature}: {e}") from e


def decode_transaction(signature: str, confirmed: Any) -> DecodedTransaction:
    """
    Reduce a getTransaction result to its account keys and compiled instructions.

    Only keys stored in the message itself are resolved; addresses loaded from
    lookup tables are not part of the account-key table.

    Args:
        signature: Signature the transaction was fetched by
        confirmed: EncodedConfirmedTransactionWithStatusMeta fetched with base64 encoding

    Raises:
        TransactionDecodeError: the transaction is not a binary-encoded transaction
    """
    encoded = confirmed.transaction.transaction
    if not isinstance(encoded, VersionedTransaction):
        raise TransactionDecodeError(f"Could not decode transaction {signature}")

    message = encoded.message
    return DecodedTransaction(
        signature=signature,
        account_keys=[str(key) for key in message.account_keys],
        instructions=[
            CompiledInstruction(
                program_id_index=instruction.program_id_index,
                accounts=list(instruction.accounts),
                data=bytes(instruction.data),
            )
            for instruction in message.instructions
        ],
    )


class SolanaConnection:
    """
    Client for the ledger queries ingestion needs, at confirmed commitment.

    Retryable failures (rate limits, timeouts) are retried with exponential
    backoff; anything that still fails is raised as a TransportError.
    """

    def __init__(self, endpoint: str = SOLANA_RPC_URL, timeout: float = DEFAULT_TIMEOUT,
                 signatures_limit: int = SIGNATURES_LIMIT, client: Optional[AsyncClient] = None):
        self.endpoint = endpoint
        self.signatures_limit = signatures_limit
        self.client = client or AsyncClient(endpoint, commitment=COMMITMENT, timeout=timeout)
        logger.info(f"Connected to Solana node at {endpoint}")

    async def close(self) -> None:
        await self.client.close()

    @rpc_retry
    async def get_signatures(self, program_id: str) -> List[str]:
        """Get the most recent confirmed transaction signatures involving a program."""
        pubkey = parse_pubkey(program_id)
        logger.debug(f"Fetching signatures for program {program_id}")
        try:
            response = await self.client.get_signatures_for_address(
                pubkey, limit=self.signatures_limit, commitment=COMMITMENT
            )
        except Exception as e:
            raise handle_rpc_error(e, f"get_signatures_for_address({program_id})") from e

        signatures = [str(status.signature) for status in response.value]
        logger.info(f"Retrieved {len(signatures)} transaction signatures for program {program_id}")
        return signatures

    @rpc_retry
    async def get_transaction(self, signature: str) -> Optional[DecodedTransaction]:
        """
        Fetch and decode a transaction.

        Returns None when the node does not know the transaction.

        Raises:
            TransactionDecodeError: the transaction came back in a form that cannot be decoded
        """
        tx_signature = parse_signature(signature)
        try:
            response = await self.client.get_transaction(
                tx_signature,
                encoding="base64",
                commitment=COMMITMENT,
                max_supported_transaction_version=0,
            )
        except Exception as e:
            raise handle_rpc_error(e, f"get_transaction({signature})") from e

        if response.value is None:
            logger.debug(f"Transaction {signature} not found")
            return None
        return decode_transaction(signature, response.value)

    @rpc_retry
    async def get_program_accounts(self, program_id: str) -> List[ProgramAccount]:
        """Get every account currently owned by a program, with its raw data."""
        pubkey = parse_pubkey(program_id)
        logger.debug(f"Fetching program accounts for program {program_id}")
        try:
            response = await self.client.get_program_accounts(pubkey, commitment=COMMITMENT, encoding="base64")
        except Exception as e:
            raise handle_rpc_error(e, f"get_program_accounts({program_id})") from e

        accounts = [
            ProgramAccount(account_id=str(keyed.pubkey), data=bytes(keyed.account.data))
            for keyed in response.value
        ]
        logger.info(f"Successfully fetched {len(accounts)} accounts for program {program_id}")
        return accounts
