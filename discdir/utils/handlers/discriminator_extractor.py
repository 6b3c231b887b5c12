"""
Extraction of 8-byte discriminators and their payloads from decoded transactions.
"""

import logging
from typing import Iterator, Optional, Sequence, Tuple

from ...config import Constants
from ..models.transaction import (
    CompiledInstruction,
    DecodedTransaction,
    ExtractedInstruction,
    ExtractionResult,
    SkippedInstruction,
    SkipReason,
)

logger = logging.getLogger(__name__)


def split_discriminator(data: bytes) -> Optional[Tuple[bytes, bytes]]:
    """
    Split raw instruction or account data into (discriminator, payload).

    Returns None when the data is too short to carry a discriminator.
    """
    if len(data) < Constants.DISCRIMINATOR_LENGTH:
        return None
    return bytes(data[:Constants.DISCRIMINATOR_LENGTH]), bytes(data[Constants.DISCRIMINATOR_LENGTH:])


def _resolve_key(account_keys: Sequence[str], index: int) -> Optional[str]:
    if 0 <= index < len(account_keys):
        return account_keys[index]
    return None


def _extract_one(index: int, instruction: CompiledInstruction, transaction: DecodedTransaction) -> ExtractionResult:
    program_id = _resolve_key(transaction.account_keys, instruction.program_id_index)
    if program_id is None:
        return SkippedInstruction(
            index=index,
            reason=SkipReason.MALFORMED_INDEX,
            detail=f"program id index {instruction.program_id_index} outside {len(transaction.account_keys)} account keys",
        )

    parts = split_discriminator(instruction.data)
    if parts is None:
        return SkippedInstruction(
            index=index,
            reason=SkipReason.INSUFFICIENT_DATA,
            detail=f"{len(instruction.data)} bytes of instruction data",
        )
    discriminator, payload = parts

    # Attribute to the first referenced account, falling back to the signature
    account_id = None
    if instruction.accounts:
        account_id = _resolve_key(transaction.account_keys, instruction.accounts[0])
    if account_id is None:
        account_id = transaction.signature

    return ExtractedInstruction(
        index=index,
        program_id=program_id,
        discriminator=discriminator,
        payload=payload,
        account_id=account_id,
    )


def extract_discriminators(transaction: DecodedTransaction) -> Iterator[ExtractionResult]:
    """
    Yield one extraction result per instruction of the transaction, in order.

    Instructions with an out-of-range program id index or fewer than 8 bytes of
    data are reported as SkippedInstruction; they never raise.

    Args:
        transaction: The decoded transaction

    Yields:
        ExtractedInstruction or SkippedInstruction
    """
    for index, instruction in enumerate(transaction.instructions):
        result = _extract_one(index, instruction, transaction)
        if isinstance(result, SkippedInstruction):
            logger.debug(
                f"Skipping instruction {index} in transaction {transaction.signature}: "
                f"{result.reason.value} ({result.detail})"
            )
        yield result
