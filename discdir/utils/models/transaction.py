"""
Models for decoded Solana transactions and the results extracted from them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union


@dataclass(frozen=True)
class CompiledInstruction:
    """An instruction as it appears in a transaction message: indices into the account-key table."""
    program_id_index: int
    accounts: List[int] = field(default_factory=list)
    data: bytes = b""


@dataclass(frozen=True)
class DecodedTransaction:
    """A confirmed transaction reduced to what discriminator extraction needs."""
    signature: str
    account_keys: List[str] = field(default_factory=list)
    instructions: List[CompiledInstruction] = field(default_factory=list)


@dataclass(frozen=True)
class ProgramAccount:
    """An account currently owned by a program."""
    account_id: str
    data: bytes


class SkipReason(Enum):
    """Why an instruction produced no discriminator"""
    MALFORMED_INDEX = "malformed_index"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class ExtractedInstruction:
    """A discriminator/payload pair tagged with the program the instruction targets."""
    index: int
    program_id: str
    discriminator: bytes
    payload: bytes
    account_id: str


@dataclass(frozen=True)
class SkippedInstruction:
    """An instruction that was skipped during extraction."""
    index: int
    reason: SkipReason
    detail: str = ""


ExtractionResult = Union[ExtractedInstruction, SkippedInstruction]
