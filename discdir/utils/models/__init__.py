"""
Data models for the discriminator directory and the Solana data it is built from.
"""

from .directory import Instruction, Discriminator
from .transaction import (
    CompiledInstruction,
    DecodedTransaction,
    ProgramAccount,
    SkipReason,
    ExtractedInstruction,
    SkippedInstruction,
    ExtractionResult,
)

__all__ = [
    'Instruction',
    'Discriminator',
    'CompiledInstruction',
    'DecodedTransaction',
    'ProgramAccount',
    'SkipReason',
    'ExtractedInstruction',
    'SkippedInstruction',
    'ExtractionResult',
]
