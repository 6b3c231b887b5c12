"""
Models for the entities stored in the discriminator directory.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class Instruction:
    """Instruction payload, i.e. the instruction data after its discriminator."""
    id: str
    instruction_id: str
    instruction_data: bytes

    def to_dict(self) -> Dict[str, Any]:
        """Convert instruction to dictionary."""
        return {
            "id": self.id,
            "instruction_id": self.instruction_id,
            "instruction_data": list(self.instruction_data),
        }


@dataclass
class Discriminator:
    """An 8-byte discriminator of a program joined with its latest instruction."""
    id: str
    discriminator_id: str
    discriminator_data: bytes
    instruction: Instruction
    account_id: str
    program_id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert discriminator to dictionary."""
        return {
            "id": self.id,
            "discriminator_id": self.discriminator_id,
            "discriminator_data": list(self.discriminator_data),
            "instruction": self.instruction.to_dict(),
            # the web frontend reads the attributed account as user_id
            "user_id": self.account_id,
            "program_id": self.program_id,
        }
