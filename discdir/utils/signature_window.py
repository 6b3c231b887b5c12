"""
Bounded record of transaction signatures a listener has already processed.
"""

from typing import Set


class SignatureWindow:
    """
    Set of seen transaction signatures that is cleared entirely once it grows
    past max_size. A signature may be processed again after a reset; the
    directory upsert is idempotent so this only costs a repeated write.
    """

    def __init__(self, max_size: int = 1000):
        self.max_size = max_size
        self._signatures: Set[str] = set()
        self.resets = 0

    def contains(self, signature: str) -> bool:
        return signature in self._signatures

    def insert(self, signature: str) -> None:
        self._signatures.add(signature)
        if len(self._signatures) > self.max_size:
            self._signatures.clear()
            self.resets += 1

    def __contains__(self, signature: str) -> bool:
        return self.contains(signature)

    def __len__(self) -> int:
        return len(self._signatures)
