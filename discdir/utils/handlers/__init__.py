"""
Handlers for turning Solana data into directory entries.
"""

from .discriminator_extractor import extract_discriminators, split_discriminator

__all__ = [
    'extract_discriminators',
    'split_discriminator',
]
