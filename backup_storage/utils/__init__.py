"""
Backup Storage Utilities

Exports utility classes for checksum calculation and retention policy
management.
"""

from .checksum import ChecksumCalculator
from .retention import RetentionPolicy

__all__ = [
    'ChecksumCalculator',
    'RetentionPolicy'
]
