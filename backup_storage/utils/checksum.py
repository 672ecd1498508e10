"""
Checksums for Backup Files

Backup files are hashed while they stream through the backup manager, so the
calculator hands out incremental hash objects as well as one-shot helpers
for whole files and in-memory buffers.
"""

import hashlib
import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..models.entities import ChecksumAlgorithm

logger = logging.getLogger(__name__)

_HASH_FACTORIES: Dict[ChecksumAlgorithm, Callable] = {
    ChecksumAlgorithm.SHA256: hashlib.sha256,
    ChecksumAlgorithm.MD5: hashlib.md5,
    ChecksumAlgorithm.BLAKE2B: hashlib.blake2b,
}


def checksums_match(expected: str, actual: str) -> bool:
    """Compare two hex digests, ignoring case."""
    return expected.lower() == actual.lower()


class ChecksumCalculator:
    """
    Hex-digest checksums with a fixed algorithm.

    Example:
        ```python
        calculator = ChecksumCalculator(ChecksumAlgorithm.SHA256)

        hash_func = calculator.new_hash()
        async for chunk in reader:
            hash_func.update(chunk)
        digest = hash_func.hexdigest()
        ```
    """

    # Read size used by calculate_file_checksum (1 MB)
    BUFFER_SIZE = 1024 * 1024

    def __init__(self, algorithm: ChecksumAlgorithm = ChecksumAlgorithm.SHA256):
        if algorithm not in _HASH_FACTORIES:
            raise ValueError(f"Unsupported checksum algorithm: {algorithm}")
        self.algorithm = algorithm

    def new_hash(self):
        """Fresh incremental hash object for the configured algorithm."""
        return _HASH_FACTORIES[self.algorithm]()

    def calculate_file_checksum(
        self,
        file_path: Union[str, Path],
        buffer_size: Optional[int] = None
    ) -> str:
        """
        Hash a file without loading it into memory.

        Raises:
            OSError: If the file cannot be read
        """
        hash_func = self.new_hash()
        with open(file_path, "rb") as f:
            for block in iter(lambda: f.read(buffer_size or self.BUFFER_SIZE), b""):
                hash_func.update(block)
        return hash_func.hexdigest()

    def calculate_data_checksum(self, data: bytes) -> str:
        hash_func = self.new_hash()
        hash_func.update(data)
        return hash_func.hexdigest()

    def verify_data_checksum(self, data: bytes, expected_checksum: str) -> bool:
        """True if data hashes to expected_checksum."""
        actual = self.calculate_data_checksum(data)
        if not checksums_match(expected_checksum, actual):
            logger.warning(
                f"{self.algorithm.value} mismatch: expected {expected_checksum[:16]}..., got {actual[:16]}..."
            )
            return False
        return True
