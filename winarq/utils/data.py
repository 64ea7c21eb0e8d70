"""
Test data generation and integrity verification.
"""

import hashlib
from typing import Optional, Tuple

import numpy as np


class TestDataGenerator:
    """
    Generates payloads for simulated and loopback transfers.
    """

    __test__ = False  # not a pytest test class

    @staticmethod
    def generate_test_data(size: int, pattern: str = "random", seed: Optional[int] = None) -> bytes:
        """
        Generate test data of specified size.

        Args:
            size: Size in bytes
            pattern: Pattern type ("random", "sequential", "zeros")
            seed: Random seed for the "random" pattern

        Returns:
            Generated data
        """
        if pattern == "random":
            rng = np.random.default_rng(seed)
            return rng.integers(0, 256, size=size, dtype=np.uint8).tobytes()
        elif pattern == "sequential":
            return (np.arange(size, dtype=np.uint32) % 256).astype(np.uint8).tobytes()
        elif pattern == "zeros":
            return bytes(size)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")


class DataVerifier:
    """
    Utility for verifying data integrity.
    """

    @staticmethod
    def calculate_checksum(data: bytes) -> str:
        """Calculate SHA-256 checksum of data."""
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def verify_data(original: bytes, received: bytes) -> Tuple[bool, dict]:
        """
        Verify received data against original.

        Args:
            original: Original data
            received: Received data

        Returns:
            Tuple of (match, details)
        """
        size_match = len(original) == len(received)
        content_match = size_match and original == received

        # Find first mismatch if any
        first_mismatch = -1
        if not content_match:
            min_len = min(len(original), len(received))
            a = np.frombuffer(original[:min_len], dtype=np.uint8)
            b = np.frombuffer(received[:min_len], dtype=np.uint8)
            diff = np.flatnonzero(a != b)
            first_mismatch = int(diff[0]) if diff.size else min_len

        details = {
            'size_match': size_match,
            'content_match': content_match,
            'original_size': len(original),
            'received_size': len(received),
            'original_checksum': DataVerifier.calculate_checksum(original),
            'received_checksum': DataVerifier.calculate_checksum(received),
            'first_mismatch_byte': first_mismatch
        }

        return content_match, details
