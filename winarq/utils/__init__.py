"""
Utilities package - Helper functions and classes.

Contains implementations for:
- Metrics calculation (Goodput, efficiency)
- Logging utilities
- Test data generation and verification
"""

from .metrics import MetricsCollector
from .logger import TransferLogger, LogLevel, get_logger, set_logger
from .data import TestDataGenerator, DataVerifier

__all__ = [
    'MetricsCollector',
    'TransferLogger',
    'LogLevel',
    'get_logger',
    'set_logger',
    'TestDataGenerator',
    'DataVerifier'
]
