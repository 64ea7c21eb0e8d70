"""
Transfer Logger

This module provides logging utilities for the sender and receiver,
with configurable verbosity levels and category-tagged output.
"""

from typing import Optional, TextIO
from datetime import datetime
from enum import IntEnum
import os
import sys

from winarq.config import DEFAULT_LOG_LEVEL


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4


class TransferLogger:
    """
    Logger for transfer events.

    Writes to stderr so that a program's stdout carries only its result.

    Attributes:
        name: Logger name
        level: Minimum log level
        file: Optional file for logging
    """

    # Color codes for terminal output
    COLORS = {
        LogLevel.DEBUG: '\033[36m',     # Cyan
        LogLevel.INFO: '\033[32m',      # Green
        LogLevel.WARNING: '\033[33m',   # Yellow
        LogLevel.ERROR: '\033[31m',     # Red
        LogLevel.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(
        self,
        name: str = "winarq",
        level: int = DEFAULT_LOG_LEVEL,
        log_file: Optional[str] = None,
        use_colors: Optional[bool] = None,
        include_timestamp: bool = True,
        stream: Optional[TextIO] = None
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Minimum log level
            log_file: Optional file path for logging
            use_colors: Use ANSI colors (default: only when stream is a tty)
            include_timestamp: Include timestamps in log messages
            stream: Output stream (default: sys.stderr at write time)
        """
        self.name = name
        self.level = level
        self.stream = stream
        self.include_timestamp = include_timestamp
        if use_colors is None:
            out = stream or sys.stderr
            use_colors = hasattr(out, 'isatty') and out.isatty()
        self.use_colors = use_colors

        self.file: Optional[TextIO] = None
        if log_file:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.file = open(log_file, 'w')

        # Simulated clock, set by the simulator
        self.sim_time: Optional[float] = None

        self.message_counts = {level: 0 for level in LogLevel}

    def set_sim_time(self, time: float):
        """Set current simulation time for log messages."""
        self.sim_time = time

    def set_level(self, level: int):
        """Set minimum log level."""
        self.level = level

    def _format_message(
        self,
        level: LogLevel,
        message: str,
        category: Optional[str] = None
    ) -> str:
        """Format a log message."""
        parts = []

        if self.include_timestamp:
            if self.sim_time is not None:
                parts.append(f"[{self.sim_time:10.6f}s]")
            else:
                parts.append(f"[{datetime.now().strftime('%H:%M:%S.%f')[:-3]}]")

        level_str = level.name.ljust(8)
        if self.use_colors:
            level_str = f"{self.COLORS[level]}{level_str}{self.RESET}"
        parts.append(level_str)

        parts.append(f"[{self.name}]")

        if category:
            parts.append(f"[{category}]")

        parts.append(message)

        return " ".join(parts)

    def _log(
        self,
        level: LogLevel,
        message: str,
        category: Optional[str] = None
    ):
        """Log a message."""
        if level < self.level:
            return

        self.message_counts[level] += 1
        formatted = self._format_message(level, message, category)

        print(formatted, file=self.stream or sys.stderr)

        if self.file:
            # Strip color codes for file
            clean = formatted
            for color in self.COLORS.values():
                clean = clean.replace(color, '')
            clean = clean.replace(self.RESET, '')
            self.file.write(clean + '\n')
            self.file.flush()

    def debug(self, message: str, category: Optional[str] = None):
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, category)

    def info(self, message: str, category: Optional[str] = None):
        """Log info message."""
        self._log(LogLevel.INFO, message, category)

    def warning(self, message: str, category: Optional[str] = None):
        """Log warning message."""
        self._log(LogLevel.WARNING, message, category)

    def error(self, message: str, category: Optional[str] = None):
        """Log error message."""
        self._log(LogLevel.ERROR, message, category)

    def critical(self, message: str, category: Optional[str] = None):
        """Log critical message."""
        self._log(LogLevel.CRITICAL, message, category)

    # Convenience methods for transfer events
    def packet_sent(self, seq_num: int, size: int, is_last: bool = False):
        """Log packet sent event."""
        flag = " EOS" if is_last else ""
        self.debug(f"Packet {seq_num} sent, size={size}B{flag}", "TX")

    def packet_received(self, seq_num: int, verdict: str):
        """Log packet received event."""
        self.debug(f"Packet {seq_num} received, {verdict}", "RX")

    def ack_sent(self, ack_num: int):
        """Log ACK sent event."""
        self.debug(f"ACK {ack_num} sent", "ACK")

    def ack_received(self, ack_num: int, verdict: str):
        """Log ACK received event."""
        self.debug(f"ACK {ack_num} received, {verdict}", "ACK")

    def timeout(self, silent_attempts: int, limit: int):
        """Log ack-collection timeout."""
        level = LogLevel.WARNING if silent_attempts > limit // 2 else LogLevel.DEBUG
        self._log(level, f"No ACKs, silent attempt {silent_attempts}/{limit}", "TIMEOUT")

    def retransmit(self, seq_num: int):
        """Log retransmission event."""
        self.debug(f"Retransmitting packet {seq_num}", "RETX")

    def window_advance(self, base: int, size: int):
        """Log window update."""
        self.debug(f"Window: base={base}, size={size}", "WINDOW")

    def progress(self, bytes_done: int, total_bytes: Optional[int] = None):
        """Log transfer progress."""
        if total_bytes:
            pct = bytes_done / total_bytes * 100
            self.info(f"Progress: {bytes_done}/{total_bytes} bytes ({pct:.1f}%)", "PROGRESS")
        else:
            self.info(f"Progress: {bytes_done} bytes", "PROGRESS")

    def transfer_start(self, params: dict):
        """Log transfer start."""
        param_str = ", ".join(f"{k}={v}" for k, v in params.items())
        self.info(f"Transfer started: {param_str}", "XFER")

    def transfer_end(self, stats: dict):
        """Log transfer end."""
        self.info(f"Transfer ended: {stats.get('bytes_transferred', 0)} bytes", "XFER")

    def get_summary(self) -> dict:
        """Get logging summary."""
        return {
            'message_counts': dict(self.message_counts),
            'total_messages': sum(self.message_counts.values())
        }

    def close(self):
        """Close log file if open."""
        if self.file:
            self.file.close()
            self.file = None

    def __del__(self):
        """Cleanup on deletion."""
        self.close()


# Global logger instance
_global_logger: Optional[TransferLogger] = None


def get_logger() -> TransferLogger:
    """Get global logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = TransferLogger()
    return _global_logger


def set_logger(logger: TransferLogger):
    """Set global logger instance."""
    global _global_logger
    _global_logger = logger
