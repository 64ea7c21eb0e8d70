"""
Configuration for the windowed Selective Repeat file transfer.

Holds the wire constants shared by sender and receiver, the defaults for
the simulated channel and the loss sweep, and the validated ArqConfig
used by both engines.
"""

import os
from dataclasses import dataclass

# =============================================================================
# WIRE FORMAT
# =============================================================================

HEADER_SIZE = 2      # seq (1 byte) + end-of-stream flag (1 byte)
DATA_SIZE = 500      # payload bytes per packet
PACKET_SIZE = HEADER_SIZE + DATA_SIZE
ACK_SIZE = 1         # echoed sequence number

SEQ_MODULUS = 256    # sequence numbers travel in one byte

# =============================================================================
# WINDOW AND RETRANSMISSION
# =============================================================================

WINDOW_SIZE = 10

# Per-attempt ack wait (seconds)
ACK_TIMEOUT = 0.100

# Consecutive silent attempts tolerated: 100 * 100 ms = 10 s
MAX_SILENT_ATTEMPTS = 100

# Window base cadence: 0, 10, ..., 100, 0, ...
MAX_START_SEQ = 100

# Quiet period the receiver keeps acknowledging after the last window
LINGER_TIMEOUT = 0.5

# =============================================================================
# ADDRESSING
# =============================================================================

SERVER_ADDR = "127.0.0.1"
LISTEN_ADDR = "0.0.0.0"
RECV_BUFFER_SIZE = 65535

# =============================================================================
# SIMULATED CHANNEL (Gilbert-Elliott packet loss)
# =============================================================================

GOOD_STATE_LOSS = 0.01   # packet loss probability in Good state
BAD_STATE_LOSS = 0.5     # packet loss probability in Bad state
P_GOOD_TO_BAD = 0.02     # P(G -> B) per packet
P_BAD_TO_GOOD = 0.25     # P(B -> G) per packet

# =============================================================================
# LOSS SWEEP
# =============================================================================

LOSS_RATES = [0.0, 0.05, 0.1, 0.2, 0.3]
RUNS_PER_CONFIGURATION = 5
SWEEP_DATA_SIZE = 64 * 1024
RNG_SEED_BASE = 42

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL_DEBUG = 0
LOG_LEVEL_INFO = 1
LOG_LEVEL_WARNING = 2
LOG_LEVEL_ERROR = 3

DEFAULT_LOG_LEVEL = LOG_LEVEL_WARNING

# =============================================================================
# OUTPUT PATHS
# =============================================================================

OUTPUT_DIR = os.path.join(os.getcwd(), "output")
RESULTS_CSV = os.path.join(OUTPUT_DIR, "sweep_results.csv")


@dataclass
class ArqConfig:
    """
    Protocol parameters shared by the sending and receiving engines.

    Both peers must run with the same window_size, data_size and
    max_start_seq, otherwise their window bases drift apart.

    Attributes:
        window_size: Packets per window (W)
        data_size: Maximum payload bytes per packet
        ack_timeout: Sender wait per ack-collection attempt, in seconds
        max_silent_attempts: Consecutive silent attempts before giving up
        max_start_seq: Last window base before wrapping back to 0
        linger_timeout: Receiver quiet period after completion, in seconds
    """

    window_size: int = WINDOW_SIZE
    data_size: int = DATA_SIZE
    ack_timeout: float = ACK_TIMEOUT
    max_silent_attempts: int = MAX_SILENT_ATTEMPTS
    max_start_seq: int = MAX_START_SEQ
    linger_timeout: float = LINGER_TIMEOUT

    def __post_init__(self):
        """Validate parameters after initialization."""
        if self.window_size < 1:
            raise ValueError("window_size must be at least 1")
        if self.data_size < 1:
            raise ValueError("data_size must be at least 1")
        if self.ack_timeout <= 0:
            raise ValueError("ack_timeout must be positive")
        if self.max_silent_attempts < 0:
            raise ValueError("max_silent_attempts must be non-negative")
        if self.max_start_seq < 0 or self.max_start_seq % self.window_size != 0:
            raise ValueError(
                "max_start_seq must be a non-negative multiple of window_size"
            )
        if self.max_start_seq + self.window_size > SEQ_MODULUS:
            raise ValueError(
                f"sequence space {self.max_start_seq + self.window_size} "
                f"does not fit in one byte"
            )
        if self.linger_timeout < 0:
            raise ValueError("linger_timeout must be non-negative")

    @property
    def chunk_size(self) -> int:
        """Bytes read from the source per window."""
        return self.window_size * self.data_size

    @property
    def packet_size(self) -> int:
        """Size of a full packet on the wire."""
        return HEADER_SIZE + self.data_size

    @property
    def sequence_space(self) -> int:
        """Number of distinct sequence numbers in use."""
        return self.max_start_seq + self.window_size

    def as_dict(self) -> dict:
        return {
            'window_size': self.window_size,
            'data_size': self.data_size,
            'ack_timeout': self.ack_timeout,
            'max_silent_attempts': self.max_silent_attempts,
            'max_start_seq': self.max_start_seq,
            'linger_timeout': self.linger_timeout,
        }


def calculate_dead_peer_delay(config: ArqConfig) -> float:
    """Seconds of total silence before the sender declares the peer dead."""
    return (config.max_silent_attempts + 1) * config.ack_timeout


def calculate_steady_state_probabilities(
    p_gb: float = P_GOOD_TO_BAD,
    p_bg: float = P_BAD_TO_GOOD
):
    """
    Calculate steady-state probabilities for Good and Bad states.
    π_G = P(B→G) / (P(G→B) + P(B→G))
    π_B = P(G→B) / (P(G→B) + P(B→G))
    """
    sum_transitions = p_gb + p_bg
    if sum_transitions <= 0:
        return 1.0, 0.0
    return p_bg / sum_transitions, p_gb / sum_transitions


def calculate_average_loss() -> float:
    """
    Calculate average packet loss of the default channel.
    loss_avg = π_G * loss_good + π_B * loss_bad
    """
    pi_good, pi_bad = calculate_steady_state_probabilities()
    return pi_good * GOOD_STATE_LOSS + pi_bad * BAD_STATE_LOSS
