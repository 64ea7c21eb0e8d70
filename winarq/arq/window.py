"""
Window Tracker

Per-slot flags for one window round and the classification of incoming
sequence numbers relative to the window base. Sender and receiver each own
one tracker and advance it exactly once per completed window, which keeps
their bases in lockstep.
"""

from enum import Enum
from typing import List

from winarq.config import MAX_START_SEQ, WINDOW_SIZE


class SeqClass(Enum):
    """Where a sequence number falls relative to the active window."""
    CURRENT = 0   # inside [base, base + size - 1]
    STALE = 1     # belongs to a superseded window
    INVALID = 2   # outside the sequence space entirely


class WindowTracker:
    """
    Fixed-size window over a wrapping sequence space.

    The base moves 0, size, 2*size, ..., max_start_seq, 0, ... Anything not
    in the current window is assumed to be at most one window behind, so
    there is no defense against a peer lagging by more than a window.

    Attributes:
        size: Window capacity (W)
        max_start_seq: Last base before wrapping
        base: Lowest sequence number of the active window
        flags: Acked/received flag per slot
    """

    def __init__(self, size: int = WINDOW_SIZE, max_start_seq: int = MAX_START_SEQ):
        """
        Initialize window tracker.

        Args:
            size: Window capacity
            max_start_seq: Last window base before wrapping to 0
        """
        self.size = size
        self.max_start_seq = max_start_seq
        self.base = 0
        self.flags: List[bool] = [False] * size
        self.marked = 0

    def slot(self, seq_num: int) -> int:
        """Window-relative index of a sequence number."""
        return seq_num % self.size

    @property
    def end(self) -> int:
        """Highest sequence number of the active window."""
        return self.base + self.size - 1

    def classify(self, seq_num: int) -> SeqClass:
        """
        Classify a sequence number against the active window.

        Args:
            seq_num: Received sequence number

        Returns:
            CURRENT, STALE or INVALID
        """
        if self.base <= seq_num <= self.end:
            return SeqClass.CURRENT
        if 0 <= seq_num < self.max_start_seq + self.size:
            return SeqClass.STALE
        return SeqClass.INVALID

    def is_marked(self, seq_num: int) -> bool:
        return self.flags[self.slot(seq_num)]

    def mark(self, seq_num: int) -> bool:
        """
        Flag the slot of seq_num.

        Returns:
            True if the slot was not flagged before
        """
        index = self.slot(seq_num)
        if self.flags[index]:
            return False
        self.flags[index] = True
        self.marked += 1
        return True

    @property
    def count(self) -> int:
        """Number of flagged slots in this round."""
        return self.marked

    def reset(self):
        """Clear all slot flags for a new round."""
        for i in range(self.size):
            self.flags[i] = False
        self.marked = 0

    def advance(self):
        """Move the base to the next window and clear the flags."""
        if self.base == self.max_start_seq:
            self.base = 0
        else:
            self.base += self.size
        self.reset()

    def get_state(self) -> dict:
        return {
            'base': self.base,
            'end': self.end,
            'size': self.size,
            'marked_slots': [i for i, flag in enumerate(self.flags) if flag]
        }
