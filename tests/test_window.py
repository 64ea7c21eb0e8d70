"""
Unit tests for window classification and advancement.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from winarq.arq.window import SeqClass, WindowTracker


class TestClassification:
    """Tests for CURRENT / STALE / INVALID classification."""

    def test_current_window(self):
        window = WindowTracker(10, 100)

        for seq in range(10):
            assert window.classify(seq) is SeqClass.CURRENT
        assert window.end == 9

    def test_stale_inside_sequence_space(self):
        window = WindowTracker(10, 100)

        assert window.classify(10) is SeqClass.STALE
        assert window.classify(55) is SeqClass.STALE
        assert window.classify(109) is SeqClass.STALE

    def test_invalid_outside_sequence_space(self):
        window = WindowTracker(10, 100)

        assert window.classify(110) is SeqClass.INVALID
        assert window.classify(255) is SeqClass.INVALID

    def test_previous_window_is_stale_after_advance(self):
        window = WindowTracker(10, 100)
        window.advance()

        assert window.classify(9) is SeqClass.STALE
        assert window.classify(10) is SeqClass.CURRENT
        assert window.classify(19) is SeqClass.CURRENT
        assert window.classify(20) is SeqClass.STALE

    def test_slot(self):
        window = WindowTracker(10, 100)
        assert window.slot(0) == 0
        assert window.slot(37) == 7
        assert window.slot(100) == 0


class TestFlags:
    """Tests for per-slot flags."""

    def test_mark_is_idempotent(self):
        window = WindowTracker(10, 100)

        assert window.mark(3)
        assert not window.mark(3)
        assert window.count == 1
        assert window.is_marked(3)
        assert not window.is_marked(4)

    def test_advance_clears_flags(self):
        window = WindowTracker(10, 100)
        for seq in range(10):
            window.mark(seq)
        assert window.count == 10

        window.advance()

        assert window.count == 0
        assert not any(window.flags)

    def test_state(self):
        window = WindowTracker(10, 100)
        window.mark(2)
        window.mark(5)

        state = window.get_state()
        assert state['base'] == 0
        assert state['marked_slots'] == [2, 5]


class TestAdvance:
    """Tests for the wrapping base cadence."""

    def test_base_cadence_wraps_after_max_start(self):
        window = WindowTracker(10, 100)
        bases = [window.base]
        for _ in range(12):
            window.advance()
            bases.append(window.base)

        assert bases == [0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100, 0, 10]

    def test_wrapped_window_current(self):
        window = WindowTracker(10, 100)
        for _ in range(10):
            window.advance()
        assert window.base == 100
        assert window.classify(105) is SeqClass.CURRENT
        assert window.classify(5) is SeqClass.STALE

        window.advance()
        assert window.classify(5) is SeqClass.CURRENT
        assert window.classify(105) is SeqClass.STALE

    def test_small_window(self):
        window = WindowTracker(2, 4)
        bases = []
        for _ in range(4):
            bases.append(window.base)
            window.advance()
        assert bases == [0, 2, 4, 0]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
