"""
Tests for the timeline index.
"""

import pytest
from subburn.srt_parser import CaptionEntry
from subburn.timeline import active_entry, TimelineIndex


@pytest.fixture
def overlapping():
    return [
        CaptionEntry("A", 0.0, 5.0, "first"),
        CaptionEntry("B", 2.0, 8.0, "second"),
    ]


class TestActiveEntry:

    def test_first_in_order_wins(self, overlapping):
        assert active_entry(overlapping, 3.0).id == "A"

    def test_later_entry_after_first_ends(self, overlapping):
        assert active_entry(overlapping, 6.0).id == "B"

    def test_order_not_start_time_decides(self):
        track = [
            CaptionEntry("late", 2.0, 8.0, "x"),
            CaptionEntry("early", 0.0, 5.0, "y"),
        ]
        assert active_entry(track, 3.0).id == "late"

    @pytest.mark.parametrize("t", [1.0, 4.0])
    def test_bounds_inclusive(self, t):
        track = [CaptionEntry("1", 1.0, 4.0, "Hello")]
        assert active_entry(track, t).id == "1"

    @pytest.mark.parametrize("t", [0.0, 0.999, 4.001, 100.0, -1.0])
    def test_no_caption_outside(self, t):
        track = [CaptionEntry("1", 1.0, 4.0, "Hello")]
        assert active_entry(track, t) is None

    def test_gap_between_entries(self):
        track = [
            CaptionEntry("1", 0.0, 1.0, "a"),
            CaptionEntry("2", 3.0, 4.0, "b"),
        ]
        assert active_entry(track, 2.0) is None

    def test_inverted_entry_never_matches(self):
        track = [CaptionEntry("1", 5.0, 2.0, "backwards")]
        assert active_entry(track, 3.0) is None

    def test_empty_track(self):
        assert active_entry([], 1.0) is None


class TestTimelineIndex:

    def test_at_and_text_at(self, overlapping):
        index = TimelineIndex(overlapping)
        assert index.at(7.0).id == "B"
        assert index.text_at(1.0) == "first"
        assert index.text_at(9.0) is None

    def test_snapshot_of_track(self, overlapping):
        index = TimelineIndex(overlapping)
        overlapping.clear()
        assert len(index) == 2
        assert [e.id for e in index.entries] == ["A", "B"]
