"""Unit tests for playback state tracking"""

import pytest

from activespeaker.fusion.playback import PlaybackStateTracker
from activespeaker.models.results import MatchedSpeaker, SpeakerSegment


@pytest.fixture
def speakers():
    """Speaker 0 talks 0-8s, speaker 1 talks 6-10s, speaker 2 is unmatched"""
    return [
        MatchedSpeaker(0, 0, (0.3, 0.5), (SpeakerSegment(0, 0.0, 8.0),)),
        MatchedSpeaker(1, 1, (0.7, 0.5), (SpeakerSegment(1, 6.0, 10.0),)),
        MatchedSpeaker(2, None, None, (SpeakerSegment(2, 12.0, 13.0),)),
    ]


@pytest.fixture
def tracker(speakers):
    return PlaybackStateTracker(speakers)


def test_overlapping_segments_flag_both_speakers(tracker, speakers):
    assert tracker.update(7.0) == frozenset({0, 1})
    assert [s.is_currently_speaking for s in speakers] == [True, True, False]


def test_bounds_are_inclusive(tracker):
    assert tracker.update(10.0) == frozenset({1})
    assert tracker.update(0.0) == frozenset({0})


def test_unmatched_speaker_still_flagged(tracker, speakers):
    tracker.update(12.5)
    assert speakers[2].is_currently_speaking


def test_update_is_idempotent(tracker, speakers):
    first = tracker.update(7.0)
    flags = [s.is_currently_speaking for s in speakers]
    second = tracker.update(7.0)
    
    assert first == second
    assert [s.is_currently_speaking for s in speakers] == flags


def test_update_clears_stale_flags(tracker, speakers):
    tracker.update(7.0)
    assert tracker.update(11.0) == frozenset()
    assert not any(s.is_currently_speaking for s in speakers)
    assert tracker.last_query == 11.0


def test_update_leaves_assignments_untouched(tracker, speakers):
    before = [(s.speaker_id, s.face_id, s.position, s.segments) for s in speakers]
    tracker.update(7.0)
    after = [(s.speaker_id, s.face_id, s.position, s.segments) for s in speakers]
    assert before == after


def test_current_speaker_in_published_order(tracker):
    assert tracker.current_speaker(7.0).speaker_id == 0
    assert tracker.current_speaker(9.0).speaker_id == 1
    assert tracker.current_speaker(11.0) is None


def test_load_replaces_snapshot(tracker):
    tracker.update(7.0)
    tracker.load([MatchedSpeaker(5, None, None, (SpeakerSegment(5, 0.0, 1.0),))])
    assert tracker.last_query is None
    assert tracker.active_speaker_ids(0.5) == frozenset({5})


def test_empty_tracker():
    assert PlaybackStateTracker().update(1.0) == frozenset()
