"""Unit tests for utterance-to-speaker matching"""

import pytest

from activespeaker.analysis.speaker_segments import SpeakerSegmentStore
from activespeaker.models.results import SpeakerSegment, Utterance


@pytest.fixture
def store():
    """Two speakers taking turns, speaker 1 with two segments"""
    return SpeakerSegmentStore([
        SpeakerSegment(1, 6.0, 8.0),
        SpeakerSegment(0, 0.0, 5.0),
        SpeakerSegment(1, 5.0, 6.0),
    ], min_utterance_duration=0.5)


def test_profiles_grouped_and_ordered(store):
    assert store.speaker_ids == [0, 1]
    speaker1 = store.get(1)
    assert [(s.start, s.end) for s in speaker1.segments] == [(5.0, 6.0), (6.0, 8.0)]
    assert store.get(7) is None


def test_best_speaker_uses_total_overlap(store):
    # 1.0s with speaker 0, 1.0 + 1.0s with speaker 1
    assert store.best_speaker(Utterance("x", 4.0, 7.0)) == 1


def test_equal_overlap_prefers_lower_speaker(store):
    assert store.best_speaker(Utterance("x", 4.5, 5.5)) == 0


def test_no_overlap(store):
    assert store.best_speaker(Utterance("x", 9.0, 10.0)) is None


def test_match_utterances_drops_short_and_unmatched(store):
    utterances = [
        Utterance("a", 1.0, 2.0),
        Utterance("too short", 2.0, 2.4),
        Utterance("b", 6.5, 7.5),
        Utterance("silence", 20.0, 21.0),
    ]
    matched = store.match_utterances(utterances)
    
    assert [(m.utterance.text, m.speaker_id) for m in matched] == [("a", 0), ("b", 1)]


def test_min_duration_inclusive(store):
    matched = store.match_utterances([Utterance("edge", 1.0, 1.5)])
    assert len(matched) == 1


def test_empty_store():
    store = SpeakerSegmentStore([])
    assert store.profiles == []
    assert store.match_utterances([Utterance("a", 0.0, 1.0)]) == []
