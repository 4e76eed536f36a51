"""Property-based tests for face track sample ordering

Feature: active-speaker-fusion, Property 1: Track timestamps strictly increase
"""

from hypothesis import given, strategies as st

from activespeaker.analysis.face_tracker import FaceTracker
from activespeaker.models.features import BoundingBox, FaceObservation


@st.composite
def detection_sequence_strategy(draw):
    """Generate strictly increasing frame times with a few faces per frame.
    
    Returns:
        List of (timestamp, [(cx, cy), ...]) tuples
    """
    times = sorted(draw(st.lists(
        st.floats(min_value=0.0, max_value=60.0, allow_nan=False),
        min_size=1, max_size=40, unique=True
    )))
    centers = st.tuples(
        st.floats(min_value=0.05, max_value=0.95, allow_nan=False),
        st.floats(min_value=0.05, max_value=0.95, allow_nan=False)
    )
    return [(t, draw(st.lists(centers, max_size=4))) for t in times]


def _observation(cx, cy, size=0.1):
    return FaceObservation(bounding_box=BoundingBox(x=cx - size / 2, y=cy - size / 2, width=size, height=size))


@given(frames=detection_sequence_strategy())
def test_track_timestamps_strictly_increase(frames):
    """Every track's consecutive samples have strictly increasing timestamps"""
    tracker = FaceTracker()
    for timestamp, centers in frames:
        tracker.process_frame([_observation(cx, cy) for cx, cy in centers], timestamp)
    
    for track_id in range(tracker.track_count):
        timestamps = [s.timestamp for s in tracker.track_samples(track_id)]
        assert all(b > a for a, b in zip(timestamps, timestamps[1:]))


@given(frames=detection_sequence_strategy())
def test_every_detection_is_assigned(frames):
    """Each detection lands in exactly one track"""
    tracker = FaceTracker()
    total = 0
    for timestamp, centers in frames:
        assigned = tracker.process_frame([_observation(cx, cy) for cx, cy in centers], timestamp)
        assert len(assigned) == len(centers)
        assert len(set(assigned)) == len(assigned)
        total += len(centers)
    
    assert sum(len(tracker.track_samples(i)) for i in range(tracker.track_count)) == total


@given(frames=detection_sequence_strategy())
def test_active_tracks_were_seen_recently(frames):
    """After a frame, every active track was updated within the temporal gate"""
    tracker = FaceTracker()
    for timestamp, centers in frames:
        tracker.process_frame([_observation(cx, cy) for cx, cy in centers], timestamp)
        for track_id in tracker.active_track_ids:
            last = tracker.track_samples(track_id)[-1].timestamp
            assert timestamp - last <= tracker.temporal_gate
