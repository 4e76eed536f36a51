"""Unit tests for data models"""

import numpy as np
import pytest
from activespeaker.models import (
    VideoFrame,
    BoundingBox,
    FaceObservation,
    FaceSample,
    SpeakerSegment,
    SpeakerProfile,
    Utterance,
    FaceProfile,
    MatchedSpeaker,
    FusionResult,
    PipelineStage
)


def _sample(t, x=0.2, mouth=0.1, speaking=False):
    return FaceSample(
        timestamp=t,
        bounding_box=BoundingBox(x=x, y=0.4, width=0.2, height=0.2),
        mouth_openness=mouth,
        is_speaking=speaking
    )


class TestVideoFrame:
    """Tests for VideoFrame model"""
    
    def test_create_valid_video_frame(self):
        """Test creating a valid video frame"""
        image = np.zeros((480, 640, 3), dtype=np.uint8)
        frame = VideoFrame(image=image, timestamp=1.5, frame_number=45)
        
        assert frame.timestamp == 1.5
        assert frame.resolution == (640, 480)
    
    def test_video_frame_validation(self):
        """Test video frame validation"""
        image = np.zeros((480, 640, 3), dtype=np.uint8)
        
        with pytest.raises(AssertionError):
            VideoFrame(image=image, timestamp=-1.0, frame_number=0)
        
        with pytest.raises(AssertionError):
            VideoFrame(image=np.zeros((480, 640)), timestamp=0.0, frame_number=0)


class TestBoundingBox:
    """Tests for BoundingBox geometry"""
    
    def test_center_and_area(self):
        box = BoundingBox(x=0.2, y=0.4, width=0.2, height=0.2)
        assert box.center == pytest.approx((0.3, 0.5))
        assert box.area == pytest.approx(0.04)
    
    def test_center_clipped_to_frame(self):
        box = BoundingBox(x=0.9, y=-0.2, width=0.3, height=0.2)
        assert box.center == pytest.approx((1.0, 0.0))
    
    def test_iou_identical(self):
        box = BoundingBox(x=0.1, y=0.1, width=0.3, height=0.3)
        assert box.iou(box) == pytest.approx(1.0)
    
    def test_iou_disjoint(self):
        a = BoundingBox(x=0.0, y=0.0, width=0.2, height=0.2)
        b = BoundingBox(x=0.5, y=0.5, width=0.2, height=0.2)
        assert a.iou(b) == 0.0
    
    def test_iou_half_overlap(self):
        """Two unit-height boxes overlapping by half their width"""
        a = BoundingBox(x=0.0, y=0.0, width=0.2, height=0.2)
        b = BoundingBox(x=0.1, y=0.0, width=0.2, height=0.2)
        # intersection 0.02, union 0.06
        assert a.iou(b) == pytest.approx(1.0 / 3.0)
    
    def test_iou_degenerate_boxes(self):
        a = BoundingBox(x=0.5, y=0.5, width=0.0, height=0.0)
        assert a.iou(a) == 0.0
    
    def test_negative_size_rejected(self):
        with pytest.raises(AssertionError):
            BoundingBox(x=0.1, y=0.1, width=-0.1, height=0.1)


class TestFaceObservation:
    """Tests for mouth openness derived from lip contours"""
    
    def test_mouth_openness_scaled_by_box_height(self):
        box = BoundingBox(x=0.2, y=0.2, width=0.4, height=0.5)
        inner = np.array([[0.4, 0.70], [0.6, 0.74]])
        outer = np.array([[0.3, 0.65], [0.7, 0.85]])
        observation = FaceObservation(bounding_box=box, inner_lips=inner, outer_lips=outer)
        
        # outer span 0.2 dominates, times height 0.5
        assert observation.mouth_openness == pytest.approx(0.1)
    
    def test_missing_lips_means_closed(self):
        box = BoundingBox(x=0.2, y=0.2, width=0.4, height=0.5)
        observation = FaceObservation(bounding_box=box, inner_lips=np.array([[0.5, 0.5], [0.5, 0.9]]))
        assert observation.mouth_openness == 0.0
    
    def test_invalid_confidence(self):
        box = BoundingBox(x=0.2, y=0.2, width=0.4, height=0.5)
        with pytest.raises(AssertionError):
            FaceObservation(bounding_box=box, confidence=1.5)


class TestSpeakerSegments:
    """Tests for SpeakerSegment and SpeakerProfile"""
    
    def test_segment_properties(self):
        segment = SpeakerSegment(speaker_id=0, start=2.0, end=4.0)
        assert segment.duration == 2.0
        assert segment.midpoint == 3.0
        assert segment.contains(2.0) and segment.contains(4.0)
        assert not segment.contains(4.01)
    
    def test_segment_overlap(self):
        segment = SpeakerSegment(speaker_id=0, start=2.0, end=4.0)
        assert segment.overlap(3.0, 6.0) == pytest.approx(1.0)
        assert segment.overlap(5.0, 6.0) == 0.0
    
    def test_segment_validation(self):
        with pytest.raises(AssertionError):
            SpeakerSegment(speaker_id=0, start=3.0, end=2.0)
    
    def test_profile_total_overlap(self):
        profile = SpeakerProfile(
            speaker_id=1,
            segments=(SpeakerSegment(1, 0.0, 1.0), SpeakerSegment(1, 2.0, 3.0))
        )
        assert profile.overlap(0.5, 2.5) == pytest.approx(1.0)
    
    def test_profile_rejects_foreign_segment(self):
        with pytest.raises(AssertionError):
            SpeakerProfile(speaker_id=1, segments=(SpeakerSegment(0, 0.0, 1.0),))
    
    def test_utterance_validation(self):
        assert Utterance("hi", 1.0, 1.5).duration == pytest.approx(0.5)
        with pytest.raises(AssertionError):
            Utterance("hi", 2.0, 1.0)


class TestFaceProfile:
    """Tests for FaceProfile sample lookup"""
    
    @pytest.fixture
    def profile(self):
        samples = tuple(_sample(t, speaking=(t >= 1.0)) for t in (0.0, 0.5, 1.0, 1.5))
        return FaceProfile(face_id=3, samples=samples, mean_position=(0.3, 0.5), mean_mouth_openness=0.1)
    
    def test_closest_sample(self, profile):
        assert profile.closest_sample(0.6).timestamp == 0.5
        assert profile.closest_sample(-3.0).timestamp == 0.0
        assert profile.closest_sample(9.0).timestamp == 1.5
    
    def test_closest_sample_tie_prefers_earlier(self, profile):
        assert profile.closest_sample(0.75).timestamp == 0.5
    
    def test_closest_sample_empty_profile(self):
        profile = FaceProfile(face_id=0, samples=(), mean_position=(0.5, 0.5), mean_mouth_openness=0.0)
        assert profile.closest_sample(1.0) is None
    
    def test_samples_between_inclusive(self, profile):
        samples = profile.samples_between(0.5, 1.0)
        assert [s.timestamp for s in samples] == [0.5, 1.0]
    
    def test_history_and_speaking_count(self, profile):
        assert profile.mouth_openness_history == (0.1, 0.1, 0.1, 0.1)
        assert profile.speaking_count == 2


class TestMatchedSpeaker:
    """Tests for MatchedSpeaker"""
    
    def test_matched_speaker(self):
        speaker = MatchedSpeaker(
            speaker_id=0, face_id=2, position=(0.3, 0.5),
            segments=(SpeakerSegment(0, 0.0, 5.0),)
        )
        assert speaker.is_matched
        assert speaker.is_active_at(5.0)
        assert not speaker.is_active_at(5.5)
        assert speaker.audio_position == pytest.approx((-2.0, 0.0, 0.0))
    
    def test_unmatched_speaker(self):
        speaker = MatchedSpeaker(speaker_id=1, face_id=None, position=None, segments=())
        assert not speaker.is_matched
        assert speaker.audio_position is None
        assert speaker.to_dict()['position'] is None
    
    def test_position_requires_face(self):
        with pytest.raises(AssertionError):
            MatchedSpeaker(speaker_id=1, face_id=None, position=(0.5, 0.5), segments=())
    
    def test_position_must_be_normalized(self):
        with pytest.raises(AssertionError):
            MatchedSpeaker(speaker_id=1, face_id=0, position=(1.5, 0.5), segments=())
    
    def test_speaking_flag_not_part_of_equality(self):
        a = MatchedSpeaker(speaker_id=0, face_id=None, position=None, segments=())
        b = MatchedSpeaker(speaker_id=0, face_id=None, position=None, segments=())
        b.is_currently_speaking = True
        assert a == b


class TestFusionResult:
    """Tests for result serialization"""
    
    def test_to_dict(self):
        result = FusionResult(
            matched_speakers=(
                MatchedSpeaker(0, 1, (0.7, 0.4), (SpeakerSegment(0, 1.0, 2.0),)),
                MatchedSpeaker(1, None, None, ()),
            ),
            vote_counts={0: 4}
        )
        data = result.to_dict()
        
        assert data['fusion_complete'] is True
        assert data['vote_counts'] == {'0': 4}
        assert data['matched_speakers'][0]['segments'] == [{'start': 1.0, 'end': 2.0}]
        assert data['matched_speakers'][0]['audio_position'] == pytest.approx([2.0, 1.0, 0.0])
        assert data['matched_speakers'][1]['face_id'] is None


class TestPipelineStage:
    """Tests for PipelineStage progress"""
    
    def test_progress_is_monotonic_through_happy_path(self):
        stages = [
            PipelineStage.IDLE,
            PipelineStage.AUDIO_PREPARATION,
            PipelineStage.SPEECH_RECOGNITION,
            PipelineStage.DIARIZATION,
            PipelineStage.FACE_TRACKING,
            PipelineStage.FUSION,
            PipelineStage.COMPLETE,
        ]
        progress = [stage.progress for stage in stages]
        assert progress == sorted(progress)
        assert progress[0] == 0.0 and progress[-1] == 1.0
