"""Data models for speech, diarization and fusion results"""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Optional, Tuple
import numpy as np

from activespeaker.models.features import FaceSample


@dataclass(frozen=True)
class SpeakerSegment:
    """A diarized span of speech attributed to one speaker
    
    Attributes:
        speaker_id: Integer speaker label from the diarization engine
        start: Segment start (seconds)
        end: Segment end (seconds)
    """
    speaker_id: int
    start: float
    end: float
    
    def __post_init__(self):
        """Validate segment data"""
        assert self.start >= 0, "Start must be non-negative"
        assert self.end >= self.start, "End must not precede start"
    
    @property
    def duration(self) -> float:
        return self.end - self.start
    
    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2.0
    
    def contains(self, t: float) -> bool:
        """Inclusive bounds check"""
        return self.start <= t <= self.end
    
    def overlap(self, start: float, end: float) -> float:
        """Seconds of overlap with the interval [start, end]"""
        return max(0.0, min(end, self.end) - max(start, self.start))


@dataclass(frozen=True)
class SpeakerProfile:
    """All diarized segments of one speaker
    
    Attributes:
        speaker_id: Integer speaker label
        segments: Segments ordered by start time
        embedding: Optional voice embedding (not used for matching)
    """
    speaker_id: int
    segments: Tuple[SpeakerSegment, ...]
    embedding: Optional[Tuple[float, ...]] = None
    
    def __post_init__(self):
        """Validate profile data"""
        for segment in self.segments:
            assert segment.speaker_id == self.speaker_id, "Segment belongs to another speaker"
        starts = [s.start for s in self.segments]
        assert starts == sorted(starts), "Segments must be ordered by start time"
    
    def overlap(self, start: float, end: float) -> float:
        """Total seconds of overlap between [start, end] and this speaker's segments"""
        return sum(segment.overlap(start, end) for segment in self.segments)


@dataclass(frozen=True)
class Utterance:
    """A recognized span of speech
    
    Attributes:
        text: Transcribed text
        start_time: Start (seconds)
        end_time: End (seconds)
    """
    text: str
    start_time: float
    end_time: float
    
    def __post_init__(self):
        """Validate utterance data"""
        assert self.start_time >= 0, "Start time must be non-negative"
        assert self.end_time >= self.start_time, "End time must not precede start time"
    
    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class MatchedUtterance:
    """An utterance bound to the speaker it overlaps most"""
    utterance: Utterance
    speaker_id: int


@dataclass(frozen=True)
class FaceProfile:
    """Finalized face track
    
    Attributes:
        face_id: Stable integer identity of the originating track
        samples: Tracked samples ordered by timestamp
        mean_position: Mean (x, y) of the sample box centers
        mean_mouth_openness: Mean mouth openness over all samples
    """
    face_id: int
    samples: Tuple[FaceSample, ...]
    mean_position: Tuple[float, float]
    mean_mouth_openness: float
    
    @cached_property
    def timestamps(self) -> np.ndarray:
        return np.array([s.timestamp for s in self.samples], dtype=np.float64)
    
    @property
    def mouth_openness_history(self) -> Tuple[float, ...]:
        return tuple(s.mouth_openness for s in self.samples)
    
    @property
    def speaking_count(self) -> int:
        return sum(1 for s in self.samples if s.is_speaking)
    
    def closest_sample(self, t: float) -> Optional[FaceSample]:
        """Return the sample nearest in time to t.
        
        On equal distance the earlier sample wins. Returns None for a profile
        without samples.
        """
        if not self.samples:
            return None
        
        timestamps = self.timestamps
        idx = int(np.searchsorted(timestamps, t))
        if idx == 0:
            return self.samples[0]
        if idx == len(self.samples):
            return self.samples[-1]
        
        before = self.samples[idx - 1]
        after = self.samples[idx]
        if abs(t - before.timestamp) <= abs(after.timestamp - t):
            return before
        return after
    
    def samples_between(self, start: float, end: float) -> Tuple[FaceSample, ...]:
        """Samples with start <= timestamp <= end"""
        timestamps = self.timestamps
        lo = int(np.searchsorted(timestamps, start, side='left'))
        hi = int(np.searchsorted(timestamps, end, side='right'))
        return self.samples[lo:hi]


@dataclass
class MatchedSpeaker:
    """Final speaker-to-face assignment
    
    Everything except `is_currently_speaking` is fixed when the fusion stage
    publishes its result; the flag is rewritten by the playback tracker.
    
    Attributes:
        speaker_id: Integer speaker label
        face_id: Assigned face, or None when no face could be matched
        position: Mean (x, y) of the assigned face, normalized
        segments: The speaker's diarized segments
        is_currently_speaking: Transient per-query flag
    """
    speaker_id: int
    face_id: Optional[int]
    position: Optional[Tuple[float, float]]
    segments: Tuple[SpeakerSegment, ...]
    is_currently_speaking: bool = field(default=False, compare=False)
    
    def __post_init__(self):
        """Validate assignment data"""
        assert (self.face_id is None) == (self.position is None), \
            "Position must be present exactly when a face is assigned"
        if self.position is not None:
            x, y = self.position
            assert 0.0 <= x <= 1.0 and 0.0 <= y <= 1.0, "Position must be normalized"
    
    @property
    def is_matched(self) -> bool:
        return self.face_id is not None
    
    @property
    def audio_position(self) -> Optional[Tuple[float, float, float]]:
        """Spatial audio placement derived from the on-screen position"""
        if self.position is None:
            return None
        x, y = self.position
        return ((x - 0.5) * 10.0, (0.5 - y) * 10.0, 0.0)
    
    def is_active_at(self, t: float) -> bool:
        return any(segment.contains(t) for segment in self.segments)
    
    def to_dict(self) -> Dict:
        return {
            'speaker_id': self.speaker_id,
            'face_id': self.face_id,
            'position': list(self.position) if self.position is not None else None,
            'audio_position': list(self.audio_position) if self.audio_position is not None else None,
            'segments': [{'start': s.start, 'end': s.end} for s in self.segments],
        }


@dataclass(frozen=True)
class FusionResult:
    """Snapshot published once by the fusion stage
    
    Attributes:
        matched_speakers: Assignments ordered by speaker id
        face_profiles: Face profiles the assignment was made against
        vote_counts: Number of accepted votes per speaker id
        complete: Whether the fusion pass ran to completion
    """
    matched_speakers: Tuple[MatchedSpeaker, ...]
    face_profiles: Tuple[FaceProfile, ...] = ()
    vote_counts: Dict[int, int] = field(default_factory=dict)
    complete: bool = True
    
    def to_dict(self) -> Dict:
        return {
            'fusion_complete': self.complete,
            'matched_speakers': [s.to_dict() for s in self.matched_speakers],
            'face_count': len(self.face_profiles),
            'vote_counts': {str(k): v for k, v in sorted(self.vote_counts.items())},
        }
