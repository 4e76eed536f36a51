"""Per-modality analysis: face tracking, landmarks, speech and diarization"""

from activespeaker.analysis.face_tracker import FaceTracker, FaceTrackingError, track_faces
from activespeaker.analysis.speaker_segments import SpeakerSegmentStore

__all__ = ['FaceTracker', 'FaceTrackingError', 'track_faces', 'SpeakerSegmentStore']
