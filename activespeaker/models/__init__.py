"""Data models and interfaces"""

from activespeaker.models.frames import VideoFrame
from activespeaker.models.features import BoundingBox, FaceObservation, FaceSample
from activespeaker.models.results import (
    SpeakerSegment,
    SpeakerProfile,
    Utterance,
    MatchedUtterance,
    FaceProfile,
    MatchedSpeaker,
    FusionResult
)
from activespeaker.models.enums import PipelineStage
from activespeaker.models.interfaces import (
    FrameSourceInterface,
    LandmarkDetectorInterface,
    SpeechRecognizerInterface,
    DiarizerInterface
)

__all__ = [
    # Frames
    "VideoFrame",
    # Features
    "BoundingBox",
    "FaceObservation",
    "FaceSample",
    # Results
    "SpeakerSegment",
    "SpeakerProfile",
    "Utterance",
    "MatchedUtterance",
    "FaceProfile",
    "MatchedSpeaker",
    "FusionResult",
    # Enums
    "PipelineStage",
    # Interfaces
    "FrameSourceInterface",
    "LandmarkDetectorInterface",
    "SpeechRecognizerInterface",
    "DiarizerInterface",
]
