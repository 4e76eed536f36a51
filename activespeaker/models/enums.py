"""Enumerations for pipeline progress"""

from enum import Enum


class PipelineStage(Enum):
    """Stages of the offline speaker/face association pipeline"""
    IDLE = "idle"
    AUDIO_PREPARATION = "audio_preparation"
    SPEECH_RECOGNITION = "speech_recognition"
    DIARIZATION = "diarization"
    FACE_TRACKING = "face_tracking"
    FUSION = "fusion"
    COMPLETE = "complete"
    FAILED = "failed"
    
    @property
    def progress(self) -> float:
        """Coarse fraction of the pipeline completed when this stage starts"""
        return _STAGE_PROGRESS[self]


_STAGE_PROGRESS = {
    PipelineStage.IDLE: 0.0,
    PipelineStage.AUDIO_PREPARATION: 0.05,
    PipelineStage.SPEECH_RECOGNITION: 0.2,
    PipelineStage.DIARIZATION: 0.4,
    PipelineStage.FACE_TRACKING: 0.6,
    PipelineStage.FUSION: 0.8,
    PipelineStage.COMPLETE: 1.0,
    PipelineStage.FAILED: 1.0,
}
