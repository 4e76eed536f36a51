"""Base interfaces for external collaborators"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
from activespeaker.models.frames import VideoFrame
from activespeaker.models.features import FaceObservation
from activespeaker.models.results import SpeakerSegment, Utterance


class FrameSourceInterface(ABC):
    """Random-access source of decoded video frames"""
    
    @property
    @abstractmethod
    def frame_count(self) -> int:
        """Total number of frames in the video"""
        pass
    
    @property
    @abstractmethod
    def fps(self) -> float:
        """Nominal frame rate"""
        pass
    
    @abstractmethod
    async def get_frame(self, timestamp: float) -> Optional[VideoFrame]:
        """Decode the frame at a presentation timestamp
        
        Args:
            timestamp: Seconds from the start of the video
            
        Returns:
            Decoded frame, or None if the frame is unavailable
        """
        pass


class LandmarkDetectorInterface(ABC):
    """Face-landmark detector"""
    
    @abstractmethod
    async def detect(self, frame: VideoFrame) -> List[FaceObservation]:
        """Detect faces and lip contours in a frame
        
        Args:
            frame: Decoded RGB frame
            
        Returns:
            Zero or more face observations
        """
        pass


class SpeechRecognizerInterface(ABC):
    """Speech-to-text engine"""
    
    @abstractmethod
    def recognize(self, audio_path: Path) -> List[Utterance]:
        """Transcribe an audio file into time-stamped utterances"""
        pass


class DiarizerInterface(ABC):
    """Speaker diarization engine"""
    
    @abstractmethod
    def diarize(self, audio_path: Path, num_speakers: Optional[int] = None) -> List[SpeakerSegment]:
        """Partition an audio file into speaker-labelled segments"""
        pass
