"""Speaker diarization with pyannote.audio"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from activespeaker.models.results import SpeakerSegment
from activespeaker.models.interfaces import DiarizerInterface
from activespeaker.input.audio_preprocessor import AudioMissingError
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class DiarizationError(Exception):
    """Raised when the diarization pipeline cannot be loaded or run"""
    pass


def label_to_id(labels: Iterable[str]) -> dict:
    """Map diarization labels to stable integer ids in sorted-label order"""
    return {label: i for i, label in enumerate(sorted(set(labels)))}


def segments_from_turns(turns: Iterable[Tuple[float, float, str]]) -> List[SpeakerSegment]:
    """Convert (start, end, label) turns into speaker segments ordered by start"""
    turns = [(float(start), float(end), str(label)) for start, end, label in turns if end >= start]
    mapping = label_to_id(label for _, _, label in turns)
    segments = [
        SpeakerSegment(speaker_id=mapping[label], start=max(start, 0.0), end=max(end, 0.0))
        for start, end, label in turns
    ]
    segments.sort(key=lambda s: (s.start, s.end, s.speaker_id))
    return segments


class PyannoteDiarizer(DiarizerInterface):
    """Runs the pyannote speaker-diarization pipeline.
    
    Requires a HuggingFace token with access to the configured model, read
    from the environment variable named by `diarization.hf_token_env`.
    """
    
    def __init__(self):
        self.model_name = config.get('diarization.model', 'pyannote/speaker-diarization-3.1')
        self.num_speakers = config.get('diarization.num_speakers', 2)
        self.token_env = config.get('diarization.hf_token_env', 'HF_TOKEN')
        self.pipeline = None
    
    def _load_pipeline(self):
        """Load the pyannote pipeline, on GPU when configured and available.
        
        Raises:
            DiarizationError: If the pipeline cannot be loaded
        """
        try:
            import torch
            from pyannote.audio import Pipeline
            
            hf_token = os.environ.get(self.token_env)
            logger.info(f"Loading diarization pipeline: {self.model_name}")
            self.pipeline = Pipeline.from_pretrained(self.model_name, use_auth_token=hf_token)
            if self.pipeline is None:
                raise DiarizationError(f"Could not load {self.model_name}; check {self.token_env}")
            
            if config.get('performance.use_gpu', False) and torch.cuda.is_available():
                self.pipeline.to(torch.device("cuda"))
        except DiarizationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load diarization pipeline: {e}")
            raise DiarizationError(f"Failed to load diarization pipeline: {e}") from e
    
    def diarize(self, audio_path: Union[str, Path, None], num_speakers: Optional[int] = None) -> List[SpeakerSegment]:
        """Diarize an audio file.
        
        Args:
            audio_path: Converted mono audio file
            num_speakers: Speaker-count hint; the configured value when omitted
            
        Returns:
            Segments ordered by start time
        """
        if audio_path is None or not Path(audio_path).exists():
            raise AudioMissingError(f"Audio file not available: {audio_path}")
        
        if self.pipeline is None:
            self._load_pipeline()
        
        hint = num_speakers if num_speakers is not None else self.num_speakers
        logger.info(f"Running speaker diarization (num_speakers={hint})")
        try:
            result = self.pipeline(str(audio_path), num_speakers=hint)
        except Exception as e:
            logger.error(f"Diarization failed: {e}")
            raise DiarizationError(f"Diarization failed: {e}") from e
        
        annotation = getattr(result, 'speaker_diarization', result)
        segments = segments_from_turns(
            (turn.start, turn.end, label)
            for turn, _, label in annotation.itertracks(yield_label=True)
        )
        
        speakers = len({s.speaker_id for s in segments})
        logger.info(f"Diarization found {len(segments)} segments from {speakers} speakers")
        return segments
