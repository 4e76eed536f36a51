"""Speech recognition with OpenAI Whisper.

Produces time-stamped utterances from a converted audio file. Utterances are
either Whisper's phrase-level segments or individual words, depending on the
configured granularity.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from activespeaker.models.results import Utterance
from activespeaker.models.interfaces import SpeechRecognizerInterface
from activespeaker.input.audio_preprocessor import AudioMissingError
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class RecognizerUnavailableError(Exception):
    """Raised when the speech recognition model cannot be loaded"""
    pass


class SpeechRecognitionError(Exception):
    """Raised when transcription fails"""
    pass


class WhisperRecognizer(SpeechRecognizerInterface):
    """Transcribes audio into utterances using Whisper.
    
    Attributes:
        model_name: Whisper model size (e.g. "base")
        language: Spoken language hint
        granularity: "segment" or "word"
        device: "cuda" or "cpu"
    """
    
    def __init__(self):
        self.model_name = config.get('speech.whisper_model', 'base')
        self.language = config.get('speech.language', 'en')
        self.granularity = config.get('speech.granularity', 'segment')
        if self.granularity not in ('segment', 'word'):
            raise ValueError(f"Invalid speech.granularity: {self.granularity}")
        self.device: Optional[str] = None
        self.model = None
    
    def _load_model(self):
        """Load the Whisper model onto the configured device.
        
        Raises:
            RecognizerUnavailableError: If the model cannot be loaded
        """
        try:
            import torch
            import whisper
            
            self.device = "cuda" if config.get('performance.use_gpu', False) and torch.cuda.is_available() else "cpu"
            logger.info(f"Loading Whisper model: {self.model_name} on {self.device}")
            self.model = whisper.load_model(self.model_name, device=self.device)
            logger.info("Whisper model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            raise RecognizerUnavailableError(f"Speech recognizer is not available: {e}") from e
    
    @staticmethod
    def utterances_from_result(result: dict, granularity: str = 'segment') -> List[Utterance]:
        """Convert a Whisper transcription result into utterances.
        
        Entries with a missing or reversed time range are dropped.
        """
        utterances = []
        for segment in result.get('segments', []):
            if granularity == 'word':
                entries = [(w.get('word', ''), w.get('start'), w.get('end')) for w in segment.get('words', [])]
            else:
                entries = [(segment.get('text', ''), segment.get('start'), segment.get('end'))]
            
            for text, start, end in entries:
                if start is None or end is None or end < start or start < 0:
                    continue
                utterances.append(Utterance(text=text.strip(), start_time=float(start), end_time=float(end)))
        
        utterances.sort(key=lambda u: (u.start_time, u.end_time))
        return utterances
    
    def recognize(self, audio_path: Union[str, Path, None]) -> List[Utterance]:
        """Transcribe an audio file.
        
        Args:
            audio_path: Converted mono audio file
            
        Returns:
            Utterances ordered by start time
            
        Raises:
            AudioMissingError: If the audio file is not available
            RecognizerUnavailableError: If Whisper cannot be loaded
            SpeechRecognitionError: If transcription fails
        """
        if audio_path is None or not Path(audio_path).exists():
            raise AudioMissingError(f"Audio file not available: {audio_path}")
        
        if self.model is None:
            self._load_model()
        
        try:
            result = self.model.transcribe(
                str(audio_path),
                fp16=(self.device == "cuda"),
                language=self.language,
                word_timestamps=(self.granularity == 'word')
            )
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise SpeechRecognitionError(f"Failed to transcribe speech: {e}") from e
        
        utterances = self.utterances_from_result(result, self.granularity)
        logger.info(f"Recognized {len(utterances)} utterances")
        return utterances
