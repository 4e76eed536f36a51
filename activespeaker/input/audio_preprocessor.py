"""Audio preparation: converts the source media into a mono 16-bit WAV file.

Conversion runs in a background thread; callers poll `is_ready` (or await
`wait_until_ready`) before handing the file to the recognizer and diarizer.
"""

import asyncio
import logging
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

import av
import numpy as np
import soundfile as sf

from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class AudioMissingError(Exception):
    """Raised when no audio source can be resolved"""
    pass


class AudioPreparationError(Exception):
    """Raised when the audio source cannot be converted"""
    pass


def resolve_audio_source(video_path: Union[str, Path, None], audio_path: Union[str, Path, None] = None) -> Path:
    """Pick the audio source: an explicit audio file first, else the video itself.
    
    Raises:
        AudioMissingError: If neither path exists
    """
    for candidate in (audio_path, video_path):
        if candidate and Path(candidate).exists():
            return Path(candidate)
    raise AudioMissingError(f"No audio source found (audio={audio_path}, video={video_path})")


class AudioPreprocessor:
    """Converts media files to mono PCM WAV at a fixed sample rate.
    
    Attributes:
        sample_rate: Output sample rate in Hz
        output_dir: Directory for converted files
        audio_path: Converted file, set once conversion succeeds
        error: Conversion failure, if any
    """
    
    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        self.sample_rate = config.get('audio.sample_rate', 16000)
        self.poll_interval = config.get('audio.poll_interval', 0.1)
        
        out = output_dir or config.get('audio.output_dir')
        self.output_dir = Path(out) if out else Path(tempfile.gettempdir()) / "activespeaker"
        
        self.audio_path: Optional[Path] = None
        self.error: Optional[Exception] = None
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None
    
    @property
    def is_ready(self) -> bool:
        return self._ready.is_set() and self.error is None
    
    @property
    def is_finished(self) -> bool:
        return self._ready.is_set()
    
    def convert(self, source: Union[str, Path]) -> Path:
        """Decode, downmix and resample a media file into a WAV file.
        
        Args:
            source: Any media file with an audio stream
            
        Returns:
            Path to the converted WAV file
            
        Raises:
            AudioPreparationError: If the file has no audio or cannot be decoded
        """
        source = Path(source)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.output_dir / f"{source.stem}.mono{self.sample_rate}.wav"
        
        try:
            with av.open(str(source)) as container:
                if not container.streams.audio:
                    raise AudioPreparationError(f"No audio stream in {source}")
                
                audio_stream = container.streams.audio[0]
                resampler = av.AudioResampler(format='s16', layout='mono', rate=self.sample_rate)
                
                chunks = []
                for frame in container.decode(audio_stream):
                    for resampled in resampler.resample(frame):
                        chunks.append(resampled.to_ndarray().reshape(-1))
                for resampled in resampler.resample(None):
                    chunks.append(resampled.to_ndarray().reshape(-1))
        except AudioPreparationError:
            raise
        except Exception as e:
            raise AudioPreparationError(f"Failed to decode audio from {source}: {e}") from e
        
        samples = np.concatenate(chunks).astype(np.int16) if chunks else np.zeros(0, dtype=np.int16)
        
        sf.write(str(out_path), samples, self.sample_rate, subtype='PCM_16')
        
        logger.info(f"Converted {source.name} to {out_path} "
                    f"({len(samples) / self.sample_rate:.1f}s at {self.sample_rate} Hz)")
        return out_path
    
    def _run(self, source: Path) -> None:
        try:
            self.audio_path = self.convert(source)
        except Exception as e:
            logger.error(f"Error converting audio: {e}")
            self.error = e
        finally:
            self._ready.set()
    
    def prepare(self, source: Union[str, Path]) -> None:
        """Start converting `source` in a background thread"""
        self.audio_path = None
        self.error = None
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, args=(Path(source),),
                                        name="audio_preprocessor", daemon=True)
        self._thread.start()
    
    async def wait_until_ready(self) -> Path:
        """Poll until conversion finishes.
        
        Returns:
            Path to the converted audio
            
        Raises:
            AudioPreparationError: If conversion failed
        """
        while not self._ready.is_set():
            await asyncio.sleep(self.poll_interval)
        
        if self.error is not None:
            if isinstance(self.error, AudioPreparationError):
                raise self.error
            raise AudioPreparationError(str(self.error)) from self.error
        return self.audio_path
