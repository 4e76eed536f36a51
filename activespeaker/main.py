"""Main Application Entry Point

This module orchestrates the offline active-speaker pipeline for one video:
audio preparation, speech recognition, speaker diarization, face tracking and
speaker/face association, followed by a single publication of the result.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from activespeaker.input.audio_preprocessor import AudioPreprocessor, resolve_audio_source
from activespeaker.input.video_source import FrameDecodeError, VideoFrameSource
from activespeaker.analysis.face_tracker import FaceTracker, track_faces
from activespeaker.analysis.landmarks import MediaPipeLandmarkDetector
from activespeaker.analysis.speaker_segments import SpeakerSegmentStore
from activespeaker.analysis.speech import WhisperRecognizer
from activespeaker.analysis.diarization import PyannoteDiarizer
from activespeaker.fusion.associator import SpeakerFaceAssociator
from activespeaker.fusion.playback import PlaybackStateTracker
from activespeaker.output.publisher import ResultPublisher
from activespeaker.models.enums import PipelineStage
from activespeaker.models.interfaces import (
    DiarizerInterface,
    FrameSourceInterface,
    LandmarkDetectorInterface,
    SpeechRecognizerInterface
)
from activespeaker.models.results import FaceProfile, FusionResult, SpeakerSegment, Utterance
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class ActiveSpeakerEngine:
    """Main orchestrator for the speaker/face association pipeline.
    
    Audio conversion runs in a background thread while the face-tracking pass
    runs as an independent asyncio task. Recognition and diarization run in
    worker threads once the audio is ready. Fusion starts only after all of
    them have finished and publishes exactly once.
    
    Collaborators are created from configuration unless injected.
    
    Attributes:
        video_path: Video being analyzed
        audio_path: Optional separate audio file
        stage: Current pipeline stage
        fusion_complete: Set once the result has been published
        result: Published fusion result
        playback: Playback state tracker bound to the published result
    """
    
    def __init__(
        self,
        video_path: str,
        audio_path: Optional[str] = None,
        recognizer: Optional[SpeechRecognizerInterface] = None,
        diarizer: Optional[DiarizerInterface] = None,
        frame_source: Optional[FrameSourceInterface] = None,
        detector: Optional[LandmarkDetectorInterface] = None,
        preprocessor: Optional[AudioPreprocessor] = None,
        publisher: Optional[ResultPublisher] = None
    ):
        logger.info(f"Initializing ActiveSpeakerEngine for {video_path}")
        
        self.video_path = Path(video_path)
        self.audio_path = Path(audio_path) if audio_path else None
        
        self.recognizer = recognizer or WhisperRecognizer()
        self.diarizer = diarizer or PyannoteDiarizer()
        self.preprocessor = preprocessor or AudioPreprocessor()
        self.publisher = publisher or ResultPublisher()
        self._frame_source = frame_source
        self._detector = detector
        
        self.stage = PipelineStage.IDLE
        self.fusion_complete = False
        self.result: Optional[FusionResult] = None
        self.playback = PlaybackStateTracker()
        
        self.tasks: List[asyncio.Task] = []
    
    @property
    def progress(self) -> float:
        return self.stage.progress
    
    @property
    def frame_source(self) -> FrameSourceInterface:
        if self._frame_source is None:
            self._frame_source = VideoFrameSource(self.video_path)
        return self._frame_source
    
    @property
    def detector(self) -> LandmarkDetectorInterface:
        if self._detector is None:
            self._detector = MediaPipeLandmarkDetector()
        return self._detector
    
    def _open_frame_source(self) -> Optional[FrameSourceInterface]:
        """Open the video for frame decoding; an unreadable video yields None"""
        try:
            return self.frame_source
        except (FrameDecodeError, OSError) as e:
            logger.error(f"Cannot decode video frames, continuing without faces: {e}")
            return None
    
    def _set_stage(self, stage: PipelineStage) -> None:
        self.stage = stage
        logger.info(f"Stage: {stage.value} ({stage.progress:.0%})")
    
    async def recognize_speech(self, audio_file: Path) -> List[Utterance]:
        """Transcribe in a worker thread; a failure yields no utterances"""
        try:
            utterances = await asyncio.to_thread(self.recognizer.recognize, audio_file)
        except Exception as e:
            logger.error(f"Speech recognition failed, continuing without utterances: {e}", exc_info=True)
            return []
        logger.info(f"Speech recognition produced {len(utterances)} utterances")
        return utterances
    
    async def diarize(self, audio_file: Path) -> List[SpeakerSegment]:
        """Diarize in a worker thread; a failure yields no segments"""
        hint = config.get('diarization.num_speakers', 2)
        try:
            segments = await asyncio.to_thread(self.diarizer.diarize, audio_file, hint)
        except Exception as e:
            logger.error(f"Diarization failed, continuing without segments: {e}", exc_info=True)
            return []
        logger.info(f"Diarization produced {len(segments)} segments")
        return segments
    
    async def _await_tracking(self, task: asyncio.Task) -> List[FaceProfile]:
        try:
            faces = await task
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Face tracking failed, continuing without faces: {e}", exc_info=True)
            return []
        logger.info(f"Face tracking produced {len(faces)} face profiles")
        return faces
    
    async def run(self) -> FusionResult:
        """Run the complete pipeline once.
        
        Returns:
            The published FusionResult
            
        Raises:
            AudioMissingError: If no audio source exists
            AudioPreparationError: If the audio cannot be converted
        """
        logger.info("=" * 60)
        logger.info(f"Starting active speaker analysis: {self.video_path}")
        logger.info("=" * 60)
        
        tracking_task = None
        try:
            self._set_stage(PipelineStage.AUDIO_PREPARATION)
            source = resolve_audio_source(self.video_path, self.audio_path)
            self.preprocessor.prepare(source)
            
            frames = self._open_frame_source()
            if frames is not None:
                tracking_task = asyncio.create_task(
                    track_faces(frames, self.detector, FaceTracker()),
                    name="face_tracking"
                )
                self.tasks.append(tracking_task)
            
            audio_file = await self.preprocessor.wait_until_ready()
            logger.info(f"Audio ready: {audio_file}")
            
            self._set_stage(PipelineStage.SPEECH_RECOGNITION)
            utterances = await self.recognize_speech(audio_file)
            
            self._set_stage(PipelineStage.DIARIZATION)
            segments = await self.diarize(audio_file)
            
            self._set_stage(PipelineStage.FACE_TRACKING)
            faces = await self._await_tracking(tracking_task) if tracking_task is not None else []
            
            self._set_stage(PipelineStage.FUSION)
            store = SpeakerSegmentStore(segments)
            matched_utterances = store.match_utterances(utterances)
            associator = SpeakerFaceAssociator(frames, self.detector)
            result = await associator.associate(matched_utterances, store.profiles, faces)
            
            await self.publisher.publish(result, self.video_path)
            self.result = result
            self.playback.load(result.matched_speakers)
            self.fusion_complete = True
            self._set_stage(PipelineStage.COMPLETE)
            
            matched = sum(1 for s in result.matched_speakers if s.is_matched)
            logger.info(f"Fusion complete: {matched}/{len(result.matched_speakers)} speakers matched")
            return result
        except BaseException:
            self._set_stage(PipelineStage.FAILED)
            if tracking_task is not None and not tracking_task.done():
                tracking_task.cancel()
                await asyncio.gather(tracking_task, return_exceptions=True)
            raise
    
    async def shutdown(self):
        """Cancel outstanding tasks and release owned resources"""
        logger.info("Shutting down ActiveSpeakerEngine...")
        
        for task in self.tasks:
            if not task.done():
                task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        
        for resource in (self._frame_source, self._detector):
            close = getattr(resource, 'close', None)
            if close is not None:
                close()
        
        logger.info("ActiveSpeakerEngine shutdown complete")


def setup_signal_handlers(main_task: asyncio.Task):
    """Cancel the running pipeline on SIGINT/SIGTERM.
    
    Args:
        main_task: Task running the engine
    """
    loop = asyncio.get_running_loop()
    
    def signal_handler(signum):
        logger.info(f"Received signal {signum}")
        main_task.cancel()
    
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows event loops
            pass


async def main_async(argv: List[str]) -> int:
    """Async main entry point."""
    if not argv:
        logger.error("Usage: activespeaker <video_path> [audio_path]")
        return 2
    
    video_path = argv[0]
    audio_path = argv[1] if len(argv) > 1 else None
    
    if not Path(video_path).exists():
        logger.error(f"Video file not found: {video_path}")
        return 1
    
    config.validate()
    engine = ActiveSpeakerEngine(video_path, audio_path)
    
    run_task = asyncio.create_task(engine.run(), name="active_speaker_engine")
    setup_signal_handlers(run_task)
    
    try:
        result = await run_task
    except asyncio.CancelledError:
        logger.info("Analysis cancelled")
        return 130
    finally:
        await engine.shutdown()
    
    for speaker in result.matched_speakers:
        if speaker.is_matched:
            x, y = speaker.position
            logger.info(f"Speaker {speaker.speaker_id}: face {speaker.face_id} at ({x:.2f}, {y:.2f})")
        else:
            logger.info(f"Speaker {speaker.speaker_id}: no face")
    return 0


def main():
    """Main entry point."""
    log_file = Path(config.get('logging.file', 'logs/activespeaker.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)
    
    logging.basicConfig(
        level=getattr(logging, str(config.get('logging.level', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )
    
    try:
        status = asyncio.run(main_async(sys.argv[1:]))
    except KeyboardInterrupt:
        logger.info("Application terminated by user")
        status = 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        status = 1
    sys.exit(status)


if __name__ == "__main__":
    main()
