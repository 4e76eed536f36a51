"""Random-access video frame source backed by OpenCV"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

import cv2

from activespeaker.models.frames import VideoFrame
from activespeaker.models.interfaces import FrameSourceInterface
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class FrameDecodeError(Exception):
    """Exception raised when the video cannot be opened"""
    pass


class VideoFrameSource(FrameSourceInterface):
    """Decodes frames at arbitrary timestamps.
    
    All OpenCV calls run on one dedicated worker thread because a capture
    handle must not be used concurrently.
    """
    
    def __init__(self, video_path: Union[str, Path]):
        self.video_path = Path(video_path)
        if not self.video_path.exists():
            raise FileNotFoundError(f"Video file not found: {self.video_path}")
        
        self._capture = cv2.VideoCapture(str(self.video_path))
        if not self._capture.isOpened():
            raise FrameDecodeError(f"Could not open video: {self.video_path}")
        
        fps = self._capture.get(cv2.CAP_PROP_FPS)
        self._fps = fps if fps and fps > 0 else config.get('video.default_fps', 30.0)
        self._frame_count = int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT))
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="frame_decode")
        
        logger.info(f"Opened {self.video_path.name}: {self._frame_count} frames at {self._fps:.2f} fps")
    
    @property
    def frame_count(self) -> int:
        return self._frame_count
    
    @property
    def fps(self) -> float:
        return self._fps
    
    @property
    def duration(self) -> float:
        return self._frame_count / self._fps
    
    def read_frame(self, timestamp: float) -> Optional[VideoFrame]:
        """Blocking decode of the frame at `timestamp` (None if unavailable)"""
        self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
        ret, frame = self._capture.read()
        if not ret or frame is None:
            logger.debug(f"No frame available at {timestamp:.2f}s")
            return None
        
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return VideoFrame(
            image=rgb,
            timestamp=timestamp,
            frame_number=int(round(timestamp * self._fps))
        )
    
    async def get_frame(self, timestamp: float) -> Optional[VideoFrame]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.read_frame, timestamp)
    
    def close(self) -> None:
        self._executor.shutdown(wait=True)
        if self._capture is not None:
            self._capture.release()
            self._capture = None
