"""Face landmark detection with MediaPipe Face Landmarker.

Each detected face is reduced to a bounding box (the extent of its landmark
mesh) and its inner/outer lip contours, expressed relative to that box.
Inference runs on a single dedicated worker thread.
"""

import asyncio
import logging
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional
import numpy as np

from activespeaker.models.frames import VideoFrame
from activespeaker.models.features import BoundingBox, FaceObservation
from activespeaker.models.interfaces import LandmarkDetectorInterface
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)

# MediaPipe 468-point face mesh lip contours
OUTER_LIP_INDICES = [61, 146, 91, 181, 84, 17, 314, 405, 321, 375, 291,
                     409, 270, 269, 267, 0, 37, 39, 40, 185]
INNER_LIP_INDICES = [78, 95, 88, 178, 87, 14, 317, 402, 318, 324, 308,
                     415, 310, 311, 312, 13, 82, 81, 80, 191]


class LandmarkDetectionError(Exception):
    """Exception raised when the landmark model cannot be loaded or run"""
    pass


def observation_from_landmarks(points: np.ndarray, confidence: float = 1.0) -> Optional[FaceObservation]:
    """Build a face observation from a normalized (N, 2) landmark array.
    
    Args:
        points: Landmark (x, y) coordinates normalized to the image
        confidence: Detector confidence for the face
        
    Returns:
        FaceObservation, or None if the mesh is degenerate
    """
    if len(points) <= max(max(OUTER_LIP_INDICES), max(INNER_LIP_INDICES)):
        logger.debug(f"Insufficient landmarks for lip contours: {len(points)}")
        return None
    
    points = np.clip(np.asarray(points, dtype=np.float64), 0.0, 1.0)
    x_min, y_min = points.min(axis=0)
    x_max, y_max = points.max(axis=0)
    width = x_max - x_min
    height = y_max - y_min
    if width <= 1e-6 or height <= 1e-6:
        return None
    
    box = BoundingBox(x=float(x_min), y=float(y_min), width=float(width), height=float(height))
    origin = np.array([x_min, y_min])
    scale = np.array([width, height])
    
    return FaceObservation(
        bounding_box=box,
        inner_lips=(points[INNER_LIP_INDICES] - origin) / scale,
        outer_lips=(points[OUTER_LIP_INDICES] - origin) / scale,
        confidence=float(min(max(confidence, 0.0), 1.0))
    )


class MediaPipeLandmarkDetector(LandmarkDetectorInterface):
    """Landmark detector backed by the MediaPipe Tasks Face Landmarker.
    
    Attributes:
        model_path: Local path of the .task model file
        max_faces: Maximum faces reported per image
        min_confidence: Minimum face detection confidence
    """
    
    def __init__(self, model_path: Optional[str] = None):
        self.model_path = Path(model_path or config.get('landmarks.model_path', 'models/face_landmarker.task'))
        self.model_url = config.get('landmarks.model_url')
        self.max_faces = config.get('landmarks.max_faces', 5)
        self.min_confidence = config.get('landmarks.min_detection_confidence', 0.5)
        
        self._landmarker = None
        self._mp = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="landmarks")
        
        logger.info(f"MediaPipeLandmarkDetector initialized with max_faces={self.max_faces}")
    
    def _load_model(self):
        """Create the Face Landmarker, downloading the model if needed.
        
        Raises:
            LandmarkDetectionError: If the model cannot be obtained or loaded
        """
        import mediapipe as mp
        from mediapipe.tasks import python
        from mediapipe.tasks.python import vision
        
        try:
            if not self.model_path.exists():
                if not self.model_url:
                    raise LandmarkDetectionError(f"Face landmarker model not found at {self.model_path}")
                logger.info(f"Downloading face landmarker model to {self.model_path}")
                self.model_path.parent.mkdir(parents=True, exist_ok=True)
                urllib.request.urlretrieve(self.model_url, self.model_path)
            
            options = vision.FaceLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=str(self.model_path)),
                running_mode=vision.RunningMode.IMAGE,
                num_faces=self.max_faces,
                min_face_detection_confidence=self.min_confidence,
                min_face_presence_confidence=self.min_confidence
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
            self._mp = mp
            logger.info("Face landmarker model loaded successfully")
        except LandmarkDetectionError:
            raise
        except Exception as e:
            logger.error(f"Failed to load face landmarker: {e}", exc_info=True)
            raise LandmarkDetectionError(f"Failed to load face landmarker: {e}") from e
    
    def detect_sync(self, frame: VideoFrame) -> List[FaceObservation]:
        """Blocking detection on one RGB frame"""
        if self._landmarker is None:
            self._load_model()
        
        image = np.ascontiguousarray(frame.image)
        mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=image)
        result = self._landmarker.detect(mp_image)
        
        observations = []
        for face_landmarks in result.face_landmarks or []:
            points = np.array([[lm.x, lm.y] for lm in face_landmarks], dtype=np.float64)
            observation = observation_from_landmarks(points)
            if observation is not None:
                observations.append(observation)
        
        logger.debug(f"Frame {frame.frame_number}: {len(observations)} faces")
        return observations
    
    async def detect(self, frame: VideoFrame) -> List[FaceObservation]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.detect_sync, frame)
    
    def close(self) -> None:
        self._executor.shutdown(wait=True)
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
