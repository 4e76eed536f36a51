"""Face Tracking Module

This module links noisy per-frame face detections into stable face tracks and
finalizes them into face profiles. Tracks are extended by spatial and temporal
continuity: a detection joins the nearest active track whose smoothed center is
close enough and which was seen recently enough; otherwise it starts a new
track.

Each tracked sample also carries a speaking flag derived from mouth openness
relative to the track's own running average, so that a face with a habitually
open mouth is not mistaken for a constant speaker.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import numpy as np

from activespeaker.models.features import BoundingBox, FaceObservation, FaceSample
from activespeaker.models.results import FaceProfile
from activespeaker.models.interfaces import FrameSourceInterface, LandmarkDetectorInterface
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class FaceTrackingError(Exception):
    """Exception raised when frames are fed to the tracker out of order"""
    pass


@dataclass
class FaceTrack:
    """Mutable state of one face track while the tracking pass runs
    
    Attributes:
        track_id: Index of the track in the tracker's arena
        avg_position: Exponentially smoothed (x, y) center
        last_box: Most recent bounding box
        last_time: Timestamp of the most recent sample
        samples: Samples in strictly increasing timestamp order
        mouth_sum: Running sum of mouth openness
        mouth_count: Number of mouth openness values summed
    """
    track_id: int
    avg_position: Tuple[float, float]
    last_box: BoundingBox
    last_time: float
    samples: List[FaceSample] = field(default_factory=list)
    mouth_sum: float = 0.0
    mouth_count: int = 0
    
    @property
    def avg_mouth_openness(self) -> float:
        if self.mouth_count == 0:
            return 0.0
        return self.mouth_sum / self.mouth_count


class FaceTracker:
    """Builds face tracks from sampled detections and emits face profiles.
    
    Tracks live in an arena indexed by their integer id. A separate list holds
    the ids of tracks that may still be extended; tracks idle for longer than
    the temporal gate drop out of it but keep their history for finalization.
    
    Attributes:
        spatial_gate: Maximum center distance (normalized) to join a track
        temporal_gate: Maximum idle time (seconds) to join a track
        smoothing: Weight of the previous average when updating a track center
        min_samples: Minimum number of samples for a track to become a profile
        speaking_floor: Lower bound of the speaking threshold
        speaking_ratio: Multiple of the running average that counts as speaking
    """
    
    def __init__(
        self,
        spatial_gate: Optional[float] = None,
        temporal_gate: Optional[float] = None,
        smoothing: Optional[float] = None,
        min_samples: Optional[int] = None,
        speaking_floor: Optional[float] = None,
        speaking_ratio: Optional[float] = None
    ):
        self.spatial_gate = spatial_gate if spatial_gate is not None else config.get('tracking.spatial_gate', 0.15)
        self.temporal_gate = temporal_gate if temporal_gate is not None else config.get('tracking.temporal_gate', 1.0)
        self.smoothing = smoothing if smoothing is not None else config.get('tracking.smoothing', 0.7)
        self.min_samples = min_samples if min_samples is not None else config.get('tracking.min_samples', 10)
        self.speaking_floor = speaking_floor if speaking_floor is not None else config.get('tracking.speaking_floor', 0.05)
        self.speaking_ratio = speaking_ratio if speaking_ratio is not None else config.get('tracking.speaking_ratio', 1.5)
        
        self._tracks: List[FaceTrack] = []
        self._active: List[int] = []
        self._last_frame_time: Optional[float] = None
        
        logger.debug(f"FaceTracker initialized with spatial_gate={self.spatial_gate}, "
                     f"temporal_gate={self.temporal_gate}s")
    
    @property
    def track_count(self) -> int:
        return len(self._tracks)
    
    @property
    def active_track_ids(self) -> Tuple[int, ...]:
        return tuple(self._active)
    
    def track_samples(self, track_id: int) -> Tuple[FaceSample, ...]:
        """Read-only copy of a track's sample history"""
        return tuple(self._tracks[track_id].samples)
    
    def reset(self) -> None:
        self._tracks = []
        self._active = []
        self._last_frame_time = None
    
    def _find_track(self, center: Tuple[float, float], timestamp: float) -> Optional[FaceTrack]:
        """Return the nearest active track that can absorb a detection.
        
        A track qualifies when its smoothed center lies within the spatial gate,
        it was updated less than the temporal gate ago, and it has not already
        received a sample at this timestamp. Ties on distance go to the lowest
        track id.
        """
        best: Optional[Tuple[float, int]] = None
        for track_id in self._active:
            track = self._tracks[track_id]
            elapsed = timestamp - track.last_time
            if elapsed <= 0 or elapsed >= self.temporal_gate:
                continue
            
            distance = float(np.hypot(center[0] - track.avg_position[0],
                                      center[1] - track.avg_position[1]))
            if distance >= self.spatial_gate:
                continue
            
            if best is None or (distance, track_id) < best:
                best = (distance, track_id)
        
        return self._tracks[best[1]] if best is not None else None
    
    def _new_track(self, box: BoundingBox, timestamp: float) -> FaceTrack:
        track = FaceTrack(
            track_id=len(self._tracks),
            avg_position=box.center,
            last_box=box,
            last_time=timestamp
        )
        self._tracks.append(track)
        self._active.append(track.track_id)
        return track
    
    def process_frame(self, observations: List[FaceObservation], timestamp: float) -> List[int]:
        """Associate one frame's detections with tracks.
        
        Args:
            observations: Faces detected in the frame
            timestamp: Frame time in seconds; must exceed the previous frame's
            
        Returns:
            The track id assigned to each observation, in input order
            
        Raises:
            FaceTrackingError: If timestamp does not increase
        """
        if self._last_frame_time is not None and timestamp <= self._last_frame_time:
            raise FaceTrackingError(
                f"Frame timestamp {timestamp:.3f}s does not follow {self._last_frame_time:.3f}s"
            )
        self._last_frame_time = timestamp
        
        assigned = []
        for observation in observations:
            box = observation.bounding_box
            center = box.center
            mouth_openness = observation.mouth_openness
            
            track = self._find_track(center, timestamp)
            if track is None:
                track = self._new_track(box, timestamp)
                logger.debug(f"New face track {track.track_id} at ({center[0]:.3f}, {center[1]:.3f}), "
                             f"t={timestamp:.2f}s")
            else:
                w = self.smoothing
                track.avg_position = (
                    track.avg_position[0] * w + center[0] * (1 - w),
                    track.avg_position[1] * w + center[1] * (1 - w)
                )
                track.last_box = box
                track.last_time = timestamp
            
            track.mouth_sum += mouth_openness
            track.mouth_count += 1
            threshold = max(self.speaking_floor, track.avg_mouth_openness * self.speaking_ratio)
            
            track.samples.append(FaceSample(
                timestamp=timestamp,
                bounding_box=box,
                mouth_openness=mouth_openness,
                is_speaking=mouth_openness > threshold
            ))
            assigned.append(track.track_id)
        
        # Idle tracks stop growing; their history is kept
        self._active = [
            track_id for track_id in self._active
            if timestamp - self._tracks[track_id].last_time <= self.temporal_gate
        ]
        
        return assigned
    
    def finalize(self) -> List[FaceProfile]:
        """Convert sufficiently long tracks into face profiles.
        
        Returns:
            Profiles of tracks with at least `min_samples` samples, ordered by
            ascending mean x-position (track id breaks ties)
        """
        profiles = []
        for track in self._tracks:
            if len(track.samples) < self.min_samples:
                logger.debug(f"Dropping face track {track.track_id} with {len(track.samples)} samples")
                continue
            
            centers = np.array([s.center for s in track.samples], dtype=np.float64)
            openness = np.array([s.mouth_openness for s in track.samples], dtype=np.float64)
            mean_x, mean_y = centers.mean(axis=0)
            
            profiles.append(FaceProfile(
                face_id=track.track_id,
                samples=tuple(track.samples),
                mean_position=(float(mean_x), float(mean_y)),
                mean_mouth_openness=float(openness.mean())
            ))
        
        profiles.sort(key=lambda p: (p.mean_position[0], p.face_id))
        logger.info(f"Finalized {len(profiles)} face profiles from {len(self._tracks)} tracks")
        return profiles


def sampling_interval(total_frames: int, target_samples: Optional[int] = None) -> int:
    """Frame stride that yields roughly `target_samples` samples"""
    target = target_samples if target_samples is not None else config.get('tracking.target_samples', 300)
    return max(total_frames // target, 1)


async def track_faces(
    frame_source: FrameSourceInterface,
    detector: LandmarkDetectorInterface,
    tracker: Optional[FaceTracker] = None
) -> List[FaceProfile]:
    """Run the face-tracking pass over a whole video.
    
    Frames are sampled at a fixed stride across the video. Frames that fail to
    decode or to run through the detector are skipped.
    
    Args:
        frame_source: Video frame source
        detector: Face-landmark detector
        tracker: Tracker to feed; a fresh one is created when omitted
        
    Returns:
        Finalized face profiles
    """
    tracker = tracker or FaceTracker()
    total_frames = frame_source.frame_count
    fps = frame_source.fps
    interval = sampling_interval(total_frames)
    
    logger.info(f"Tracking faces over {total_frames} frames (every {interval} frames at {fps:.2f} fps)")
    
    processed = 0
    for frame_idx in range(0, total_frames, interval):
        timestamp = frame_idx / fps
        try:
            frame = await frame_source.get_frame(timestamp)
        except Exception as e:
            logger.warning(f"Frame decode failed at {timestamp:.2f}s: {e}")
            continue
        if frame is None:
            continue
        
        try:
            observations = await detector.detect(frame)
        except Exception as e:
            logger.warning(f"Landmark detection failed at {timestamp:.2f}s: {e}")
            continue
        
        tracker.process_frame(observations, timestamp)
        processed += 1
    
    logger.info(f"Face tracking processed {processed} sampled frames")
    return tracker.finalize()
