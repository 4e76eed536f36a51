"""Face/speaker affinity scoring

This module holds the scoring functions used to associate faces with diarized
speakers. Two levels of evidence are computed:

1. Segment affinity (coarse): for every diarized segment, the speaking samples
   of each face inside the segment contribute their mouth openness, weighted
   by a triangular window that peaks at the segment midpoint and vanishes at
   its edges. Results accumulate in a face x speaker matrix.
2. Fine match score: a single detection at time t is compared against a face
   profile in the context of one candidate speaker, combining box overlap,
   temporal proximity, raw mouth openness, normalized segment affinity and the
   spatial consistency of the face across the speaker's segments.

All scoring functions are pure: they read their inputs and return numbers.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import numpy as np

from activespeaker.models.features import BoundingBox
from activespeaker.models.results import FaceProfile, SpeakerProfile, SpeakerSegment
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


DEFAULT_WEIGHTS = {
    'iou': 0.3,
    'temporal': 0.2,
    'mouth': 0.2,
    'segment': 0.2,
    'spatial': 0.1
}


class AffinityTable:
    """Dense face x speaker matrix addressed by face and speaker ids.
    
    Unknown ids read as 0.0.
    """
    
    def __init__(self, face_ids: Sequence[int], speaker_ids: Sequence[int]):
        self.face_ids = list(face_ids)
        self.speaker_ids = list(speaker_ids)
        self._face_index = {face_id: i for i, face_id in enumerate(self.face_ids)}
        self._speaker_index = {speaker_id: j for j, speaker_id in enumerate(self.speaker_ids)}
        self.matrix = np.zeros((len(self.face_ids), len(self.speaker_ids)), dtype=np.float64)
    
    def get(self, face_id: int, speaker_id: int) -> float:
        i = self._face_index.get(face_id)
        j = self._speaker_index.get(speaker_id)
        if i is None or j is None:
            return 0.0
        return float(self.matrix[i, j])
    
    def set(self, face_id: int, speaker_id: int, value: float) -> None:
        self.matrix[self._face_index[face_id], self._speaker_index[speaker_id]] = value
    
    def add(self, face_id: int, speaker_id: int, value: float) -> None:
        self.matrix[self._face_index[face_id], self._speaker_index[speaker_id]] += value
    
    def best_face(self, speaker_id: int) -> Optional[Tuple[int, float]]:
        """Face with the highest strictly positive value for a speaker.
        
        Returns:
            (face_id, value), or None if no face has a positive value. Equal
            values resolve to the lowest face id.
        """
        j = self._speaker_index.get(speaker_id)
        if j is None:
            return None
        
        best = None
        for i, face_id in enumerate(self.face_ids):
            value = float(self.matrix[i, j])
            if value <= 0:
                continue
            if best is None or value > best[1] or (value == best[1] and face_id < best[0]):
                best = (face_id, value)
        return best
    
    def to_dict(self) -> Dict[int, Dict[int, float]]:
        return {
            face_id: {
                speaker_id: float(self.matrix[i, j])
                for j, speaker_id in enumerate(self.speaker_ids)
            }
            for i, face_id in enumerate(self.face_ids)
        }


@dataclass(frozen=True)
class MatchScore:
    """Components of a fine match score between a detection and a face
    
    Attributes:
        face_id: Face profile that was scored
        iou: Overlap with the face's nearest-in-time sample box
        temporal: 1 at zero time offset, falling to 0 at the time limit
        mouth: Raw mouth openness of the detection
        segment: Normalized segment affinity for the candidate speaker
        spatial: Spatial consistency of the face over the speaker's segments
        total: Weighted sum of the components
    """
    face_id: int
    iou: float
    temporal: float
    mouth: float
    segment: float
    spatial: float
    total: float


class AffinityScorer:
    """Scores face/speaker associations at segment and sample level.
    
    Attributes:
        max_time_delta: A face is only eligible when it has a sample closer
                        than this to the detection time (seconds)
        affinity_normalization: Divisor mapping raw segment affinity to [0, 1]
        spatial_samples: Probe points per segment for spatial consistency
        weights: Weights of the fine score components
        position_variance_weight: Weight of position variance in consistency
        time_variance_weight: Weight of timestamp variance in consistency
    """
    
    def __init__(self):
        self.max_time_delta = config.get('fusion.max_time_delta', 0.5)
        self.affinity_normalization = config.get('fusion.affinity_normalization', 100.0)
        self.spatial_samples = config.get('fusion.spatial_samples', 5)
        self.weights = dict(DEFAULT_WEIGHTS)
        self.weights.update(config.get('fusion.weights', {}))
        self.position_variance_weight = config.get('fusion.spatial_variance_weights.position', 0.7)
        self.time_variance_weight = config.get('fusion.spatial_variance_weights.time', 0.3)
    
    # ------------------------------------------------------------------
    # Segment-level affinity
    # ------------------------------------------------------------------
    
    @staticmethod
    def segment_affinity(segment: SpeakerSegment, face: FaceProfile) -> float:
        """Triangular-weighted mouth activity of a face inside one segment.
        
        Only samples flagged as speaking within [start, end] contribute. A
        zero-length segment contributes nothing.
        """
        duration = segment.duration
        if duration <= 0:
            return 0.0
        
        midpoint = segment.midpoint
        total = 0.0
        for sample in face.samples_between(segment.start, segment.end):
            if not sample.is_speaking:
                continue
            weight = 1.0 - min(1.0, abs(sample.timestamp - midpoint) / duration)
            total += sample.mouth_openness * weight
        return total
    
    def build_affinity_table(
        self,
        speakers: Iterable[SpeakerProfile],
        faces: Sequence[FaceProfile]
    ) -> AffinityTable:
        """Accumulate segment affinity for every face and speaker"""
        speakers = list(speakers)
        table = AffinityTable([f.face_id for f in faces], [s.speaker_id for s in speakers])
        
        for speaker in speakers:
            for segment in speaker.segments:
                for face in faces:
                    table.add(face.face_id, speaker.speaker_id, self.segment_affinity(segment, face))
        
        logger.debug(f"Segment affinity table: {table.to_dict()}")
        return table
    
    # ------------------------------------------------------------------
    # Spatial consistency
    # ------------------------------------------------------------------
    
    def spatial_consistency(self, face: FaceProfile, speaker: SpeakerProfile) -> float:
        """How steady a face stays across the speaker's segments.
        
        Each segment is probed at evenly spaced points; for each probe the
        face's nearest-in-time sample is taken. Lower variance of the sampled
        centers and of their timestamps gives a score closer to 1.
        
        Returns:
            Score in [0, 1]; 1.0 when fewer than two samples could be gathered
        """
        positions: List[Tuple[float, float]] = []
        timestamps: List[float] = []
        
        for segment in speaker.segments:
            for probe in np.linspace(segment.start, segment.end, self.spatial_samples):
                closest = face.closest_sample(float(probe))
                if closest is None:
                    continue
                positions.append(closest.center)
                timestamps.append(closest.timestamp)
        
        if len(positions) < 2:
            return 1.0
        
        points = np.asarray(positions, dtype=np.float64)
        position_variance = float(np.var(points, axis=0).sum())
        time_variance = float(np.var(np.asarray(timestamps, dtype=np.float64)))
        
        score = 1.0 / (1.0 + self.position_variance_weight * position_variance
                       + self.time_variance_weight * time_variance)
        return min(max(score, 0.0), 1.0)
    
    def build_consistency_table(
        self,
        speakers: Iterable[SpeakerProfile],
        faces: Sequence[FaceProfile]
    ) -> AffinityTable:
        """Spatial consistency for every face and speaker"""
        speakers = list(speakers)
        table = AffinityTable([f.face_id for f in faces], [s.speaker_id for s in speakers])
        for speaker in speakers:
            for face in faces:
                table.set(face.face_id, speaker.speaker_id, self.spatial_consistency(face, speaker))
        return table
    
    # ------------------------------------------------------------------
    # Sample-level score
    # ------------------------------------------------------------------
    
    def fine_score(
        self,
        bounding_box: BoundingBox,
        mouth_openness: float,
        t: float,
        face: FaceProfile,
        speaker_id: int,
        affinity: AffinityTable,
        consistency: AffinityTable
    ) -> Optional[MatchScore]:
        """Score one detection against one face for a candidate speaker.
        
        Args:
            bounding_box: Detection box
            mouth_openness: Detection mouth openness (used unnormalized)
            t: Detection time in seconds
            face: Face profile to compare against
            speaker_id: Candidate speaker
            affinity: Segment affinity table
            consistency: Spatial consistency table
            
        Returns:
            Score breakdown, or None when the face has no sample within
            `max_time_delta` of t
        """
        closest = face.closest_sample(t)
        if closest is None:
            return None
        
        time_delta = abs(closest.timestamp - t)
        if time_delta >= self.max_time_delta:
            return None
        
        iou = bounding_box.iou(closest.bounding_box)
        temporal = 1.0 - min(1.0, time_delta / self.max_time_delta)
        segment = min(affinity.get(face.face_id, speaker_id) / self.affinity_normalization, 1.0)
        spatial = consistency.get(face.face_id, speaker_id)
        
        total = (iou * self.weights['iou'] +
                 temporal * self.weights['temporal'] +
                 mouth_openness * self.weights['mouth'] +
                 segment * self.weights['segment'] +
                 spatial * self.weights['spatial'])
        
        return MatchScore(
            face_id=face.face_id,
            iou=iou,
            temporal=temporal,
            mouth=mouth_openness,
            segment=segment,
            spatial=spatial,
            total=total
        )
    
    def best_match(
        self,
        bounding_box: BoundingBox,
        mouth_openness: float,
        t: float,
        faces: Sequence[FaceProfile],
        speaker_id: int,
        affinity: AffinityTable,
        consistency: AffinityTable,
        floor: float
    ) -> Optional[MatchScore]:
        """Best-scoring face for a detection, if any beats the floor.
        
        A candidate replaces the current best only with a strictly higher
        score, starting from `floor`; earlier faces in `faces` win ties.
        """
        best: Optional[MatchScore] = None
        best_total = floor
        for face in faces:
            score = self.fine_score(bounding_box, mouth_openness, t, face, speaker_id, affinity, consistency)
            if score is None:
                continue
            if score.total > best_total:
                best = score
                best_total = score.total
        return best
