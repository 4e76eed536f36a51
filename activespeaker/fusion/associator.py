"""Speaker/Face Association

This module resolves which face belongs to which diarized speaker. It is the
final, authoritative stage of the pipeline and runs once per video.

The association algorithm:
1. Pre-compute segment affinity and spatial consistency for every face and
   speaker (see fusion.affinity)
2. For each utterance bound to a speaker, sample the utterance interval at a
   fixed step, decode the frame at each sample time and run landmark detection
3. Discard detections whose mouth is nearly closed, score the rest against
   every face profile and record a vote for the best face above the floor
4. Per speaker, sum vote scores by face and pick the face with the largest sum
5. Speakers without votes fall back to the face with the highest positive
   segment affinity, or stay unmatched

Two speakers may end up with the same face; no exclusivity is enforced.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from activespeaker.models.features import FaceObservation
from activespeaker.models.results import (
    FaceProfile,
    FusionResult,
    MatchedSpeaker,
    MatchedUtterance,
    SpeakerProfile,
    Utterance
)
from activespeaker.models.interfaces import FrameSourceInterface, LandmarkDetectorInterface
from activespeaker.fusion.affinity import AffinityScorer, AffinityTable
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)

# (face_id, score)
Vote = Tuple[int, float]


class SpeakerFaceAssociator:
    """Assigns one face (or none) to every diarized speaker.
    
    Attributes:
        frame_source: Source of decoded frames at utterance sample times
            (None when the video cannot be decoded)
        detector: Face-landmark detector applied to sampled frames
        scorer: Affinity scoring functions
        min_utterance_duration: Shorter utterances cast no votes
        sample_interval: Step between sample times within an utterance
        min_mouth_openness: Detections at or below this are ignored
        score_floor: A match must score strictly above this to vote
    """
    
    def __init__(
        self,
        frame_source: Optional[FrameSourceInterface],
        detector: LandmarkDetectorInterface,
        scorer: Optional[AffinityScorer] = None
    ):
        self.frame_source = frame_source
        self.detector = detector
        self.scorer = scorer or AffinityScorer()
        
        self.min_utterance_duration = config.get('fusion.min_utterance_duration', 0.3)
        self.sample_interval = config.get('fusion.sample_interval', 0.25)
        self.min_mouth_openness = config.get('fusion.min_mouth_openness', 0.03)
        self.score_floor = config.get('fusion.score_floor', 0.5)
        
        logger.info(f"SpeakerFaceAssociator initialized with score_floor={self.score_floor}, "
                    f"sample_interval={self.sample_interval}s")
    
    def sample_times(self, utterance: Utterance) -> List[float]:
        """Evenly spaced sample times covering an utterance (at least one)"""
        duration = utterance.duration
        count = max(1, int(duration / self.sample_interval))
        step = duration / count
        return [utterance.start_time + i * step for i in range(count)]
    
    def score_observations(
        self,
        observations: Sequence[FaceObservation],
        t: float,
        speaker_id: int,
        faces: Sequence[FaceProfile],
        affinity: AffinityTable,
        consistency: AffinityTable
    ) -> List[Vote]:
        """Votes produced by one frame's detections for one speaker.
        
        Args:
            observations: Detections in the frame sampled at time t
            t: Sample time in seconds
            speaker_id: Speaker the utterance is bound to
            faces: Face profiles
            affinity: Segment affinity table
            consistency: Spatial consistency table
            
        Returns:
            At most one vote per detection
        """
        votes = []
        for observation in observations:
            mouth_openness = observation.mouth_openness
            if mouth_openness <= self.min_mouth_openness:
                logger.debug(f"t={t:.2f}s: detection ignored, mouth openness {mouth_openness:.3f}")
                continue
            
            match = self.scorer.best_match(
                observation.bounding_box, mouth_openness, t, faces,
                speaker_id, affinity, consistency, self.score_floor
            )
            if match is None:
                continue
            
            logger.debug(f"t={t:.2f}s: speaker {speaker_id} -> face {match.face_id} "
                         f"(score={match.total:.3f}, iou={match.iou:.3f}, temporal={match.temporal:.3f}, "
                         f"segment={match.segment:.3f}, spatial={match.spatial:.3f})")
            votes.append((match.face_id, match.total))
        return votes
    
    async def collect_votes(
        self,
        matched_utterances: Sequence[MatchedUtterance],
        faces: Sequence[FaceProfile],
        affinity: AffinityTable,
        consistency: AffinityTable
    ) -> Dict[int, List[Vote]]:
        """Sample every eligible utterance and gather votes per speaker.
        
        Frames that cannot be decoded or analyzed are skipped.
        """
        if not faces:
            return {}
        
        votes: Dict[int, List[Vote]] = defaultdict(list)
        
        for matched in matched_utterances:
            utterance = matched.utterance
            if utterance.duration < self.min_utterance_duration:
                continue
            
            for t in self.sample_times(utterance):
                try:
                    frame = await self.frame_source.get_frame(t)
                except Exception as e:
                    logger.warning(f"Frame decode failed at {t:.2f}s: {e}")
                    continue
                if frame is None:
                    continue
                
                try:
                    observations = await self.detector.detect(frame)
                except Exception as e:
                    logger.warning(f"Landmark detection failed at {t:.2f}s: {e}")
                    continue
                
                votes[matched.speaker_id].extend(self.score_observations(
                    observations, t, matched.speaker_id, faces, affinity, consistency
                ))
        
        return {speaker_id: v for speaker_id, v in votes.items() if v}
    
    @staticmethod
    def resolve_votes(votes: Dict[int, List[Vote]]) -> Dict[int, Tuple[int, float]]:
        """Pick the face with the largest summed vote score per speaker.
        
        Equal sums resolve to the lowest face id.
        
        Returns:
            speaker_id -> (face_id, aggregate score)
        """
        assignments = {}
        for speaker_id, speaker_votes in votes.items():
            totals: Dict[int, float] = defaultdict(float)
            for face_id, score in speaker_votes:
                totals[face_id] += score
            if not totals:
                continue
            face_id, total = max(totals.items(), key=lambda item: (item[1], -item[0]))
            assignments[speaker_id] = (face_id, total)
        return assignments
    
    @staticmethod
    def fallback(speaker_ids: Sequence[int], affinity: AffinityTable) -> Dict[int, Optional[int]]:
        """Face for each speaker from segment affinity alone.
        
        Returns:
            speaker_id -> face_id, or None when no face has positive affinity
        """
        result = {}
        for speaker_id in speaker_ids:
            best = affinity.best_face(speaker_id)
            result[speaker_id] = best[0] if best is not None else None
        return result
    
    async def associate(
        self,
        matched_utterances: Sequence[MatchedUtterance],
        speakers: Sequence[SpeakerProfile],
        faces: Sequence[FaceProfile]
    ) -> FusionResult:
        """Resolve the final speaker-to-face assignment.
        
        Args:
            matched_utterances: Utterances bound to speakers
            speakers: All speaker profiles
            faces: Face profiles from the tracking pass
            
        Returns:
            FusionResult with one MatchedSpeaker per speaker, ordered by
            speaker id
        """
        logger.info(f"Associating {len(speakers)} speakers with {len(faces)} faces "
                    f"using {len(matched_utterances)} utterances")
        
        affinity = self.scorer.build_affinity_table(speakers, faces)
        consistency = self.scorer.build_consistency_table(speakers, faces)
        
        votes = await self.collect_votes(matched_utterances, faces, affinity, consistency)
        assignments = self.resolve_votes(votes)
        
        unvoted = [s.speaker_id for s in speakers if s.speaker_id not in assignments]
        fallback = self.fallback(unvoted, affinity)
        
        faces_by_id = {face.face_id: face for face in faces}
        matched_speakers = []
        for speaker in speakers:
            if speaker.speaker_id in assignments:
                face_id, total = assignments[speaker.speaker_id]
                logger.info(f"Speaker {speaker.speaker_id} -> face {face_id} "
                            f"({len(votes[speaker.speaker_id])} votes, total={total:.3f})")
            else:
                face_id = fallback[speaker.speaker_id]
                if face_id is None:
                    logger.info(f"Speaker {speaker.speaker_id} left unmatched")
                else:
                    logger.info(f"Speaker {speaker.speaker_id} -> face {face_id} (segment affinity fallback)")
            
            position = faces_by_id[face_id].mean_position if face_id is not None else None
            matched_speakers.append(MatchedSpeaker(
                speaker_id=speaker.speaker_id,
                face_id=face_id,
                position=position,
                segments=speaker.segments
            ))
        
        matched_speakers.sort(key=lambda m: m.speaker_id)
        
        return FusionResult(
            matched_speakers=tuple(matched_speakers),
            face_profiles=tuple(faces),
            vote_counts={speaker_id: len(v) for speaker_id, v in votes.items()}
        )
