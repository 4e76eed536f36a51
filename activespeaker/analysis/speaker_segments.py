"""Speaker segment store.

Groups diarized segments into per-speaker profiles and binds recognized
utterances to the speaker whose segments overlap them the most.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from activespeaker.models.results import (
    MatchedUtterance,
    SpeakerProfile,
    SpeakerSegment,
    Utterance
)
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class SpeakerSegmentStore:
    """Holds speaker profiles and matches utterances to speakers.
    
    Attributes:
        min_utterance_duration: Utterances shorter than this are never matched
    """
    
    def __init__(self, segments: Iterable[SpeakerSegment] = (), min_utterance_duration: Optional[float] = None):
        self.min_utterance_duration = (
            min_utterance_duration if min_utterance_duration is not None
            else config.get('speech.min_utterance_duration', 0.5)
        )
        self._profiles: Dict[int, SpeakerProfile] = self._build_profiles(segments)
    
    @staticmethod
    def _build_profiles(segments: Iterable[SpeakerSegment]) -> Dict[int, SpeakerProfile]:
        by_speaker: Dict[int, List[SpeakerSegment]] = defaultdict(list)
        for segment in segments:
            by_speaker[segment.speaker_id].append(segment)
        
        return {
            speaker_id: SpeakerProfile(
                speaker_id=speaker_id,
                segments=tuple(sorted(segs, key=lambda s: (s.start, s.end)))
            )
            for speaker_id, segs in sorted(by_speaker.items())
        }
    
    @property
    def profiles(self) -> List[SpeakerProfile]:
        """Speaker profiles ordered by speaker id"""
        return list(self._profiles.values())
    
    @property
    def speaker_ids(self) -> List[int]:
        return list(self._profiles.keys())
    
    def get(self, speaker_id: int) -> Optional[SpeakerProfile]:
        return self._profiles.get(speaker_id)
    
    def best_speaker(self, utterance: Utterance) -> Optional[int]:
        """Speaker with the largest total overlap with the utterance.
        
        Returns None when no speaker overlaps at all. On equal overlap the
        lower speaker id wins.
        """
        best_id = None
        longest = 0.0
        for profile in self._profiles.values():
            total = profile.overlap(utterance.start_time, utterance.end_time)
            if total > longest:
                longest = total
                best_id = profile.speaker_id
        return best_id
    
    def match_utterances(self, utterances: Iterable[Utterance]) -> List[MatchedUtterance]:
        """Bind each sufficiently long utterance to its best-overlapping speaker.
        
        Args:
            utterances: Recognized utterances in any order
            
        Returns:
            Matched utterances in input order; short or non-overlapping ones
            are left out
        """
        matched = []
        skipped = 0
        for utterance in utterances:
            if utterance.duration < self.min_utterance_duration:
                skipped += 1
                continue
            
            speaker_id = self.best_speaker(utterance)
            if speaker_id is None:
                skipped += 1
                continue
            
            matched.append(MatchedUtterance(utterance=utterance, speaker_id=speaker_id))
        
        logger.info(f"Matched {len(matched)} utterances to speakers ({skipped} skipped)")
        return matched
