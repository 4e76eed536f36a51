"""Playback state tracking.

Derives which published speakers are talking at a playback time. Only the
transient `is_currently_speaking` flags are written; segments and face
assignments are never touched, so the update can run on every display tick
without coordination with the fusion stage.
"""

import logging
from typing import FrozenSet, Optional, Sequence

from activespeaker.models.results import MatchedSpeaker


logger = logging.getLogger(__name__)


class PlaybackStateTracker:
    """Projects the published assignment onto a query time."""
    
    def __init__(self, matched_speakers: Sequence[MatchedSpeaker] = ()):
        self._speakers = tuple(matched_speakers)
        self._last_query: Optional[float] = None
    
    @property
    def speakers(self) -> Sequence[MatchedSpeaker]:
        return self._speakers
    
    @property
    def last_query(self) -> Optional[float]:
        return self._last_query
    
    def load(self, matched_speakers: Sequence[MatchedSpeaker]) -> None:
        """Attach a newly published assignment"""
        self._speakers = tuple(matched_speakers)
        self._last_query = None
    
    def active_speaker_ids(self, t: float) -> FrozenSet[int]:
        """Speakers with a segment containing t (bounds inclusive)"""
        return frozenset(s.speaker_id for s in self._speakers if s.is_active_at(t))
    
    def update(self, t: float) -> FrozenSet[int]:
        """Set every speaker's flag for time t.
        
        Returns:
            Ids of the speakers flagged as currently speaking
        """
        active = self.active_speaker_ids(t)
        for speaker in self._speakers:
            speaker.is_currently_speaking = speaker.speaker_id in active
        self._last_query = t
        return active
    
    def current_speaker(self, t: float) -> Optional[MatchedSpeaker]:
        """First speaker, in published order, active at t"""
        for speaker in self._speakers:
            if speaker.is_active_at(t):
                return speaker
        return None
