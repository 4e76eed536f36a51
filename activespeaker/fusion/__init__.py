"""Audio-visual fusion: affinity scoring, association and playback state"""

from activespeaker.fusion.affinity import AffinityScorer, AffinityTable, MatchScore
from activespeaker.fusion.associator import SpeakerFaceAssociator
from activespeaker.fusion.playback import PlaybackStateTracker

__all__ = [
    "AffinityScorer",
    "AffinityTable",
    "MatchScore",
    "SpeakerFaceAssociator",
    "PlaybackStateTracker",
]
