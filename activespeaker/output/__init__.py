"""Result publishing"""

from activespeaker.output.publisher import ResultPublisher

__all__ = ['ResultPublisher']
