"""Publishes the final speaker assignment.

The fusion stage publishes exactly once. The snapshot is written as JSON next to
the other outputs and, when enabled, stored in Redis together with a
"fusion_complete" event on a Redis stream so a display process can pick it up.
"""

import json
import logging
import time
from pathlib import Path
from typing import Optional, Union

import redis.asyncio as redis

from activespeaker.models.results import FusionResult
from activespeaker.config.config_loader import config


logger = logging.getLogger(__name__)


class ResultPublisher:
    """Writes a FusionResult to disk and optionally to Redis.
    
    Attributes:
        output_dir: Directory receiving `<video stem>.speakers.json`
        redis_enabled: Whether to push the snapshot to Redis
        redis_url: Redis connection URL
        result_key: Key holding the JSON snapshot
        event_stream: Stream receiving the completion event
    """
    
    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        self.output_dir = Path(output_dir or config.get('output.dir', 'output'))
        self.redis_enabled = config.get('output.redis.enabled', False)
        self.redis_url = config.get('output.redis.url', 'redis://localhost:6379')
        self.result_key = config.get('output.redis.result_key', 'activespeaker:matched_speakers')
        self.event_stream = config.get('output.redis.event_stream', 'activespeaker:events')
    
    def write_json(self, result: FusionResult, video_path: Union[str, Path]) -> Path:
        """Write the snapshot as JSON and return its path"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.output_dir / f"{Path(video_path).stem}.speakers.json"
        
        payload = result.to_dict()
        payload['video'] = str(video_path)
        with open(out_path, 'w') as f:
            json.dump(payload, f, indent=2)
        
        logger.info(f"Wrote {len(result.matched_speakers)} matched speakers to {out_path}")
        return out_path
    
    async def publish_redis(self, result: FusionResult, video_path: Union[str, Path]) -> None:
        """Store the snapshot under the result key and append a completion event"""
        client = redis.from_url(self.redis_url)
        try:
            snapshot = json.dumps(result.to_dict())
            await client.set(self.result_key, snapshot)
            await client.xadd(self.event_stream, {
                'event': 'fusion_complete',
                'video': str(video_path),
                'speakers': len(result.matched_speakers),
                'timestamp': time.time()
            })
            logger.info(f"Published fusion result to Redis key {self.result_key}")
        finally:
            await client.aclose()
    
    async def publish(self, result: FusionResult, video_path: Union[str, Path]) -> Optional[Path]:
        """Publish the snapshot to every configured sink.
        
        Sink failures are logged; the assignment itself is already final.
        
        Returns:
            Path of the JSON file, or None if it could not be written
        """
        out_path = None
        try:
            out_path = self.write_json(result, video_path)
        except OSError as e:
            logger.error(f"Failed to write result file: {e}")
        
        if self.redis_enabled:
            try:
                await self.publish_redis(result, video_path)
            except Exception as e:
                logger.error(f"Failed to publish result to Redis: {e}", exc_info=True)
        
        return out_path
