"""Unit tests for result publishing"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from activespeaker.output.publisher import ResultPublisher
from activespeaker.models.results import FusionResult, MatchedSpeaker, SpeakerSegment


@pytest.fixture
def result():
    return FusionResult(
        matched_speakers=(
            MatchedSpeaker(0, 1, (0.25, 0.5), (SpeakerSegment(0, 0.0, 2.0),)),
            MatchedSpeaker(1, None, None, (SpeakerSegment(1, 2.0, 3.0),)),
        ),
        vote_counts={0: 3}
    )


def test_write_json(tmp_path, result):
    publisher = ResultPublisher(output_dir=tmp_path)
    path = publisher.write_json(result, "clips/interview.mp4")
    
    assert path == tmp_path / "interview.speakers.json"
    data = json.loads(path.read_text())
    assert data['fusion_complete'] is True
    assert data['video'] == "clips/interview.mp4"
    assert [s['face_id'] for s in data['matched_speakers']] == [1, None]


@pytest.mark.asyncio
async def test_publish_skips_redis_when_disabled(tmp_path, result):
    publisher = ResultPublisher(output_dir=tmp_path)
    publisher.redis_enabled = False
    
    with patch('activespeaker.output.publisher.redis.from_url') as from_url:
        path = await publisher.publish(result, "a.mp4")
    
    from_url.assert_not_called()
    assert path.exists()


@pytest.mark.asyncio
async def test_publish_to_redis(tmp_path, result):
    publisher = ResultPublisher(output_dir=tmp_path)
    publisher.redis_enabled = True
    client = AsyncMock()
    
    with patch('activespeaker.output.publisher.redis.from_url', return_value=client):
        await publisher.publish(result, "a.mp4")
    
    key, snapshot = client.set.call_args.args
    assert key == publisher.result_key
    assert json.loads(snapshot)['matched_speakers'][0]['speaker_id'] == 0
    
    stream, fields = client.xadd.call_args.args
    assert stream == publisher.event_stream
    assert fields['event'] == 'fusion_complete'
    assert fields['speakers'] == 2
    client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_redis_failure_is_not_fatal(tmp_path, result):
    publisher = ResultPublisher(output_dir=tmp_path)
    publisher.redis_enabled = True
    client = AsyncMock()
    client.set.side_effect = ConnectionError("redis down")
    
    with patch('activespeaker.output.publisher.redis.from_url', return_value=client):
        path = await publisher.publish(result, "a.mp4")
    
    assert path.exists()
    client.xadd.assert_not_called()
    client.aclose.assert_awaited_once()
