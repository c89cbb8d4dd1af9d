import httpx
import pytest

from charamsukh import queue_manager
from charamsukh.narration import (
    PLACEHOLDER_AUDIO_URL,
    HttpNarrationProvider,
    NarrationError,
    NarrationProvider,
    NarrationResult,
    PlaceholderNarrationProvider,
)
from charamsukh.workers import AudioWorker, WorkerManager

from .conftest import auth


class StubProvider(NarrationProvider):
    def __init__(self, failures: int = 0, before_result=None):
        self.failures = failures
        self.before_result = before_result
        self.calls = []

    async def narrate(self, story_id, text, voice):
        self.calls.append((story_id, voice))
        if len(self.calls) <= self.failures:
            raise NarrationError('synthesis backend unavailable')
        if self.before_result is not None:
            await self.before_result()
        return NarrationResult(audio_url='/uploads/narration_1.mp3', duration=95)


async def _audio(client, story_id):
    res = await client.get(f'/api/stories/{story_id}/audio')
    assert res.status_code == 200, res.text
    return res.json()


@pytest.mark.asyncio
async def test_generate_and_complete(app, client, story, author):
    res = await client.post(f"/api/stories/{story['id']}/generate-audio", json={'voice': 'warm'}, headers=auth(author[0]))
    assert res.status_code == 202, res.text
    job = res.json()['job']
    assert job['status'] == 'queued'
    assert job['voice'] == 'warm'

    # a second request while one is active returns the same job
    again = await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(author[0]))
    assert again.json()['job']['id'] == job['id']

    body = await _audio(client, story['id'])
    assert body['audio']['audioStatus'] == 'generating'

    provider = StubProvider()
    worker = AudioWorker(app.state.db, provider, delay=0)
    assert await worker.run_once() is True
    assert provider.calls == [(story['id'], 'warm')]

    body = await _audio(client, story['id'])
    assert body['audio'] == {
        'hasAudio': True,
        'audioUrl': '/uploads/narration_1.mp3',
        'audioStatus': 'generated',
        'duration': 95,
        'voice': 'warm',
    }
    assert body['job']['status'] == 'succeeded'
    assert body['job']['attempts'] == 1

    assert await worker.run_once() is False
    assert worker.processed_count == 1


@pytest.mark.asyncio
async def test_failed_attempt_is_retried(app, client, story, author):
    await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(author[0]))
    worker = AudioWorker(app.state.db, StubProvider(failures=1), delay=0)

    await worker.run_once()
    body = await _audio(client, story['id'])
    assert body['job']['status'] == 'queued'
    assert body['job']['errorMessage'] == 'synthesis backend unavailable'
    assert body['audio']['audioStatus'] == 'generating'

    await worker.run_once()
    body = await _audio(client, story['id'])
    assert body['job']['status'] == 'succeeded'
    assert body['job']['attempts'] == 2
    assert body['audio']['audioStatus'] == 'generated'


@pytest.mark.asyncio
async def test_job_fails_after_max_attempts(app, client, story, author):
    await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(author[0]))
    worker = AudioWorker(app.state.db, StubProvider(failures=10), delay=0)

    for _ in range(app.state.settings.audio_job_max_attempts):
        assert await worker.run_once() is True
    assert await worker.run_once() is False

    body = await _audio(client, story['id'])
    assert body['job']['status'] == 'failed'
    assert body['job']['attempts'] == 3
    assert body['audio']['audioStatus'] == 'failed'
    assert body['audio']['hasAudio'] is False
    assert worker.error_count == 3


@pytest.mark.asyncio
async def test_cancel_queued_job(app, client, story, author):
    await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(author[0]))

    res = await client.post(f"/api/stories/{story['id']}/audio/cancel", headers=auth(author[0]))
    assert res.status_code == 200, res.text
    assert res.json()['job']['status'] == 'cancelled'
    assert res.json()['audio']['audioStatus'] == 'none'

    worker = AudioWorker(app.state.db, StubProvider(), delay=0)
    assert await worker.run_once() is False

    res = await client.post(f"/api/stories/{story['id']}/audio/cancel", headers=auth(author[0]))
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_cancel_while_running_discards_result(app, client, story, author):
    await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(author[0]))

    async def cancel():
        res = await client.post(f"/api/stories/{story['id']}/audio/cancel", headers=auth(author[0]))
        assert res.status_code == 200, res.text

    worker = AudioWorker(app.state.db, StubProvider(before_result=cancel), delay=0)
    assert await worker.run_once() is True

    body = await _audio(client, story['id'])
    assert body['job']['status'] == 'cancelled'
    assert body['audio']['audioStatus'] == 'none'
    assert body['audio']['hasAudio'] is False


@pytest.mark.asyncio
async def test_generate_requires_owner(client, story, reader):
    res = await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(reader[0]))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_create_with_generate_audio_enqueues(client, author, create_story):
    res = await create_story(author[0], generateAudio='true')
    assert res.status_code == 201, res.text
    story = res.json()['story']
    assert story['audio']['audioStatus'] == 'generating'

    body = await _audio(client, story['id'])
    assert body['job']['status'] == 'queued'


@pytest.mark.asyncio
async def test_interrupted_jobs_are_requeued(app, client, story, author):
    await client.post(f"/api/stories/{story['id']}/generate-audio", headers=auth(author[0]))
    async with app.state.db.session() as session:
        job = await queue_manager.claim_next_job(session)
        assert job.status == 'running'
    async with app.state.db.session() as session:
        assert await queue_manager.recover_running_jobs(session) == 1

    body = await _audio(client, story['id'])
    assert body['job']['status'] == 'queued'


@pytest.mark.asyncio
async def test_worker_manager_start_and_stop(app):
    worker = AudioWorker(app.state.db, StubProvider(), delay=0.01)
    manager = WorkerManager([worker])
    await manager.start_all()
    await manager.stop_all()
    assert manager.get_stats() == {'audio': {'processed': 0, 'errors': 0, 'running': False}}


@pytest.mark.asyncio
async def test_placeholder_provider():
    provider = PlaceholderNarrationProvider(latency_seconds=0)
    result = await provider.narrate(1, ' '.join(['word'] * 300), 'default')
    assert result.audio_url == PLACEHOLDER_AUDIO_URL
    assert result.duration == 120

    with pytest.raises(NarrationError):
        await provider.narrate(1, '   ', 'default')


@pytest.mark.asyncio
async def test_http_provider():
    def handler(request: httpx.Request) -> httpx.Response:
        if b'"storyId":7' in request.content.replace(b' ', b''):
            return httpx.Response(200, json={'audioUrl': 'https://cdn.example.com/7.mp3', 'duration': 61})
        return httpx.Response(500, json={'error': 'boom'})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = HttpNarrationProvider('https://tts.example.com/narrate', client=client)

    result = await provider.narrate(7, 'Once upon a time', 'default')
    assert result == NarrationResult(audio_url='https://cdn.example.com/7.mp3', duration=61)

    with pytest.raises(NarrationError):
        await provider.narrate(8, 'Once upon a time', 'default')
    await provider.close()
