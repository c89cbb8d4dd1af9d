import pytest

from .conftest import auth


@pytest.mark.asyncio
async def test_like_twice_returns_to_original_count(client, story, reader):
    url = f"/api/stories/{story['id']}/like"

    res = await client.post(url, headers=auth(reader[0]))
    assert res.status_code == 200, res.text
    assert res.json() == {'success': True, 'liked': True, 'count': 1}

    detail = (await client.get(f"/api/stories/{story['id']}", headers=auth(reader[0]))).json()['story']
    assert detail['liked'] is True
    assert detail['bookmarked'] is False

    res = await client.post(url, headers=auth(reader[0]))
    assert res.json() == {'success': True, 'liked': False, 'count': 0}


@pytest.mark.asyncio
async def test_likes_from_different_accounts_accumulate(client, story, reader, author):
    await client.post(f"/api/stories/{story['id']}/like", headers=auth(reader[0]))
    res = await client.post(f"/api/stories/{story['id']}/like", headers=auth(author[0]))
    assert res.json()['count'] == 2


@pytest.mark.asyncio
async def test_engagement_requires_login(client, story):
    for action in ('like', 'bookmark'):
        res = await client.post(f"/api/stories/{story['id']}/{action}")
        assert res.status_code == 401


@pytest.mark.asyncio
async def test_like_unknown_story(client, reader):
    res = await client.post('/api/stories/4242/like', headers=auth(reader[0]))
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_comments(client, story, reader):
    url = f"/api/stories/{story['id']}/comment"

    res = await client.post(url, json={'comment': '   '}, headers=auth(reader[0]))
    assert res.status_code == 400
    assert res.json()['errors'][0]['field'] == 'comment'

    res = await client.post(url, json={'comment': 'x' * 1001}, headers=auth(reader[0]))
    assert res.status_code == 400

    res = await client.post(url, json={'comment': '  Beautiful telling.  '}, headers=auth(reader[0]))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body['message'] == 'Comment added'
    assert len(body['comments']) == 1
    assert body['comments'][0]['comment'] == 'Beautiful telling.'
    assert body['comments'][0]['user']['name'] == 'Ravi Reader'

    await client.post(url, json={'comment': 'Second thoughts'}, headers=auth(reader[0]))
    detail = (await client.get(f"/api/stories/{story['id']}")).json()['story']
    assert detail['stats']['comments'] == 2
    assert [c['comment'] for c in detail['comments']] == ['Beautiful telling.', 'Second thoughts']


@pytest.mark.asyncio
async def test_bookmark_toggle_tracks_account_count(client, story, reader):
    url = f"/api/stories/{story['id']}/bookmark"

    res = await client.post(url, headers=auth(reader[0]))
    assert res.json() == {'success': True, 'bookmarked': True, 'count': 1}
    me = (await client.get('/api/auth/me', headers=auth(reader[0]))).json()['user']
    assert me['stats']['bookmarks'] == 1

    res = await client.post(url, headers=auth(reader[0]))
    assert res.json() == {'success': True, 'bookmarked': False, 'count': 0}
    me = (await client.get('/api/auth/me', headers=auth(reader[0]))).json()['user']
    assert me['stats']['bookmarks'] == 0


@pytest.mark.asyncio
async def test_read_and_play_counters(client, story):
    res = await client.post(f"/api/stories/{story['id']}/read")
    assert res.json() == {'success': True, 'reads': 1}
    res = await client.post(f"/api/stories/{story['id']}/read")
    assert res.json() == {'success': True, 'reads': 2}

    res = await client.post(f"/api/stories/{story['id']}/play")
    assert res.json() == {'success': True, 'audioPlays': 1}

    detail = (await client.get(f"/api/stories/{story['id']}")).json()['story']
    assert detail['stats']['reads'] == 2
    assert detail['stats']['audioPlays'] == 1
