import pytest

from .conftest import auth


@pytest.mark.asyncio
async def test_progress_upsert_counts_completion_once(client, story, reader):
    url = f"/api/users/progress/{story['id']}"

    res = await client.put(url, json={'progress': 40, 'timeSpent': 1800}, headers=auth(reader[0]))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body['progress'] == 40
    assert body['completed'] is False
    assert body['stats']['storiesRead'] == 0
    assert body['stats']['hoursListened'] == 0.5

    res = await client.put(url, json={'progress': 100, 'timeSpent': 1800}, headers=auth(reader[0]))
    body = res.json()
    assert body['completed'] is True
    assert body['stats']['storiesRead'] == 1
    assert body['stats']['hoursListened'] == 1.0

    res = await client.put(url, json={'progress': 100}, headers=auth(reader[0]))
    assert res.json()['stats']['storiesRead'] == 1


@pytest.mark.asyncio
async def test_progress_validation(client, story, reader):
    res = await client.put(f"/api/users/progress/{story['id']}", json={'progress': 140}, headers=auth(reader[0]))
    assert res.status_code == 400
    res = await client.put('/api/users/progress/999', json={'progress': 10}, headers=auth(reader[0]))
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_dashboard(client, author, reader, create_story):
    first = (await create_story(author[0], title='First of many')).json()['story']
    second = (await create_story(author[0], title='Second of many')).json()['story']
    token = reader[0]

    await client.post(f"/api/stories/{first['id']}/bookmark", headers=auth(token))
    await client.put(f"/api/users/progress/{first['id']}", json={'progress': 100}, headers=auth(token))
    await client.put(f"/api/users/progress/{second['id']}", json={'progress': 30}, headers=auth(token))

    res = await client.get('/api/users/dashboard', headers=auth(token))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body['stats'] == {'storiesRead': 1, 'hoursListened': 0.0, 'bookmarks': 1}
    assert [s['id'] for s in body['bookmarkedStories']] == [first['id']]
    assert [h['story']['id'] for h in body['readingHistory']] == [second['id'], first['id']]
    assert [h['story']['id'] for h in body['continueReading']] == [second['id']]
    assert body['continueReading'][0]['progress'] == 30


@pytest.mark.asyncio
async def test_profile_update_merges_preferences(client, reader):
    res = await client.put('/api/users/profile', json={
        'name': 'Ravi R', 'bio': 'Listens on the train', 'preferences': {'darkMode': True},
    }, headers=auth(reader[0]))
    assert res.status_code == 200, res.text
    user = res.json()['user']
    assert user['name'] == 'Ravi R'
    assert user['bio'] == 'Listens on the train'
    assert user['preferences'] == {'darkMode': True, 'notifications': True, 'autoPlay': True}


@pytest.mark.asyncio
async def test_author_stats(client, author, reader, create_story):
    story = (await create_story(author[0])).json()['story']
    await create_story(author[0], title='With narration', files={'audioFile': ('n.mp3', b'ID3audio', 'audio/mpeg')})
    await client.post(f"/api/stories/{story['id']}/like", headers=auth(reader[0]))
    await client.post(f"/api/stories/{story['id']}/read")
    await client.get(f"/api/stories/{story['id']}")

    res = await client.get('/api/users/author/stats', headers=auth(author[0]))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body['stats'] == {
        'totalStories': 2,
        'totalReads': 1,
        'totalLikes': 1,
        'totalViews': 1,
        'audioPlays': 0,
        'audioStories': 1,
    }
    assert len(body['stories']) == 2

    res = await client.get('/api/users/author/stats', headers=auth(reader[0]))
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_hidden_stories_drop_out_of_progress_and_dashboard(client, story, author, reader, admin):
    token = reader[0]
    await client.post(f"/api/stories/{story['id']}/bookmark", headers=auth(token))
    res = await client.put(f"/api/users/progress/{story['id']}", json={'progress': 20}, headers=auth(token))
    assert res.status_code == 200, res.text

    await client.put(f"/api/stories/{story['id']}/moderate", json={'status': 'rejected'}, headers=auth(admin[0]))

    res = await client.put(f"/api/users/progress/{story['id']}", json={'progress': 60}, headers=auth(token))
    assert res.status_code == 404
    body = (await client.get('/api/users/dashboard', headers=auth(token))).json()
    assert body['bookmarkedStories'] == []
    assert body['readingHistory'] == []
    assert body['continueReading'] == []

    # the author still tracks their own rejected story
    res = await client.put(f"/api/users/progress/{story['id']}", json={'progress': 10}, headers=auth(author[0]))
    assert res.status_code == 200, res.text
    history = (await client.get('/api/users/dashboard', headers=auth(author[0]))).json()['readingHistory']
    assert [h['story']['status'] for h in history] == ['rejected']
