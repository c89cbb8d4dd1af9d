import pytest

from .conftest import PASSWORD, auth


@pytest.mark.asyncio
async def test_register_and_me(client):
    res = await client.post('/api/auth/register', json={
        'name': '  Meera  ', 'email': 'Meera@Example.com', 'password': PASSWORD, 'role': 'author',
    })
    assert res.status_code == 201, res.text
    body = res.json()
    assert body['success'] is True
    assert body['token']
    assert body['user']['name'] == 'Meera'
    assert body['user']['email'] == 'meera@example.com'
    assert body['user']['role'] == 'author'
    assert body['user']['preferences'] == {'darkMode': False, 'notifications': True, 'autoPlay': True}
    assert 'hashedPassword' not in body['user']

    me = await client.get('/api/auth/me', headers=auth(body['token']))
    assert me.status_code == 200, me.text
    assert me.json()['user']['id'] == body['user']['id']


@pytest.mark.asyncio
async def test_duplicate_email_is_case_insensitive(client, register):
    await register('First', 'dup@example.com')
    res = await client.post('/api/auth/register', json={
        'name': 'Second', 'email': 'DUP@example.com', 'password': PASSWORD,
    })
    assert res.status_code == 409
    assert res.json() == {'success': False, 'message': 'An account with this email already exists'}


@pytest.mark.asyncio
async def test_admin_role_is_not_self_assignable(client):
    res = await client.post('/api/auth/register', json={
        'name': 'Sneaky', 'email': 'sneaky@example.com', 'password': PASSWORD, 'role': 'admin',
    })
    assert res.status_code == 400
    assert res.json()['errors'][0]['field'] == 'role'


@pytest.mark.asyncio
async def test_register_reports_every_invalid_field(client):
    res = await client.post('/api/auth/register', json={'name': '', 'email': 'nope', 'password': '123'})
    assert res.status_code == 400
    body = res.json()
    assert body['success'] is False
    fields = {e['field'] for e in body['errors']}
    assert {'name', 'email', 'password'} <= fields


@pytest.mark.asyncio
async def test_login_errors_do_not_reveal_which_emails_exist(client, register):
    await register('Kiran', 'kiran@example.com')

    ok = await client.post('/api/auth/login', json={'email': 'KIRAN@example.com', 'password': PASSWORD})
    assert ok.status_code == 200, ok.text
    assert ok.json()['user']['lastLogin'] is not None

    wrong_password = await client.post('/api/auth/login', json={'email': 'kiran@example.com', 'password': 'bad-pass'})
    unknown_email = await client.post('/api/auth/login', json={'email': 'ghost@example.com', 'password': PASSWORD})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {'success': False, 'message': 'Invalid credentials'}


@pytest.mark.asyncio
async def test_missing_and_malformed_tokens(client):
    res = await client.get('/api/auth/me')
    assert res.status_code == 401
    assert res.json()['message'] == 'No token provided, authorization denied'

    res = await client.get('/api/auth/me', headers=auth('not-a-jwt'))
    assert res.status_code == 401
    assert res.json()['message'] == 'Token is not valid'


@pytest.mark.asyncio
async def test_deactivated_account_token_stops_working(client, reader, admin):
    token, user = reader
    assert (await client.get('/api/auth/me', headers=auth(token))).status_code == 200

    res = await client.put(f"/api/admin/users/{user['id']}", json={'isActive': False}, headers=auth(admin[0]))
    assert res.status_code == 200, res.text
    assert res.json()['user']['isActive'] is False

    res = await client.get('/api/auth/me', headers=auth(token))
    assert res.status_code == 401

    login = await client.post('/api/auth/login', json={'email': 'ravi@example.com', 'password': PASSWORD})
    assert login.status_code == 401
    assert login.json()['message'] == 'Invalid credentials'
