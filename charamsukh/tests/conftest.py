import io

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy import update

from charamsukh.config import Settings
from charamsukh.main import create_app
from charamsukh.models.users import User

PASSWORD = 'secret123'
# 30 words, 179 characters
STORY_CONTENT = ' '.join(['lorem'] * 30)
LONG_CONTENT = ' '.join(['ipsum'] * 450)


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        bcrypt_rounds=10,
        environment='test',
        upload_dir=str(tmp_path / 'uploads'),
        audio_worker_enabled=False,
        db_connect_retries=1,
        db_retry_delay=0,
    )
    values.update(overrides)
    return Settings(**values)


def auth(token: str) -> dict:
    return {'Authorization': f'Bearer {token}'}


def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new('RGB', (32, 24), color=(200, 40, 40)).save(buf, format='PNG')
    return buf.getvalue()


@pytest_asyncio.fixture
async def app_factory(tmp_path):
    """Build connected applications; each call gets its own database file"""
    apps = []

    async def build(**overrides):
        path = tmp_path / f'app{len(apps)}'
        path.mkdir()
        application = create_app(make_settings(path, **overrides))
        await application.state.db.connect()
        await application.state.db.create_all()
        apps.append(application)
        return application

    yield build
    for application in apps:
        await application.state.db.close()


@pytest_asyncio.fixture
async def app(app_factory):
    return await app_factory()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url='http://test') as ac:
        yield ac


@pytest.fixture
def register(client):
    async def _register(name: str, email: str, role: str = 'reader', password: str = PASSWORD):
        res = await client.post('/api/auth/register', json={
            'name': name, 'email': email, 'password': password, 'role': role,
        })
        assert res.status_code == 201, res.text
        body = res.json()
        return body['token'], body['user']
    return _register


@pytest.fixture
def promote(app):
    async def _promote(user_id: int, role: str = 'admin'):
        async with app.state.db.session() as session:
            await session.execute(update(User).where(User.id == user_id).values(role=role))
            await session.commit()
    return _promote


@pytest_asyncio.fixture
async def author(register):
    return await register('Asha Writer', 'asha@example.com', role='author')


@pytest_asyncio.fixture
async def reader(register):
    return await register('Ravi Reader', 'ravi@example.com')


@pytest_asyncio.fixture
async def admin(register, promote):
    token, user = await register('Admin', 'admin@example.com')
    await promote(user['id'])
    return token, user


@pytest.fixture
def create_story(client):
    async def _create(token: str, files=None, **fields):
        data = {
            'title': 'The River Song',
            'content': STORY_CONTENT,
            'category': 'Folk',
        }
        data.update(fields)
        res = await client.post('/api/stories', data=data, files=files, headers=auth(token))
        return res
    return _create


@pytest_asyncio.fixture
async def story(author, create_story):
    res = await create_story(author[0])
    assert res.status_code == 201, res.text
    return res.json()['story']
