from types import SimpleNamespace

import pytest

from charamsukh import lifecycle
from charamsukh.errors import ValidationError


def make_story(**fields):
    values = dict(content='', description='', status='draft', published_at=None, read_time=0, last_modified=None)
    values.update(fields)
    return SimpleNamespace(**values)


def test_read_time_rounds_up():
    assert lifecycle.compute_read_time('word ' * 200) == 1
    assert lifecycle.compute_read_time('word ' * 201) == 2
    assert lifecycle.compute_read_time('') == 0


def test_apply_content_keeps_custom_description():
    story = make_story()
    lifecycle.apply_content(story, 'a ' * 300)
    assert story.description.endswith('...')

    story.description = 'Hand written'
    lifecycle.apply_content(story, 'b ' * 300)
    assert story.description == 'Hand written'
    assert story.read_time == 2
    assert story.last_modified is not None


@pytest.mark.parametrize('current, target, allowed', [
    ('draft', 'pending', True),
    ('draft', 'published', False),
    ('draft', 'rejected', False),
    ('pending', 'published', True),
    ('pending', 'rejected', True),
    ('pending', 'draft', False),
    ('published', 'rejected', True),
    ('rejected', 'published', True),
    ('published', 'draft', False),
    ('rejected', 'draft', False),
])
def test_transition_table(current, target, allowed):
    assert lifecycle.can_transition(current, target) is allowed


def test_published_at_is_stamped_once():
    story = make_story(status='pending')
    lifecycle.transition(story, 'published')
    first = story.published_at
    assert first is not None

    lifecycle.transition(story, 'rejected')
    lifecycle.transition(story, 'published')
    assert story.published_at == first


def test_illegal_transition_raises():
    story = make_story(status='published')
    with pytest.raises(ValidationError) as exc:
        lifecycle.transition(story, 'draft')
    assert exc.value.errors[0]['field'] == 'status'
    assert story.status == 'published'
