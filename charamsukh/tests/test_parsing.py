import pytest

from charamsukh.errors import ValidationError
from charamsukh.parsing import classify_tags, parse_bool, parse_tags


@pytest.mark.parametrize('raw, kind', [
    (None, 'empty'),
    ('   ', 'empty'),
    (['a', 'b'], 'list'),
    ('["a", "b"]', 'json'),
    ('a, b', 'csv'),
    (['a, b'], 'csv'),
])
def test_classify_tags(raw, kind):
    assert classify_tags(raw)[0] == kind


@pytest.mark.parametrize('raw', [
    ['Fable', ' night '],
    '["Fable", "night"]',
    ['["fable", "NIGHT"]'],
    'fable, Night, ,',
])
def test_parse_tags_canonical_form(raw):
    assert parse_tags(raw) == ['fable', 'night']


@pytest.mark.parametrize('raw', ['[not json', '["ok"', [1, 2], 42, 'x' * 51])
def test_parse_tags_rejects_bad_shapes(raw):
    with pytest.raises(ValidationError) as exc:
        parse_tags(raw)
    assert exc.value.errors[0]['field'] == 'tags'


@pytest.mark.parametrize('raw, expected', [
    (None, False), (True, True), ('true', True), ('On', True), ('1', True),
    ('false', False), ('0', False), ('', False),
])
def test_parse_bool(raw, expected):
    assert parse_bool(raw, 'generateAudio') is expected


def test_parse_bool_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_bool('maybe', 'generateAudio')
