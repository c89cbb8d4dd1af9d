"""
Canonicalization of loosely typed multipart fields.

Browsers send ``tags`` as a JSON-encoded list, a comma separated string or
repeated form values, and booleans as ``"true"``/``"on"``/``"1"``. Each raw
shape is classified first and then reduced by one function.
"""
import json
from typing import Any, List, Sequence, Tuple

from .errors import ValidationError

TAG_MAX_LENGTH = 50
_TRUE = {'true', '1', 'yes', 'on'}
_FALSE = {'false', '0', 'no', 'off', ''}


def classify_tags(raw: Any) -> Tuple[str, Any]:
    """Return ``(kind, value)`` where kind is one of empty/list/json/csv"""
    if raw is None:
        return 'empty', None
    if isinstance(raw, (list, tuple)):
        if len(raw) == 1 and isinstance(raw[0], str):
            # a single form value may itself be a JSON list or a CSV string
            return classify_tags(raw[0])
        return 'list', list(raw)
    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            return 'empty', None
        if stripped.startswith('['):
            return 'json', stripped
        return 'csv', stripped
    raise ValidationError.field('tags', 'Tags must be a list or a comma separated string')


def canonical_tags(items: Sequence[Any]) -> List[str]:
    tags = []
    for item in items:
        if not isinstance(item, str):
            raise ValidationError.field('tags', 'Each tag must be a string')
        tag = item.strip().lower()
        if not tag:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationError.field('tags', f'Tags cannot exceed {TAG_MAX_LENGTH} characters')
        tags.append(tag)
    return tags


def parse_tags(raw: Any) -> List[str]:
    kind, value = classify_tags(raw)
    if kind == 'empty':
        return []
    if kind == 'list':
        return canonical_tags(value)
    if kind == 'json':
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError.field('tags', 'Tags is not valid JSON')
        if not isinstance(decoded, list):
            raise ValidationError.field('tags', 'Tags JSON must be a list')
        return canonical_tags(decoded)
    return canonical_tags(value.split(','))


def parse_bool(raw: Any, field: str, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValidationError.field(field, f'{field} must be a boolean')