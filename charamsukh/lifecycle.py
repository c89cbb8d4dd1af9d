"""
Story lifecycle rules.

Derived fields (read time, description, publication stamp) and the status
transition table live here so that every write path applies them the same
way.
"""
import math
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional

from .errors import ValidationError

WORDS_PER_MINUTE = 200
DESCRIPTION_LENGTH = 160

DRAFT = 'draft'
PENDING = 'pending'
PUBLISHED = 'published'
REJECTED = 'rejected'

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    DRAFT: frozenset({DRAFT, PENDING}),
    PENDING: frozenset({PENDING, PUBLISHED, REJECTED}),
    PUBLISHED: frozenset({PUBLISHED, REJECTED, PENDING}),
    REJECTED: frozenset({REJECTED, PUBLISHED, PENDING}),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_read_time(content: str) -> int:
    words = len(content.split())
    return math.ceil(words / WORDS_PER_MINUTE)


def derive_description(content: str) -> str:
    return content[:DESCRIPTION_LENGTH].strip() + '...'


def apply_content(story, content: str, description: Optional[str] = None):
    """Set the body and recompute the fields derived from it.

    An explicit description wins; otherwise a description that was derived
    from the previous body (or is empty) is derived again from the new one.
    """
    was_derived = not story.description or story.description == derive_description(story.content or '')
    story.content = content
    story.read_time = compute_read_time(content)
    if description:
        story.description = description
    elif was_derived:
        story.description = derive_description(content)
    story.last_modified = utcnow()


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(story, target: str):
    """Move a story to ``target``, stamping ``published_at`` on first publication"""
    if target not in TRANSITIONS:
        raise ValidationError.field('status', f'Invalid status: {target}')
    current = story.status or DRAFT
    if not can_transition(current, target):
        raise ValidationError.field('status', f'Cannot move story from {current} to {target}')
    story.status = target
    if target == PUBLISHED and story.published_at is None:
        story.published_at = utcnow()
    story.last_modified = utcnow()


def initial_status(story, status: str):
    """Status assigned at creation; creation may start in any state"""
    if status not in TRANSITIONS:
        raise ValidationError.field('status', f'Invalid status: {status}')
    story.status = status
    if status == PUBLISHED:
        story.published_at = utcnow()
