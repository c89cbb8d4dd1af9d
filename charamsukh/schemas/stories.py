from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field, field_validator

from .common import CamelModel

COMMENT_MAX_LENGTH = 1000


class AuthorOut(CamelModel):
    id: int
    name: str
    avatar: str = ''

    @classmethod
    def from_user(cls, user) -> Optional['AuthorOut']:
        if user is None:
            return None
        return cls(id=user.id, name=user.name, avatar=user.avatar or '')


class AudioOut(CamelModel):
    has_audio: bool
    audio_url: str
    audio_status: str
    duration: int
    voice: str


class StoryStatsOut(CamelModel):
    views: int
    reads: int
    likes: int
    comments: int
    bookmarks: int
    audio_plays: int


class CommentOut(CamelModel):
    id: int
    user: Optional[AuthorOut]
    comment: str
    is_edited: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_comment(cls, comment, user=None) -> 'CommentOut':
        return cls(
            id=comment.id,
            user=AuthorOut.from_user(user),
            comment=comment.comment,
            is_edited=comment.is_edited,
            created_at=comment.created_at,
        )


class StorySummaryOut(CamelModel):
    id: int
    title: str
    description: str
    author: Optional[AuthorOut]
    category: str
    tags: List[str]
    cover_image: str
    status: str
    is_public: bool
    audio: AudioOut
    stats: StoryStatsOut
    read_time: int
    featured: bool
    published_at: Optional[datetime] = None
    last_modified: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def base_fields(story, author=None) -> dict:
        return dict(
            id=story.id,
            title=story.title,
            description=story.description,
            author=AuthorOut.from_user(author),
            category=story.category,
            tags=list(story.tags or []),
            cover_image=story.cover_image or '',
            status=story.status,
            is_public=story.is_public,
            audio=AudioOut(
                has_audio=story.has_audio,
                audio_url=story.audio_url or '',
                audio_status=story.audio_status,
                duration=story.audio_duration,
                voice=story.audio_voice,
            ),
            stats=StoryStatsOut(
                views=story.views,
                reads=story.reads,
                likes=story.likes_count,
                comments=story.comments_count,
                bookmarks=story.bookmarks_count,
                audio_plays=story.audio_plays,
            ),
            read_time=story.read_time,
            featured=story.featured,
            published_at=story.published_at,
            last_modified=story.last_modified,
            created_at=story.created_at,
        )

    @classmethod
    def from_story(cls, story, author=None) -> 'StorySummaryOut':
        return cls(**cls.base_fields(story, author))


class StoryOut(StorySummaryOut):
    content: str
    moderation_notes: str = ''
    comments: List[CommentOut] = []
    liked: Optional[bool] = None
    bookmarked: Optional[bool] = None

    @classmethod
    def from_story(cls, story, author=None, comments=None, liked=None, bookmarked=None) -> 'StoryOut':
        return cls(
            **cls.base_fields(story, author),
            content=story.content,
            moderation_notes=story.moderation_notes or '',
            comments=comments or [],
            liked=liked,
            bookmarked=bookmarked,
        )


class StoryUpdateIn(CamelModel):
    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    content: Optional[str] = Field(default=None, min_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    tags: Any = None
    is_public: Optional[bool] = None


class CommentIn(CamelModel):
    comment: str

    @field_validator('comment')
    @classmethod
    def comment_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Comment cannot be empty')
        if len(v) > COMMENT_MAX_LENGTH:
            raise ValueError(f'Comment cannot exceed {COMMENT_MAX_LENGTH} characters')
        return v


class ModerateIn(CamelModel):
    status: Optional[Literal['pending', 'published', 'rejected']] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    featured: Optional[bool] = None
    moderation_notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('category')
    @classmethod
    def category_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError('Category cannot be empty')
        return v.strip() if v is not None else v


class GenerateAudioIn(CamelModel):
    voice: str = Field(default='default', min_length=1, max_length=50)


class AudioJobOut(CamelModel):
    id: int
    story_id: int
    status: str
    voice: str
    attempts: int
    max_attempts: int
    error_message: Optional[str] = None
    audio_url: Optional[str] = None
    duration: Optional[int] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job) -> 'AudioJobOut':
        return cls(
            id=job.id,
            story_id=job.story_id,
            status=job.status,
            voice=job.voice,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            error_message=job.error_message,
            audio_url=job.audio_url,
            duration=job.duration,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class StoryCreateIn(CamelModel):
    title: str = Field(min_length=5, max_length=200)
    content: str = Field(min_length=100)
    category: str = Field(min_length=1, max_length=50)
    description: str = Field(default='', max_length=500)
    tags: List[str] = []
    generate_audio: bool = False

    @field_validator('title', 'category', 'description', mode='before')
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class HistoryEntryOut(CamelModel):
    story: StorySummaryOut
    progress: int
    completed: bool
    last_read: Optional[datetime] = None

    @classmethod
    def from_entry(cls, entry, story) -> 'HistoryEntryOut':
        return cls(
            story=StorySummaryOut.from_story(story, story.author),
            progress=entry.progress,
            completed=entry.completed,
            last_read=entry.last_read,
        )
