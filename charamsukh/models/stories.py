from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Index, func
from sqlalchemy.orm import relationship
from . import Base


class Story(Base):
    __tablename__ = 'stories'
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(String(500), nullable=False, default='')
    content = Column(Text, nullable=False)
    author_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    category = Column(String(50), nullable=False)
    tags = Column(JSON, nullable=False, default=list)
    cover_image = Column(String(255), nullable=False, default='')
    status = Column(String(20), nullable=False, default='draft')  # draft, pending, published, rejected
    is_public = Column(Boolean, nullable=False, default=True)

    has_audio = Column(Boolean, nullable=False, default=False)
    audio_url = Column(String(255), nullable=False, default='')
    audio_status = Column(String(20), nullable=False, default='none')  # none, generating, generated, failed
    audio_duration = Column(Integer, nullable=False, default=0)
    audio_voice = Column(String(50), nullable=False, default='default')

    views = Column(Integer, nullable=False, default=0)
    reads = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)
    bookmarks_count = Column(Integer, nullable=False, default=0)
    audio_plays = Column(Integer, nullable=False, default=0)

    read_time = Column(Integer, nullable=False, default=0)
    featured = Column(Boolean, nullable=False, default=False)
    moderation_notes = Column(String(1000), nullable=False, default='')
    published_at = Column(DateTime(timezone=True), nullable=True)
    last_modified = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    author = relationship('User', lazy='raise')

    __table_args__ = (
        Index('ix_stories_category_status_published', 'category', 'status', 'published_at'),
        Index('ix_stories_author_status', 'author_id', 'status'),
    )
