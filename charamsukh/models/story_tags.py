from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from . import Base


class StoryTag(Base):
    """One row per tag value so searches match tags, not their serialized list"""
    __tablename__ = 'story_tags'
    id = Column(Integer, primary_key=True)
    story_id = Column(Integer, ForeignKey('stories.id', ondelete='CASCADE'), nullable=False, index=True)
    tag = Column(String(50), nullable=False, index=True)
    __table_args__ = (
        UniqueConstraint('story_id', 'tag', name='uix_story_tag'),
    )
