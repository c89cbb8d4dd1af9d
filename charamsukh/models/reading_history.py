from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from . import Base


class ReadingHistory(Base):
    __tablename__ = 'reading_history'
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    story_id = Column(Integer, ForeignKey('stories.id', ondelete='CASCADE'), nullable=False, index=True)
    progress = Column(Integer, nullable=False, default=0)  # percent, 0-100
    completed = Column(Boolean, nullable=False, default=False)
    last_read = Column(DateTime(timezone=True), nullable=False, index=True)
    __table_args__ = (
        UniqueConstraint('user_id', 'story_id', name='uix_user_story_history'),
    )
