from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from . import Base


class AudioJob(Base):
    """Persisted narration request, picked up by the audio worker."""

    __tablename__ = 'audio_jobs'
    id = Column(Integer, primary_key=True)
    story_id = Column(Integer, ForeignKey('stories.id', ondelete='CASCADE'), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    status = Column(String(20), nullable=False, default='queued', index=True)  # queued, running, succeeded, failed, cancelled
    voice = Column(String(50), nullable=False, default='default')
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    error_message = Column(String(1000), nullable=True)
    audio_url = Column(String(255), nullable=True)
    duration = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
