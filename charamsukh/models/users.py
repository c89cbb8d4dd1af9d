from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, JSON, func
from . import Base

DEFAULT_PREFERENCES = {'darkMode': False, 'notifications': True, 'autoPlay': True}


class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default='reader', index=True)  # reader, author, admin
    avatar = Column(String(255), nullable=False, default='')
    bio = Column(String(500), nullable=False, default='')
    is_active = Column(Boolean, nullable=False, default=True)
    preferences = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_PREFERENCES))
    stories_read = Column(Integer, nullable=False, default=0)
    hours_listened = Column(Float, nullable=False, default=0.0)
    bookmarks_count = Column(Integer, nullable=False, default=0)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
