from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from . import Base


class Category(Base):
    __tablename__ = 'categories'
    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, index=True, nullable=False)
    icon = Column(String(50), nullable=False, default='fa-book')
    color = Column(String(50), nullable=False, default='bg-primary-600')
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
