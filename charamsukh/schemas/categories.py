from typing import Optional

from pydantic import Field, field_validator

from .common import CamelModel


class CategoryIn(CamelModel):
    name: str = Field(min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=50)

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Name is required')
        return v


class CategoryUpdateIn(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    icon: Optional[str] = Field(default=None, max_length=50)
    color: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class CategoryOut(CamelModel):
    id: int
    name: str
    icon: str
    color: str
    is_active: bool

    @classmethod
    def from_category(cls, category) -> 'CategoryOut':
        return cls(
            id=category.id,
            name=category.name,
            icon=category.icon,
            color=category.color,
            is_active=category.is_active,
        )
