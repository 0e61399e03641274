# app/schemas/article.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from models.article import ArticleStatus


class ArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    slug: Optional[str] = Field(None, max_length=300)
    locale: str = "en"
    excerpt: Optional[str] = None
    content: str
    category: Optional[str] = Field(None, max_length=100)


class ArticleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    slug: Optional[str] = Field(None, max_length=300)
    excerpt: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)


class ArticleRead(BaseModel):
    id: int
    title: str
    slug: str
    locale: str
    excerpt: Optional[str] = None
    content: str
    category: Optional[str] = None
    status: ArticleStatus
    published_at: Optional[datetime] = None
    author_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
