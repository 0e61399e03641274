# app/services/article_service.py
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import slugify

from core.config import settings
from models.article import Article, ArticleStatus
from schemas.article import ArticleCreate, ArticleUpdate

logger = logging.getLogger(__name__)


class ArticleService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------- public ----------
    async def list_published(self, locale: str, category: Optional[str] = None) -> List[Article]:
        if locale not in settings.SUPPORTED_LOCALES:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unsupported locale")

        query = select(Article).where(
            Article.locale == locale,
            Article.status == ArticleStatus.PUBLISHED,
        )
        if category:
            query = query.where(Article.category == category)
        result = await self.db.execute(query.order_by(Article.published_at.desc(), Article.id.desc()))
        return result.scalars().all()

    async def get_published(self, locale: str, slug: str) -> Article:
        result = await self.db.execute(
            select(Article).where(
                Article.locale == locale,
                Article.slug == slug,
                Article.status == ArticleStatus.PUBLISHED,
            )
        )
        article = result.scalar_one_or_none()
        if not article:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
        return article

    # ---------- management ----------
    async def list_articles(self, locale: Optional[str] = None, article_status: Optional[ArticleStatus] = None) -> List[Article]:
        query = select(Article)
        if locale:
            query = query.where(Article.locale == locale)
        if article_status is not None:
            query = query.where(Article.status == article_status)
        result = await self.db.execute(query.order_by(Article.created_at.desc(), Article.id.desc()))
        return result.scalars().all()

    async def get_article(self, article_id: int) -> Article:
        article = await self.db.get(Article, article_id)
        if not article:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
        return article

    async def create_article(self, data: ArticleCreate, author_id: int) -> Article:
        if data.locale not in settings.SUPPORTED_LOCALES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported locale")

        slug = slugify.slugify(data.slug or data.title)
        await self._ensure_unique_slug(slug, data.locale)

        article = Article(
            title=data.title,
            slug=slug,
            locale=data.locale,
            excerpt=data.excerpt,
            content=data.content,
            category=data.category,
            status=ArticleStatus.DRAFT,
            author_id=author_id,
        )
        self.db.add(article)
        await self.db.commit()
        logger.info(f"Article {article.id} ({article.locale}/{article.slug}) created by user {author_id}")
        return article

    async def update_article(self, article_id: int, data: ArticleUpdate) -> Article:
        article = await self.get_article(article_id)
        changes = data.model_dump(exclude_unset=True)

        for required in ("title", "content"):
            if required in changes and changes[required] is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Article {required} cannot be null")

        if changes.get("slug"):
            changes["slug"] = slugify.slugify(changes["slug"])
            if changes["slug"] != article.slug:
                await self._ensure_unique_slug(changes["slug"], article.locale)
        else:
            changes.pop("slug", None)

        for key, value in changes.items():
            setattr(article, key, value)

        await self.db.commit()
        return article

    async def set_published(self, article_id: int, published: bool) -> Article:
        article = await self.get_article(article_id)
        if published:
            article.status = ArticleStatus.PUBLISHED
            article.published_at = article.published_at or datetime.utcnow()
        else:
            article.status = ArticleStatus.DRAFT
        await self.db.commit()
        return article

    async def delete_article(self, article_id: int) -> None:
        article = await self.get_article(article_id)
        await self.db.delete(article)
        await self.db.commit()

    async def _ensure_unique_slug(self, slug: str, locale: str) -> None:
        if not slug:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug cannot be empty")
        taken = await self.db.scalar(
            select(func.count(Article.id)).where(Article.slug == slug, Article.locale == locale)
        )
        if taken:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug already in use for this locale")
