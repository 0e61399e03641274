# app/api/v1/endpoints/articles.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import require_resource
from core.policy import ResourceClass, Action
from core.security import Identity
from models.article import ArticleStatus
from schemas.article import ArticleCreate, ArticleUpdate, ArticleRead
from services.article_service import ArticleService

router = APIRouter()


# ---------- management ----------
@router.get("", response_model=List[ArticleRead])
async def list_articles(
        locale: Optional[str] = Query(None),
        article_status: Optional[ArticleStatus] = Query(None, alias="status"),
        _: Identity = Depends(require_resource(ResourceClass.ARTICLE_MANAGEMENT, Action.VIEW)),
        db: AsyncSession = Depends(get_db),
):
    return await ArticleService(db).list_articles(locale, article_status)


@router.post("", response_model=ArticleRead, status_code=status.HTTP_201_CREATED)
async def create_article(
        data: ArticleCreate,
        identity: Identity = Depends(require_resource(ResourceClass.ARTICLE_MANAGEMENT, Action.CREATE)),
        db: AsyncSession = Depends(get_db),
):
    return await ArticleService(db).create_article(data, author_id=identity.user_id)


@router.patch("/{article_id}", response_model=ArticleRead)
async def update_article(
        article_id: int,
        data: ArticleUpdate,
        _: Identity = Depends(require_resource(ResourceClass.ARTICLE_MANAGEMENT, Action.UPDATE)),
        db: AsyncSession = Depends(get_db),
):
    return await ArticleService(db).update_article(article_id, data)


@router.post("/{article_id}/publish", response_model=ArticleRead)
async def publish_article(
        article_id: int,
        _: Identity = Depends(require_resource(ResourceClass.ARTICLE_MANAGEMENT, Action.UPDATE)),
        db: AsyncSession = Depends(get_db),
):
    return await ArticleService(db).set_published(article_id, True)


@router.post("/{article_id}/unpublish", response_model=ArticleRead)
async def unpublish_article(
        article_id: int,
        _: Identity = Depends(require_resource(ResourceClass.ARTICLE_MANAGEMENT, Action.UPDATE)),
        db: AsyncSession = Depends(get_db),
):
    return await ArticleService(db).set_published(article_id, False)


@router.delete("/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article(
        article_id: int,
        _: Identity = Depends(require_resource(ResourceClass.ARTICLE_MANAGEMENT, Action.DELETE)),
        db: AsyncSession = Depends(get_db),
):
    await ArticleService(db).delete_article(article_id)


# ---------- public ----------
@router.get("/public/{locale}", response_model=List[ArticleRead])
async def list_published_articles(
        locale: str,
        category: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
):
    return await ArticleService(db).list_published(locale, category)


@router.get("/public/{locale}/{slug}", response_model=ArticleRead)
async def get_published_article(locale: str, slug: str, db: AsyncSession = Depends(get_db)):
    return await ArticleService(db).get_published(locale, slug)
