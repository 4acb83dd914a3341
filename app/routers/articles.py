from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.dependencies import PaginationParams, get_current_user, get_optional_user
from app.models import User
from app.schemas import ArticleCreate, ArticleDetail, PaginatedResponse
from app.services import article_service

router = APIRouter(prefix="/api/v1", tags=["articles"])

@router.get("/planets/{planet_id}/articles", response_model=PaginatedResponse)
async def list_planet_articles(
    planet_id: int,
    pagination: PaginationParams = Depends(),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.list_planet_articles(
        db,
        user.id if user else None,
        planet_id,
        pagination.page,
        pagination.page_size,
        pagination.sort_by,
        pagination.sort_order,
    )

@router.post("/planets/{planet_id}/articles", status_code=201, response_model=ArticleDetail)
async def create_article(
    planet_id: int,
    data: ArticleCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.create_article(db, user.id, planet_id, data)

@router.get("/articles/{article_id}", response_model=ArticleDetail)
async def get_article(
    article_id: int,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_article(db, user.id if user else None, article_id)

@router.delete("/articles/{article_id}", status_code=204)
async def delete_article(
    article_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await article_service.delete_article(db, user.id, article_id)
