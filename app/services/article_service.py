"""
Article service: posts that live inside a planet.

Design notes
------------
- Posting requires an APPROVED membership in the planet.
- Reading follows the planet's visibility: published planets are open to
  everyone (including anonymous callers), other planets only to approved
  members.  Unpublished (draft) articles are visible to their author only.
- Articles are removed together with their planet by
  ``planet_service.delete_planet``; there is no separate cascade here.
"""
import math
import re
from datetime import datetime, timezone

from sqlalchemy import asc, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import policies
from app.exceptions import ConflictError, NotFoundError
from app.models import Article
from app.schemas import ArticleCreate, PaginatedResponse
from app.services import membership_service, planet_service

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_SLUG_STRIP_RE = re.compile(r"[^\w\s-]")
_SLUG_SPACE_RE = re.compile(r"[\s_]+")
_SLUG_DASH_RE = re.compile(r"-+")

_SORTABLE_COLUMNS: frozenset[str] = frozenset(
    {"created_at", "published_at", "view_count", "title"}
)


def slugify(text: str) -> str:
    """Return a URL-safe, lowercase slug derived from *text*."""
    text = _SLUG_STRIP_RE.sub("", text.lower().strip())
    text = _SLUG_SPACE_RE.sub("-", text)
    return _SLUG_DASH_RE.sub("-", text).strip("-")


def _resolve_sort_column(sort_by: str):
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Article, sort_by)
    return Article.created_at


def _article_to_dict(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "summary": article.summary,
        "view_count": article.view_count,
        "is_published": article.is_published,
        "published_at": article.published_at.isoformat() if article.published_at else None,
        "created_at": article.created_at.isoformat() if article.created_at else None,
        "planet_id": article.planet_id,
        "user_id": article.user_id,
    }


def _article_detail_to_dict(article: Article) -> dict:
    data = _article_to_dict(article)
    data["content"] = article.content
    return data


async def _unique_slug(db: AsyncSession, title: str) -> str:
    base = slugify(title) or "article"
    slug, suffix = base, 1
    while (await db.execute(select(Article.id).where(Article.slug == slug))).first() is not None:
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


async def _require_article(db: AsyncSession, article_id: int) -> Article:
    result = await db.execute(select(Article).where(Article.id == article_id))
    article = result.scalar_one_or_none()
    if article is None:
        raise NotFoundError("article_not_found")
    return article


async def _viewer_membership(db: AsyncSession, planet_id: int, user_id: int | None):
    if user_id is None:
        return None
    return await membership_service.get_membership(db, planet_id, user_id)


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_article(
    db: AsyncSession, user_id: int, planet_id: int, data: ArticleCreate
) -> dict:
    planet = await planet_service.require_planet(db, planet_id)
    membership = await membership_service.get_membership(db, planet.id, user_id)
    policies.assert_can_post_article(membership)

    article = Article(
        title=data.title,
        slug=await _unique_slug(db, data.title),
        content=data.content,
        summary=data.summary,
        is_published=data.is_published,
        planet_id=planet_id,
        user_id=user_id,
    )
    if data.is_published:
        article.published_at = datetime.now(timezone.utc)

    db.add(article)
    try:
        await db.flush()
    except IntegrityError as exc:
        # Another post claimed the slug between the lookup and the insert.
        raise ConflictError("article_slug_taken") from exc
    return _article_detail_to_dict(article)


async def list_planet_articles(
    db: AsyncSession,
    user_id: int | None,
    planet_id: int,
    page: int = 1,
    page_size: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> PaginatedResponse:
    """Published articles of one planet, gated by the planet's visibility."""
    planet = await planet_service.require_planet(db, planet_id)
    membership = await _viewer_membership(db, planet_id, user_id)
    policies.assert_can_view_content(planet, membership)

    condition = (Article.planet_id == planet_id) & Article.is_published.is_(True)
    total: int = (
        await db.execute(select(func.count()).select_from(Article).where(condition))
    ).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order_expr = desc(sort_col) if sort_order == "desc" else asc(sort_col)
    q = (
        select(Article)
        .where(condition)
        .order_by(order_expr, Article.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    articles = (await db.execute(q)).scalars().all()

    return PaginatedResponse(
        items=[_article_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )


async def get_article(db: AsyncSession, user_id: int | None, article_id: int) -> dict:
    """Return the article detail and bump its view counter."""
    article = await _require_article(db, article_id)
    if not article.is_published and article.user_id != user_id:
        raise NotFoundError("article_not_found")

    planet = await planet_service.require_planet(db, article.planet_id)
    membership = await _viewer_membership(db, article.planet_id, user_id)
    policies.assert_can_view_content(planet, membership)

    article.view_count += 1
    await db.flush()
    return _article_detail_to_dict(article)


async def delete_article(db: AsyncSession, user_id: int, article_id: int) -> None:
    """Authors, planet admins and the planet owner may delete an article."""
    article = await _require_article(db, article_id)
    planet = await planet_service.require_planet(db, article.planet_id)
    membership = await membership_service.get_membership(db, article.planet_id, user_id)
    policies.assert_can_delete_article(planet, user_id, article.user_id, membership)

    await db.delete(article)
    await db.flush()
