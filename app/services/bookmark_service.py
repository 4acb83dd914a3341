"""
Bookmark service: a user's saved planets, independent of membership.
"""
import math

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, NotFoundError
from app.models import Planet, PlanetBookmark
from app.schemas import PaginatedResponse
from app.services import planet_service


def _bookmark_to_dict(bookmark: PlanetBookmark) -> dict:
    return {
        "user_id": bookmark.user_id,
        "planet_id": bookmark.planet_id,
        "created_at": bookmark.created_at.isoformat() if bookmark.created_at else None,
    }


async def _get_bookmark(db: AsyncSession, user_id: int, planet_id: int) -> PlanetBookmark | None:
    result = await db.execute(
        select(PlanetBookmark).where(
            PlanetBookmark.user_id == user_id,
            PlanetBookmark.planet_id == planet_id,
        )
    )
    return result.scalar_one_or_none()


async def add_bookmark(db: AsyncSession, user_id: int, planet_id: int) -> dict:
    await planet_service.require_planet(db, planet_id)

    if await _get_bookmark(db, user_id, planet_id) is not None:
        raise ConflictError("already_bookmarked")

    bookmark = PlanetBookmark(user_id=user_id, planet_id=planet_id)
    db.add(bookmark)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("already_bookmarked") from exc
    return _bookmark_to_dict(bookmark)


async def remove_bookmark(db: AsyncSession, user_id: int, planet_id: int) -> None:
    bookmark = await _get_bookmark(db, user_id, planet_id)
    if bookmark is None:
        raise NotFoundError("bookmark_not_found")
    await db.delete(bookmark)
    await db.flush()


async def list_bookmarked_planets(
    db: AsyncSession, user_id: int, page: int = 1, page_size: int = 10
) -> PaginatedResponse:
    """Most recently bookmarked first."""
    count_q = (
        select(func.count())
        .select_from(PlanetBookmark)
        .where(PlanetBookmark.user_id == user_id)
    )
    total: int = (await db.execute(count_q)).scalar_one()

    q = (
        select(Planet)
        .join(PlanetBookmark, PlanetBookmark.planet_id == Planet.id)
        .where(PlanetBookmark.user_id == user_id)
        .order_by(PlanetBookmark.created_at.desc(), Planet.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    planets = (await db.execute(q)).scalars().all()

    return PaginatedResponse(
        items=[planet_service.planet_to_dict(p) for p in planets],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
