"""
Planet service: create / read / update / delete for the Planet aggregate.

Design notes
------------
- ``create_planet`` writes the planet row and then delegates the owner's
  (APPROVED, OWNER) membership to ``membership_service.bootstrap_owner``.
  Both flushes run in the request transaction, so either both rows exist
  or neither does.
- ``delete_planet`` removes articles, bookmarks, memberships and finally
  the planet row in one unit; a failure anywhere rolls all of it back.
- ``set_owner`` is the only code path that writes ``Planet.owner_id``.
- Detail and public-list reads go through the Redis cache-aside layer and
  every write invalidates it.
"""
import logging
import math

from sqlalchemy import asc, delete, desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app import policies
from app.cache import cache, planet_detail_key, planet_list_key
from app.config import settings
from app.exceptions import ConflictError, NotFoundError
from app.models import Article, Planet, PlanetBookmark, PlanetMembership
from app.schemas import PaginatedResponse, PlanetCreate, PlanetUpdate
from app.services import membership_service

logger = logging.getLogger(__name__)

_SORTABLE_COLUMNS: frozenset[str] = frozenset({"created_at", "name"})


def _resolve_sort_column(sort_by: str):
    """Map *sort_by* to a Planet column, defaulting to ``created_at``."""
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Planet, sort_by)
    return Planet.created_at


def planet_to_dict(planet: Planet) -> dict:
    return {
        "id": planet.id,
        "name": planet.name,
        "description": planet.description,
        "image_url": planet.image_url,
        "published": planet.published,
        "owner_id": planet.owner_id,
        "created_at": planet.created_at.isoformat() if planet.created_at else None,
    }


async def _get_planet(db: AsyncSession, planet_id: int) -> Planet | None:
    result = await db.execute(select(Planet).where(Planet.id == planet_id))
    return result.scalar_one_or_none()


async def require_planet(db: AsyncSession, planet_id: int) -> Planet:
    """Return the planet or raise ``NotFoundError``."""
    planet = await _get_planet(db, planet_id)
    if planet is None:
        raise NotFoundError("planet_not_found")
    return planet


async def _ensure_name_available(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    q = select(Planet.id).where(Planet.name == name)
    if exclude_id is not None:
        q = q.where(Planet.id != exclude_id)
    if (await db.execute(q)).first() is not None:
        raise ConflictError("planet_name_taken")


async def _flush_or_conflict(db: AsyncSession, detail: str) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(detail) from exc


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_planet(db: AsyncSession, planet_id: int) -> dict:
    cache_key = planet_detail_key(planet_id)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    planet = await require_planet(db, planet_id)
    data = planet_to_dict(planet)
    await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)
    return data


async def list_planets(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 10,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> PaginatedResponse:
    """Return a page of published planets (cache-aside)."""
    cache_key = planet_list_key(page, page_size, sort_by, sort_order)
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    count_q = select(func.count()).select_from(Planet).where(Planet.published.is_(True))
    total: int = (await db.execute(count_q)).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order_expr = desc(sort_col) if sort_order == "desc" else asc(sort_col)
    q = (
        select(Planet)
        .where(Planet.published.is_(True))
        .order_by(order_expr, Planet.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    planets = (await db.execute(q)).scalars().all()

    response = PaginatedResponse(
        items=[planet_to_dict(p) for p in planets],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_planet(db: AsyncSession, creator_id: int, data: PlanetCreate) -> dict:
    """Create a planet owned by *creator_id*, who becomes its first member."""
    await _ensure_name_available(db, data.name)

    planet = Planet(**data.model_dump(), owner_id=creator_id)
    db.add(planet)
    await _flush_or_conflict(db, "planet_name_taken")

    await membership_service.bootstrap_owner(db, planet)

    await cache.invalidate_planet()
    logger.info("User %s created planet %s (%r)", creator_id, planet.id, planet.name)
    return planet_to_dict(planet)


async def update_planet(
    db: AsyncSession, user_id: int, planet_id: int, data: PlanetUpdate
) -> dict:
    """
    Apply the fields explicitly set in *data* (``exclude_unset``).

    Allowed for the owner and for planet admins.
    """
    planet = await require_planet(db, planet_id)
    membership = await membership_service.get_membership(db, planet_id, user_id)
    policies.assert_can_update_planet(planet, user_id, membership)

    update_data = data.model_dump(exclude_unset=True)
    renaming = "name" in update_data and update_data["name"] != planet.name
    if renaming:
        await _ensure_name_available(db, update_data["name"], exclude_id=planet_id)

    for field, value in update_data.items():
        setattr(planet, field, value)

    if renaming:
        await _flush_or_conflict(db, "planet_name_taken")
    else:
        await db.flush()
    await cache.invalidate_planet(planet_id)
    return planet_to_dict(planet)


async def _delete_planet_content(db: AsyncSession, planet_id: int) -> int:
    """Delete everything hanging off *planet_id*; returns the article count."""
    articles = await db.execute(delete(Article).where(Article.planet_id == planet_id))
    await db.execute(delete(PlanetBookmark).where(PlanetBookmark.planet_id == planet_id))
    await db.execute(delete(PlanetMembership).where(PlanetMembership.planet_id == planet_id))
    return articles.rowcount or 0


async def _delete_planet_row(db: AsyncSession, planet: Planet) -> None:
    await db.delete(planet)
    await db.flush()


async def delete_planet(
    db: AsyncSession, user_id: int, planet_id: int, is_superuser: bool = False
) -> None:
    """
    Delete a planet and all of its dependent rows.

    Only the owner may delete, unless *is_superuser* is set (platform
    administrators).
    """
    planet = await require_planet(db, planet_id)
    policies.assert_can_delete_planet(planet, user_id, is_superuser=is_superuser)

    article_count = await _delete_planet_content(db, planet_id)
    await _delete_planet_row(db, planet)

    await cache.invalidate_planet(planet_id)
    logger.info(
        "Planet %s deleted by user %s%s (%d articles removed)",
        planet_id, user_id, " as superuser" if is_superuser else "", article_count,
    )


async def set_owner(db: AsyncSession, planet: Planet, new_owner_id: int) -> None:
    """Write ``owner_id``; membership roles are the caller's concern."""
    planet.owner_id = new_owner_id
    await db.flush()
    await cache.invalidate_planet(planet.id)
