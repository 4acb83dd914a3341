from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.models import Article, MembershipStatus, Planet, PlanetMembership, User
from app.schemas import MetricsResponse
from app.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):

    total_planets = (await db.execute(select(func.count()).select_from(Planet))).scalar_one()

    total_users = (await db.execute(select(func.count()).select_from(User))).scalar_one()

    total_articles = (await db.execute(select(func.count()).select_from(Article))).scalar_one()

    rows = await db.execute(
        select(PlanetMembership.status, func.count()).group_by(PlanetMembership.status)
    )
    by_status = {s.value: 0 for s in MembershipStatus}
    for status, count in rows.all():
        by_status[status.value] = count

    approved = by_status[MembershipStatus.APPROVED.value]
    avg_members = approved / total_planets if total_planets > 0 else 0

    return MetricsResponse(
        total_planets=total_planets,
        total_users=total_users,
        total_articles=total_articles,
        memberships_by_status=by_status,
        avg_members_per_planet=round(avg_members, 2),
        cache_info=cache.stats,
    )
