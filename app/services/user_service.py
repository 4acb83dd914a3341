"""
User service: identity records the planet services refer to.

Authentication happens upstream; these rows only carry the profile and the
platform-level ``is_superuser`` flag.
"""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, NotFoundError
from app.models import PlanetMembership, User
from app.schemas import UserCreate
from app.services.membership_service import membership_to_dict


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "bio": user.bio,
        "is_superuser": user.is_superuser,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_users(db: AsyncSession) -> list[dict]:
    """All users, newest first."""
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [_user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict:
    """Return the user with every membership they hold (any status)."""
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("user_not_found")

    memberships = await db.execute(
        select(PlanetMembership)
        .where(PlanetMembership.user_id == user_id)
        .order_by(PlanetMembership.created_at, PlanetMembership.planet_id)
    )
    data = _user_to_dict(user)
    data["memberships"] = [
        membership_to_dict(m, user.username) for m in memberships.scalars().all()
    ]
    return data


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """Create a user; a taken username or email is a ``ConflictError``."""
    user = User(
        username=data.username,
        email=data.email,
        display_name=data.display_name,
        bio=data.bio,
        is_superuser=data.is_superuser,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError("user_exists") from exc
    return _user_to_dict(user)
