from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models import User
from app.services import user_service


class PaginationParams:
    """
    Reusable dependency that parses pagination / sorting query parameters.

    Usage in a router::

        @router.get("/planets")
        async def list_planets(pagination: PaginationParams = Depends()):
            ...

    ``sort_by`` is validated by each service against its own whitelist of
    sortable columns; unknown names fall back to ``created_at``.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_by: str = Query("created_at", description="Column name to sort results by."),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.sort_order = sort_order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

def _header_user_id(request: Request) -> int | None:
    raw = request.headers.get(settings.AUTH_USER_HEADER)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_user_id"
        )


async def get_optional_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> User | None:
    """The calling user, or None for anonymous requests."""
    user_id = _header_user_id(request)
    if user_id is None:
        return None
    user = await user_service.get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown_user")
    return user


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """
    Resolve the verified user id forwarded by the identity provider.

    Token verification happens upstream; this only maps the numeric id onto
    a ``User`` row.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication_required"
        )
    return user


async def get_superuser(user: User = Depends(get_current_user)) -> User:
    if not user.is_superuser:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="superuser_required")
    return user
