from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, get_current_user, get_superuser
from app.models import MembershipStatus, User
from app.schemas import (
    BookmarkResponse,
    ConsistencyReport,
    JoinResponse,
    MemberRoleUpdate,
    MembershipResponse,
    MessageResponse,
    PaginatedResponse,
    PlanetCreate,
    PlanetResponse,
    PlanetUpdate,
    TransferOwnership,
)
from app.services import bookmark_service, membership_service, planet_service

router = APIRouter(prefix="/api/v1/planets", tags=["planets"])

_JOIN_MESSAGES = {
    MembershipStatus.PENDING: "Application submitted; waiting for approval.",
}


# --- Collections (static paths before /{planet_id}) ---

@router.get("", response_model=PaginatedResponse)
async def list_planets(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await planet_service.list_planets(
        db, pagination.page, pagination.page_size, pagination.sort_by, pagination.sort_order
    )

@router.post("", status_code=201, response_model=PlanetResponse)
async def create_planet(
    data: PlanetCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await planet_service.create_planet(db, user.id, data)

@router.get("/mine", response_model=PaginatedResponse)
async def list_my_planets(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.list_my_planets(db, user.id, pagination.page, pagination.page_size)

@router.get("/bookmarks", response_model=PaginatedResponse)
async def list_bookmarked_planets(
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await bookmark_service.list_bookmarked_planets(
        db, user.id, pagination.page, pagination.page_size
    )

@router.get("/applications/pending", response_model=list[MembershipResponse])
async def list_pending_applications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.list_pending_applications(db, user.id)


# --- Platform administration ---

@router.delete("/admin/{planet_id}", status_code=204)
async def delete_planet_as_superuser(
    planet_id: int,
    user: User = Depends(get_superuser),
    db: AsyncSession = Depends(get_db),
):
    await planet_service.delete_planet(db, user.id, planet_id, is_superuser=True)

@router.get("/admin/{planet_id}/consistency", response_model=ConsistencyReport)
async def check_planet_consistency(
    planet_id: int,
    user: User = Depends(get_superuser),
    db: AsyncSession = Depends(get_db),
):
    problems = await membership_service.check_ownership(db, planet_id)
    return ConsistencyReport(planet_id=planet_id, healthy=not problems, problems=problems)

@router.post("/admin/{planet_id}/repair", response_model=ConsistencyReport)
async def repair_planet_ownership(
    planet_id: int,
    user: User = Depends(get_superuser),
    db: AsyncSession = Depends(get_db),
):
    result = await membership_service.repair_ownership(db, planet_id)
    return ConsistencyReport(planet_id=planet_id, healthy=True, problems=result["repaired"])


# --- Single planet ---

@router.get("/{planet_id}", response_model=PlanetResponse)
async def get_planet(planet_id: int, db: AsyncSession = Depends(get_db)):
    return await planet_service.get_planet(db, planet_id)

@router.put("/{planet_id}", response_model=PlanetResponse)
async def update_planet(
    planet_id: int,
    data: PlanetUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await planet_service.update_planet(db, user.id, planet_id, data)

@router.delete("/{planet_id}", status_code=204)
async def delete_planet(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await planet_service.delete_planet(db, user.id, planet_id)


# --- Membership lifecycle ---

@router.post("/{planet_id}/join", response_model=JoinResponse)
async def join_planet(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await membership_service.join_planet(db, user.id, planet_id)
    return JoinResponse(status=result, message=_JOIN_MESSAGES[result])

@router.post("/{planet_id}/reapply", response_model=JoinResponse)
async def reapply_to_planet(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await membership_service.reapply(db, user.id, planet_id)
    return JoinResponse(status=result, message=_JOIN_MESSAGES[result])

@router.post("/{planet_id}/leave", response_model=MessageResponse)
async def leave_planet(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await membership_service.leave_planet(db, user.id, planet_id)
    return MessageResponse(message="Left the planet.")

@router.get("/{planet_id}/members", response_model=list[MembershipResponse])
async def list_members(
    planet_id: int,
    status: MembershipStatus | None = Query(None, description="Filter by membership status."),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.list_members(db, planet_id, status)

@router.put("/{planet_id}/members/{user_id}/role", response_model=MembershipResponse)
async def update_member_role(
    planet_id: int,
    user_id: int,
    data: MemberRoleUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.update_member_role(db, user.id, user_id, planet_id, data.role)

@router.delete("/{planet_id}/members/{user_id}", response_model=MessageResponse)
async def kick_member(
    planet_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await membership_service.kick_member(db, user.id, user_id, planet_id)
    return MessageResponse(message="Member removed from the planet.")

@router.post("/{planet_id}/applications/{user_id}/approve", response_model=MembershipResponse)
async def approve_application(
    planet_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.approve_application(db, user.id, user_id, planet_id)

@router.post("/{planet_id}/applications/{user_id}/reject", response_model=MembershipResponse)
async def reject_application(
    planet_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.reject_application(db, user.id, user_id, planet_id)

@router.put("/{planet_id}/owner", response_model=PlanetResponse)
async def transfer_ownership(
    planet_id: int,
    data: TransferOwnership,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await membership_service.transfer_ownership(db, user.id, data.new_owner_id, planet_id)


# --- Bookmarks ---

@router.post("/{planet_id}/bookmark", status_code=201, response_model=BookmarkResponse)
async def add_bookmark(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await bookmark_service.add_bookmark(db, user.id, planet_id)

@router.delete("/{planet_id}/bookmark", status_code=204)
async def remove_bookmark(
    planet_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await bookmark_service.remove_bookmark(db, user.id, planet_id)
