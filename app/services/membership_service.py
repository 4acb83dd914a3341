"""
Membership service: the (user, planet) relationship state machine.

States per pair: ABSENT (no row), PENDING, APPROVED, REJECTED, with the role
(OWNER / ADMIN / MEMBER) orthogonal to the status.

Design notes
------------
- This module is the only writer of ``PlanetMembership.status`` and
  ``PlanetMembership.role``.  ``Planet.owner_id`` is written by
  ``planet_service.set_owner``; ownership transfer coordinates the two.
- Every join creates a PENDING row.  The planet's ``published`` flag only
  controls who may read its content, never whether a join is auto-approved.
- The composite primary key ``(planet_id, user_id)`` is what serialises
  concurrent joins: the loser's INSERT fails at flush and surfaces as
  ``ConflictError``.
- Functions flush but never commit; ``get_db`` owns the transaction, so
  multi-row operations (reapply, transfer) are atomic.
"""
import logging
import math

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app import policies
from app.exceptions import ConflictError, ForbiddenError, InvariantViolation, NotFoundError
from app.models import (
    MemberRole,
    MembershipStatus,
    Planet,
    PlanetMembership,
    User,
    is_valid_combination,
)
from app.schemas import PaginatedResponse
from app.services import planet_service

logger = logging.getLogger(__name__)

# Distinct refusal per existing status when a user tries to join again.
_DUPLICATE_JOIN_DETAIL: dict[MembershipStatus, str] = {
    MembershipStatus.APPROVED: "already_member",
    MembershipStatus.PENDING: "application_pending",
    MembershipStatus.REJECTED: "application_rejected",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def membership_to_dict(membership: PlanetMembership, username: str | None = None) -> dict:
    return {
        "planet_id": membership.planet_id,
        "user_id": membership.user_id,
        "status": membership.status.value,
        "role": membership.role.value,
        "username": username,
        "created_at": membership.created_at.isoformat() if membership.created_at else None,
    }


def _check_combination(membership: PlanetMembership) -> None:
    if not is_valid_combination(membership.status, membership.role):
        raise InvariantViolation(
            f"role {membership.role.value} requires APPROVED status, "
            f"got {membership.status.value}"
        )


async def _insert(db: AsyncSession, membership: PlanetMembership, conflict_detail: str) -> None:
    _check_combination(membership)
    db.add(membership)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictError(conflict_detail) from exc


async def get_membership(db: AsyncSession, planet_id: int, user_id: int) -> PlanetMembership | None:
    """Point lookup by the composite key; None when the pair has no row."""
    result = await db.execute(
        select(PlanetMembership).where(
            PlanetMembership.planet_id == planet_id,
            PlanetMembership.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def require_membership(db: AsyncSession, planet_id: int, user_id: int) -> PlanetMembership:
    membership = await get_membership(db, planet_id, user_id)
    if membership is None:
        raise NotFoundError("membership_not_found")
    return membership


# ---------------------------------------------------------------------------
# Owner bootstrap
# ---------------------------------------------------------------------------

async def bootstrap_owner(db: AsyncSession, planet: Planet) -> PlanetMembership:
    """
    Insert the creator's (APPROVED, OWNER) membership for a freshly flushed
    planet.  Runs inside the caller's transaction, so a failure here also
    discards the planet row.
    """
    membership = PlanetMembership(
        planet_id=planet.id,
        user_id=planet.owner_id,
        status=MembershipStatus.APPROVED,
        role=MemberRole.OWNER,
    )
    await _insert(db, membership, "membership_exists")
    return membership


# ---------------------------------------------------------------------------
# Join / reapply
# ---------------------------------------------------------------------------

async def join_planet(db: AsyncSession, user_id: int, planet_id: int) -> MembershipStatus:
    """
    Apply for membership.  Always produces a PENDING, MEMBER row and returns
    its status so the caller can tell "joined" from "pending".

    Raises ``ConflictError`` when any row already exists for the pair, with
    a detail that names the existing status.
    """
    await planet_service.require_planet(db, planet_id)

    existing = await get_membership(db, planet_id, user_id)
    if existing is not None:
        raise ConflictError(_DUPLICATE_JOIN_DETAIL[existing.status])

    membership = PlanetMembership(
        planet_id=planet_id,
        user_id=user_id,
        status=MembershipStatus.PENDING,
        role=MemberRole.MEMBER,
    )
    await _insert(db, membership, "membership_exists")
    logger.info("User %s applied to planet %s", user_id, planet_id)
    return membership.status


async def reapply(db: AsyncSession, user_id: int, planet_id: int) -> MembershipStatus:
    """
    Replace a REJECTED application with a fresh PENDING one.

    The rejected row is deleted and a new one inserted; a decided
    application is never flipped back in place.
    """
    await planet_service.require_planet(db, planet_id)

    existing = await get_membership(db, planet_id, user_id)
    if existing is None or existing.status != MembershipStatus.REJECTED:
        raise NotFoundError("no_rejected_application")

    await db.delete(existing)
    await db.flush()

    membership = PlanetMembership(
        planet_id=planet_id,
        user_id=user_id,
        status=MembershipStatus.PENDING,
        role=MemberRole.MEMBER,
    )
    await _insert(db, membership, "membership_exists")
    logger.info("User %s re-applied to planet %s", user_id, planet_id)
    return membership.status


# ---------------------------------------------------------------------------
# Approve / reject
# ---------------------------------------------------------------------------

async def _review_application(
    db: AsyncSession,
    reviewer_id: int,
    target_user_id: int,
    planet_id: int,
    decision: MembershipStatus,
) -> dict:
    await planet_service.require_planet(db, planet_id)

    reviewer = await get_membership(db, planet_id, reviewer_id)
    policies.assert_can_review_applications(reviewer)

    target = await get_membership(db, planet_id, target_user_id)
    if target is None or target.status != MembershipStatus.PENDING:
        raise NotFoundError("invalid_application")

    target.status = decision
    _check_combination(target)
    await db.flush()
    logger.info(
        "Application of user %s to planet %s %s by user %s",
        target_user_id, planet_id, decision.value.lower(), reviewer_id,
    )
    return membership_to_dict(target)


async def approve_application(
    db: AsyncSession, reviewer_id: int, target_user_id: int, planet_id: int
) -> dict:
    return await _review_application(
        db, reviewer_id, target_user_id, planet_id, MembershipStatus.APPROVED
    )


async def reject_application(
    db: AsyncSession, reviewer_id: int, target_user_id: int, planet_id: int
) -> dict:
    return await _review_application(
        db, reviewer_id, target_user_id, planet_id, MembershipStatus.REJECTED
    )


# ---------------------------------------------------------------------------
# Leave / kick
# ---------------------------------------------------------------------------

async def _remove_member(db: AsyncSession, planet: Planet, user_id: int) -> None:
    """Shared deletion path for leave and kick; the owner is never removable."""
    membership = await get_membership(db, planet.id, user_id)
    if membership is None:
        raise NotFoundError("not_a_member")
    policies.assert_can_leave(planet, user_id)

    await db.delete(membership)
    await db.flush()


async def leave_planet(db: AsyncSession, user_id: int, planet_id: int) -> None:
    planet = await planet_service.require_planet(db, planet_id)
    await _remove_member(db, planet, user_id)
    logger.info("User %s left planet %s", user_id, planet_id)


async def kick_member(
    db: AsyncSession, actor_id: int, target_user_id: int, planet_id: int
) -> None:
    planet = await planet_service.require_planet(db, planet_id)

    actor = await get_membership(db, planet_id, actor_id)
    policies.assert_can_kick(planet, actor_id, actor)

    await _remove_member(db, planet, target_user_id)
    logger.info("User %s kicked user %s from planet %s", actor_id, target_user_id, planet_id)


# ---------------------------------------------------------------------------
# Roles and ownership
# ---------------------------------------------------------------------------

async def update_member_role(
    db: AsyncSession,
    actor_id: int,
    target_user_id: int,
    planet_id: int,
    new_role: MemberRole,
) -> dict:
    planet = await planet_service.require_planet(db, planet_id)
    policies.assert_can_change_role(planet, actor_id, target_user_id, new_role)

    target = await require_membership(db, planet_id, target_user_id)
    if not is_valid_combination(target.status, new_role):
        raise ForbiddenError("member_not_approved")

    target.role = new_role
    _check_combination(target)
    await db.flush()
    logger.info(
        "User %s set role of user %s on planet %s to %s",
        actor_id, target_user_id, planet_id, new_role.value,
    )
    return membership_to_dict(target)


async def transfer_ownership(
    db: AsyncSession, actor_id: int, new_owner_id: int, planet_id: int
) -> dict:
    """
    Hand the planet to another member.

    Roles are re-synchronised in the same unit: the new owner becomes
    (APPROVED, OWNER), and the previous owner stays on as (APPROVED, ADMIN).
    A pending applicant is approved by the transfer; a rejected one must
    reapply first.
    """
    planet = await planet_service.require_planet(db, planet_id)
    policies.assert_can_transfer_ownership(planet, actor_id)

    if new_owner_id == planet.owner_id:
        raise ConflictError("already_owner")

    successor = await get_membership(db, planet_id, new_owner_id)
    if successor is None:
        raise NotFoundError("new_owner_not_member")
    if successor.status == MembershipStatus.REJECTED:
        raise ForbiddenError("member_not_approved")
    predecessor = await get_membership(db, planet_id, actor_id)

    await planet_service.set_owner(db, planet, new_owner_id)

    successor.status = MembershipStatus.APPROVED
    successor.role = MemberRole.OWNER
    _check_combination(successor)
    if predecessor is not None:
        predecessor.status = MembershipStatus.APPROVED
        predecessor.role = MemberRole.ADMIN
        _check_combination(predecessor)
    await db.flush()

    logger.info("Planet %s ownership moved from user %s to user %s", planet_id, actor_id, new_owner_id)
    return planet_service.planet_to_dict(planet)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def list_members(
    db: AsyncSession, planet_id: int, status: MembershipStatus | None = None
) -> list[dict]:
    await planet_service.require_planet(db, planet_id)

    q = (
        select(PlanetMembership, User.username)
        .join(User, User.id == PlanetMembership.user_id)
        .where(PlanetMembership.planet_id == planet_id)
        .order_by(PlanetMembership.created_at, PlanetMembership.user_id)
    )
    if status is not None:
        q = q.where(PlanetMembership.status == status)

    result = await db.execute(q)
    return [membership_to_dict(m, username) for m, username in result.all()]


async def list_pending_applications(db: AsyncSession, user_id: int) -> list[dict]:
    """PENDING applications across every planet *user_id* can review."""
    reviewer = aliased(PlanetMembership)
    q = (
        select(PlanetMembership, User.username)
        .join(User, User.id == PlanetMembership.user_id)
        .join(
            reviewer,
            and_(
                reviewer.planet_id == PlanetMembership.planet_id,
                reviewer.user_id == user_id,
                reviewer.role.in_(list(policies.REVIEWER_ROLES)),
            ),
        )
        .where(PlanetMembership.status == MembershipStatus.PENDING)
        .order_by(PlanetMembership.created_at, PlanetMembership.planet_id)
    )
    result = await db.execute(q)
    return [membership_to_dict(m, username) for m, username in result.all()]


async def list_my_planets(
    db: AsyncSession, user_id: int, page: int = 1, page_size: int = 10
) -> PaginatedResponse:
    """Planets where *user_id* holds an APPROVED membership."""
    condition = and_(
        PlanetMembership.user_id == user_id,
        PlanetMembership.status == MembershipStatus.APPROVED,
    )
    count_q = select(func.count()).select_from(PlanetMembership).where(condition)
    total: int = (await db.execute(count_q)).scalar_one()

    q = (
        select(Planet)
        .join(PlanetMembership, PlanetMembership.planet_id == Planet.id)
        .where(condition)
        .order_by(PlanetMembership.created_at.desc(), Planet.id.desc())
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


# ---------------------------------------------------------------------------
# Ownership consistency
# ---------------------------------------------------------------------------

async def check_ownership(db: AsyncSession, planet_id: int) -> list[str]:
    """
    Return the ownership invariant violations for *planet_id* (empty when
    healthy): the owner must hold exactly one (APPROVED, OWNER) membership
    and nobody else may hold OWNER.
    """
    planet = await planet_service.require_planet(db, planet_id)
    problems: list[str] = []

    owner_membership = await get_membership(db, planet_id, planet.owner_id)
    if owner_membership is None:
        problems.append("owner_membership_missing")
    else:
        if owner_membership.role != MemberRole.OWNER:
            problems.append(f"owner_role_is_{owner_membership.role.value.lower()}")
        if owner_membership.status != MembershipStatus.APPROVED:
            problems.append(f"owner_status_is_{owner_membership.status.value.lower()}")

    stray = await db.execute(
        select(PlanetMembership.user_id).where(
            PlanetMembership.planet_id == planet_id,
            PlanetMembership.role == MemberRole.OWNER,
            PlanetMembership.user_id != planet.owner_id,
        )
    )
    problems.extend(f"stray_owner:{uid}" for uid in stray.scalars().all())
    return problems


async def repair_ownership(db: AsyncSession, planet_id: int) -> dict:
    """Bring the memberships of *planet_id* back in line with its owner_id."""
    problems = await check_ownership(db, planet_id)
    if not problems:
        return {"planet_id": planet_id, "repaired": []}

    logger.warning("Repairing ownership of planet %s: %s", planet_id, ", ".join(problems))
    planet = await planet_service.require_planet(db, planet_id)

    stray = await db.execute(
        select(PlanetMembership).where(
            PlanetMembership.planet_id == planet_id,
            PlanetMembership.role == MemberRole.OWNER,
            PlanetMembership.user_id != planet.owner_id,
        )
    )
    for membership in stray.scalars().all():
        membership.status = MembershipStatus.APPROVED
        membership.role = MemberRole.ADMIN

    owner_membership = await get_membership(db, planet_id, planet.owner_id)
    if owner_membership is None:
        await bootstrap_owner(db, planet)
    else:
        owner_membership.status = MembershipStatus.APPROVED
        owner_membership.role = MemberRole.OWNER
    await db.flush()

    return {"planet_id": planet_id, "repaired": problems}
