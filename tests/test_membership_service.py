"""
Service-level tests for the membership state machine: join, reapply,
approve / reject, leave / kick, role changes and ownership transfer.
"""
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.models import MemberRole, MembershipStatus
from app.schemas import PlanetCreate
from app.services import membership_service, planet_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _planet(db: AsyncSession, owner_id: int, name: str = "Saturn", published: bool = True) -> int:
    planet = await planet_service.create_planet(
        db, owner_id, PlanetCreate(name=name, published=published)
    )
    return planet["id"]


async def _approved_member(db: AsyncSession, owner_id: int, user_id: int, planet_id: int) -> None:
    await membership_service.join_planet(db, user_id, planet_id)
    await membership_service.approve_application(db, owner_id, user_id, planet_id)


async def _state(db: AsyncSession, planet_id: int, user_id: int):
    m = await membership_service.get_membership(db, planet_id, user_id)
    return None if m is None else (m.status, m.role)


# ---------------------------------------------------------------------------
# join / reapply
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_join_creates_pending_member(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)

    status = await membership_service.join_planet(db_session, user, planet_id)

    assert status == MembershipStatus.PENDING
    assert await _state(db_session, planet_id, user) == (MembershipStatus.PENDING, MemberRole.MEMBER)


@pytest.mark.asyncio
async def test_join_unpublished_planet_is_also_pending(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner, published=False)

    assert await membership_service.join_planet(db_session, user, planet_id) == MembershipStatus.PENDING


@pytest.mark.asyncio
async def test_join_missing_planet(db_session, make_user):
    user = await make_user("applicant")
    with pytest.raises(NotFoundError) as exc_info:
        await membership_service.join_planet(db_session, user, 9999)
    assert exc_info.value.detail == "planet_not_found"


@pytest.mark.asyncio
@pytest.mark.parametrize("decision, detail", [
    (None, "application_pending"),
    ("approve", "already_member"),
    ("reject", "application_rejected"),
])
async def test_duplicate_join_names_existing_status(db_session, make_user, decision, detail):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, user, planet_id)
    if decision == "approve":
        await membership_service.approve_application(db_session, owner, user, planet_id)
    elif decision == "reject":
        await membership_service.reject_application(db_session, owner, user, planet_id)

    with pytest.raises(ConflictError) as exc_info:
        await membership_service.join_planet(db_session, user, planet_id)
    assert exc_info.value.detail == detail


@pytest.mark.asyncio
async def test_owner_join_is_conflict(db_session, make_user):
    owner = await make_user("owner")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(ConflictError) as exc_info:
        await membership_service.join_planet(db_session, owner, planet_id)
    assert exc_info.value.detail == "already_member"


@pytest.mark.asyncio
async def test_reapply_after_rejection(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, user, planet_id)
    await membership_service.reject_application(db_session, owner, user, planet_id)

    status = await membership_service.reapply(db_session, user, planet_id)

    assert status == MembershipStatus.PENDING
    assert await _state(db_session, planet_id, user) == (MembershipStatus.PENDING, MemberRole.MEMBER)


@pytest.mark.asyncio
async def test_reapply_requires_rejected_application(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(NotFoundError):
        await membership_service.reapply(db_session, user, planet_id)

    await membership_service.join_planet(db_session, user, planet_id)
    with pytest.raises(NotFoundError) as exc_info:
        await membership_service.reapply(db_session, user, planet_id)
    assert exc_info.value.detail == "no_rejected_application"


# ---------------------------------------------------------------------------
# approve / reject
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_approve_by_owner(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, user, planet_id)

    result = await membership_service.approve_application(db_session, owner, user, planet_id)

    assert result["status"] == "APPROVED"
    assert result["role"] == "MEMBER"


@pytest.mark.asyncio
async def test_approve_by_admin(db_session, make_user):
    owner, admin, user = await make_user("owner"), await make_user("admin"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, admin, planet_id)
    await membership_service.update_member_role(db_session, owner, admin, planet_id, MemberRole.ADMIN)
    await membership_service.join_planet(db_session, user, planet_id)

    result = await membership_service.approve_application(db_session, admin, user, planet_id)
    assert result["status"] == "APPROVED"


@pytest.mark.asyncio
async def test_plain_member_cannot_review(db_session, make_user):
    owner, member, user = await make_user("owner"), await make_user("member"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, member, planet_id)
    await membership_service.join_planet(db_session, user, planet_id)

    with pytest.raises(ForbiddenError) as exc_info:
        await membership_service.approve_application(db_session, member, user, planet_id)
    assert exc_info.value.detail == "admin_role_required"
    assert await _state(db_session, planet_id, user) == (MembershipStatus.PENDING, MemberRole.MEMBER)


@pytest.mark.asyncio
async def test_decided_application_cannot_be_reviewed_again(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, user, planet_id)
    await membership_service.approve_application(db_session, owner, user, planet_id)

    with pytest.raises(NotFoundError) as exc_info:
        await membership_service.approve_application(db_session, owner, user, planet_id)
    assert exc_info.value.detail == "invalid_application"
    with pytest.raises(NotFoundError):
        await membership_service.reject_application(db_session, owner, user, planet_id)
    assert await _state(db_session, planet_id, user) == (MembershipStatus.APPROVED, MemberRole.MEMBER)


@pytest.mark.asyncio
async def test_review_without_application(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("stranger")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(NotFoundError):
        await membership_service.reject_application(db_session, owner, user, planet_id)


# ---------------------------------------------------------------------------
# leave / kick
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_member_leaves(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("member")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, user, planet_id)

    await membership_service.leave_planet(db_session, user, planet_id)
    assert await _state(db_session, planet_id, user) is None


@pytest.mark.asyncio
async def test_pending_applicant_can_withdraw(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, user, planet_id)

    await membership_service.leave_planet(db_session, user, planet_id)
    assert await _state(db_session, planet_id, user) is None


@pytest.mark.asyncio
async def test_owner_cannot_leave(db_session, make_user):
    owner = await make_user("owner")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(ForbiddenError) as exc_info:
        await membership_service.leave_planet(db_session, owner, planet_id)
    assert exc_info.value.detail == "owner_cannot_leave"
    assert await _state(db_session, planet_id, owner) == (MembershipStatus.APPROVED, MemberRole.OWNER)


@pytest.mark.asyncio
async def test_leave_without_membership(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("stranger")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(NotFoundError) as exc_info:
        await membership_service.leave_planet(db_session, user, planet_id)
    assert exc_info.value.detail == "not_a_member"


@pytest.mark.asyncio
async def test_admin_kicks_member_but_not_owner(db_session, make_user):
    owner, admin, member = await make_user("owner"), await make_user("admin"), await make_user("member")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, admin, planet_id)
    await _approved_member(db_session, owner, member, planet_id)
    await membership_service.update_member_role(db_session, owner, admin, planet_id, MemberRole.ADMIN)

    await membership_service.kick_member(db_session, admin, member, planet_id)
    assert await _state(db_session, planet_id, member) is None

    with pytest.raises(ForbiddenError) as exc_info:
        await membership_service.kick_member(db_session, admin, owner, planet_id)
    assert exc_info.value.detail == "owner_cannot_leave"


@pytest.mark.asyncio
async def test_member_cannot_kick(db_session, make_user):
    owner, a, b = await make_user("owner"), await make_user("a"), await make_user("b")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, a, planet_id)
    await _approved_member(db_session, owner, b, planet_id)

    with pytest.raises(ForbiddenError):
        await membership_service.kick_member(db_session, a, b, planet_id)
    assert await _state(db_session, planet_id, b) == (MembershipStatus.APPROVED, MemberRole.MEMBER)


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_promote_and_demote(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("member")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, user, planet_id)

    promoted = await membership_service.update_member_role(db_session, owner, user, planet_id, MemberRole.ADMIN)
    assert promoted["role"] == "ADMIN"

    demoted = await membership_service.update_member_role(db_session, owner, user, planet_id, MemberRole.MEMBER)
    assert demoted["role"] == "MEMBER"


@pytest.mark.asyncio
async def test_pending_member_cannot_be_promoted(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("applicant")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, user, planet_id)

    with pytest.raises(ForbiddenError) as exc_info:
        await membership_service.update_member_role(db_session, owner, user, planet_id, MemberRole.ADMIN)
    assert exc_info.value.detail == "member_not_approved"
    assert await _state(db_session, planet_id, user) == (MembershipStatus.PENDING, MemberRole.MEMBER)


@pytest.mark.asyncio
async def test_role_change_rules(db_session, make_user):
    owner, admin, member = await make_user("owner"), await make_user("admin"), await make_user("member")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, admin, planet_id)
    await _approved_member(db_session, owner, member, planet_id)
    await membership_service.update_member_role(db_session, owner, admin, planet_id, MemberRole.ADMIN)

    with pytest.raises(ForbiddenError):
        await membership_service.update_member_role(db_session, admin, member, planet_id, MemberRole.ADMIN)
    with pytest.raises(ForbiddenError):
        await membership_service.update_member_role(db_session, owner, member, planet_id, MemberRole.OWNER)
    with pytest.raises(ForbiddenError):
        await membership_service.update_member_role(db_session, owner, owner, planet_id, MemberRole.ADMIN)


@pytest.mark.asyncio
async def test_role_change_for_non_member(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("stranger")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(NotFoundError):
        await membership_service.update_member_role(db_session, owner, user, planet_id, MemberRole.ADMIN)


# ---------------------------------------------------------------------------
# ownership transfer
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_transfer_ownership_resyncs_roles(db_session, make_user):
    owner, heir = await make_user("owner"), await make_user("heir")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, heir, planet_id)

    result = await membership_service.transfer_ownership(db_session, owner, heir, planet_id)

    assert result["owner_id"] == heir
    assert await _state(db_session, planet_id, heir) == (MembershipStatus.APPROVED, MemberRole.OWNER)
    assert await _state(db_session, planet_id, owner) == (MembershipStatus.APPROVED, MemberRole.ADMIN)
    assert await membership_service.check_ownership(db_session, planet_id) == []


@pytest.mark.asyncio
async def test_transfer_to_pending_applicant_approves_them(db_session, make_user):
    owner, heir = await make_user("owner"), await make_user("heir")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, heir, planet_id)

    await membership_service.transfer_ownership(db_session, owner, heir, planet_id)
    assert await _state(db_session, planet_id, heir) == (MembershipStatus.APPROVED, MemberRole.OWNER)


@pytest.mark.asyncio
async def test_transfer_to_rejected_applicant_is_refused(db_session, make_user):
    owner, heir = await make_user("owner"), await make_user("heir")
    planet_id = await _planet(db_session, owner)
    await membership_service.join_planet(db_session, heir, planet_id)
    await membership_service.reject_application(db_session, owner, heir, planet_id)

    with pytest.raises(ForbiddenError) as exc_info:
        await membership_service.transfer_ownership(db_session, owner, heir, planet_id)
    assert exc_info.value.detail == "member_not_approved"

    assert await _state(db_session, planet_id, heir) == (MembershipStatus.REJECTED, MemberRole.MEMBER)
    assert (await planet_service.get_planet(db_session, planet_id))["owner_id"] == owner

    # after reapplying, the transfer goes through
    await membership_service.reapply(db_session, heir, planet_id)
    await membership_service.transfer_ownership(db_session, owner, heir, planet_id)
    assert await _state(db_session, planet_id, heir) == (MembershipStatus.APPROVED, MemberRole.OWNER)


@pytest.mark.asyncio
async def test_former_owner_loses_transfer_right(db_session, make_user):
    owner, heir, other = await make_user("owner"), await make_user("heir"), await make_user("other")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, heir, planet_id)
    await _approved_member(db_session, owner, other, planet_id)
    await membership_service.transfer_ownership(db_session, owner, heir, planet_id)

    with pytest.raises(ForbiddenError) as exc_info:
        await membership_service.transfer_ownership(db_session, owner, other, planet_id)
    assert exc_info.value.detail == "owner_required"

    # the old owner may now leave like any other member
    await membership_service.leave_planet(db_session, owner, planet_id)
    assert await _state(db_session, planet_id, owner) is None


@pytest.mark.asyncio
async def test_transfer_edge_cases(db_session, make_user):
    owner, stranger = await make_user("owner"), await make_user("stranger")
    planet_id = await _planet(db_session, owner)

    with pytest.raises(ConflictError) as exc_info:
        await membership_service.transfer_ownership(db_session, owner, owner, planet_id)
    assert exc_info.value.detail == "already_owner"

    with pytest.raises(NotFoundError) as exc_info:
        await membership_service.transfer_ownership(db_session, owner, stranger, planet_id)
    assert exc_info.value.detail == "new_owner_not_member"

    planet = await planet_service.get_planet(db_session, planet_id)
    assert planet["owner_id"] == owner


# ---------------------------------------------------------------------------
# listings
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_members_with_status_filter(db_session, make_user):
    owner, a, b = await make_user("owner"), await make_user("alice"), await make_user("bob")
    planet_id = await _planet(db_session, owner)
    await _approved_member(db_session, owner, a, planet_id)
    await membership_service.join_planet(db_session, b, planet_id)

    everyone = await membership_service.list_members(db_session, planet_id)
    assert {m["user_id"] for m in everyone} == {owner, a, b}

    pending = await membership_service.list_members(db_session, planet_id, MembershipStatus.PENDING)
    assert [(m["user_id"], m["username"]) for m in pending] == [(b, "bob")]


@pytest.mark.asyncio
async def test_list_pending_applications_for_reviewer(db_session, make_user):
    owner, other_owner = await make_user("owner"), await make_user("other_owner")
    applicant = await make_user("applicant")
    mine = await _planet(db_session, owner, name="Mine")
    theirs = await _planet(db_session, other_owner, name="Theirs")
    await membership_service.join_planet(db_session, applicant, mine)
    await membership_service.join_planet(db_session, applicant, theirs)

    pending = await membership_service.list_pending_applications(db_session, owner)
    assert [(p["planet_id"], p["user_id"]) for p in pending] == [(mine, applicant)]

    assert await membership_service.list_pending_applications(db_session, applicant) == []


@pytest.mark.asyncio
async def test_list_my_planets_only_approved(db_session, make_user):
    owner, user = await make_user("owner"), await make_user("user")
    approved = await _planet(db_session, owner, name="Approved")
    pending = await _planet(db_session, owner, name="Pending")
    await _approved_member(db_session, owner, user, approved)
    await membership_service.join_planet(db_session, user, pending)

    page = await membership_service.list_my_planets(db_session, user)
    assert page.total == 1
    assert page.items[0]["id"] == approved

    owned = await membership_service.list_my_planets(db_session, owner)
    assert owned.total == 2
