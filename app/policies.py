"""
Authorization rules for planet operations.

Every function here is pure: callers fetch the Planet / PlanetMembership
rows first and pass them in.  ``assert_*`` helpers raise ``ForbiddenError``
on denial; record existence (NotFound) is the caller's job so the two
failure kinds never get mixed up.
"""
from app.exceptions import ForbiddenError
from app.models import MemberRole, MembershipStatus, Planet, PlanetMembership

REVIEWER_ROLES: frozenset[MemberRole] = frozenset({MemberRole.OWNER, MemberRole.ADMIN})
ASSIGNABLE_ROLES: frozenset[MemberRole] = frozenset({MemberRole.ADMIN, MemberRole.MEMBER})


def is_owner(planet: Planet, user_id: int) -> bool:
    return planet.owner_id == user_id


def is_admin(membership: PlanetMembership | None) -> bool:
    return membership is not None and membership.role == MemberRole.ADMIN


def is_approved(membership: PlanetMembership | None) -> bool:
    return membership is not None and membership.status == MembershipStatus.APPROVED


def can_view_planet_content(planet: Planet, membership: PlanetMembership | None) -> bool:
    """Published planets are readable by anyone; others only by approved members."""
    return planet.published or is_approved(membership)


# ---------------------------------------------------------------------------
# Planet metadata
# ---------------------------------------------------------------------------

def assert_can_update_planet(
    planet: Planet, user_id: int, membership: PlanetMembership | None
) -> None:
    if is_owner(planet, user_id) or is_admin(membership):
        return
    raise ForbiddenError("owner_or_admin_required")


def assert_can_delete_planet(planet: Planet, user_id: int, is_superuser: bool = False) -> None:
    if is_superuser or is_owner(planet, user_id):
        return
    raise ForbiddenError("owner_required")


# ---------------------------------------------------------------------------
# Membership lifecycle
# ---------------------------------------------------------------------------

def assert_can_review_applications(membership: PlanetMembership | None) -> None:
    """Approve / reject a pending application."""
    if membership is None or membership.role not in REVIEWER_ROLES:
        raise ForbiddenError("admin_role_required")


def assert_can_change_role(
    planet: Planet, user_id: int, target_user_id: int, new_role: MemberRole
) -> None:
    if not is_owner(planet, user_id):
        raise ForbiddenError("owner_required")
    if is_owner(planet, target_user_id):
        raise ForbiddenError("owner_role_immutable")
    if new_role not in ASSIGNABLE_ROLES:
        raise ForbiddenError("invalid_role")


def assert_can_kick(planet: Planet, user_id: int, membership: PlanetMembership | None) -> None:
    if is_owner(planet, user_id) or is_admin(membership):
        return
    raise ForbiddenError("owner_or_admin_required")


def assert_can_transfer_ownership(planet: Planet, user_id: int) -> None:
    if not is_owner(planet, user_id):
        raise ForbiddenError("owner_required")


def assert_can_leave(planet: Planet, user_id: int) -> None:
    # The owner has to hand the planet over before leaving it.
    if is_owner(planet, user_id):
        raise ForbiddenError("owner_cannot_leave")


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

def assert_can_view_content(planet: Planet, membership: PlanetMembership | None) -> None:
    if not can_view_planet_content(planet, membership):
        raise ForbiddenError("membership_required")


def assert_can_post_article(membership: PlanetMembership | None) -> None:
    if not is_approved(membership):
        raise ForbiddenError("membership_required")


def assert_can_delete_article(
    planet: Planet, user_id: int, author_id: int, membership: PlanetMembership | None
) -> None:
    if user_id == author_id or is_owner(planet, user_id) or is_admin(membership):
        return
    raise ForbiddenError("author_or_admin_required")
