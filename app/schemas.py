from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime

from app.models import MemberRole, MembershipStatus


# --- User ---

class UserBase(BaseModel):
    username: str = Field(max_length=50)
    email: str = Field(max_length=255)
    display_name: str | None = None
    bio: str | None = None


class UserCreate(UserBase):
    is_superuser: bool = False


class UserResponse(UserBase):
    id: int
    is_superuser: bool = False
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UserDetail(UserResponse):
    memberships: list["MembershipResponse"] = []


# --- Planet ---

class PlanetBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    image_url: str | None = Field(None, max_length=500)
    published: bool = True


class PlanetCreate(PlanetBase):
    pass


class PlanetUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    image_url: str | None = Field(None, max_length=500)
    published: bool | None = None

    @field_validator("name", "published")
    @classmethod
    def _not_null(cls, value):
        # Omit the field to leave it unchanged; null would clear a NOT NULL column.
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class PlanetResponse(PlanetBase):
    id: int
    owner_id: int
    created_at: datetime
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Membership ---

class MembershipResponse(BaseModel):
    planet_id: int
    user_id: int
    status: MembershipStatus
    role: MemberRole
    username: str | None = None
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class MemberRoleUpdate(BaseModel):
    role: MemberRole

    @field_validator("role")
    @classmethod
    def _owner_not_assignable(cls, value: MemberRole) -> MemberRole:
        # Ownership only moves through the transfer endpoint.
        if value == MemberRole.OWNER:
            raise ValueError("OWNER cannot be assigned; use ownership transfer")
        return value


class TransferOwnership(BaseModel):
    new_owner_id: int


class JoinResponse(BaseModel):
    status: MembershipStatus
    message: str


class MessageResponse(BaseModel):
    message: str


class ConsistencyReport(BaseModel):
    planet_id: int
    healthy: bool
    problems: list[str] = []


# --- Bookmark ---

class BookmarkResponse(BaseModel):
    user_id: int
    planet_id: int
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(max_length=200)
    content: str
    summary: str | None = Field(None, max_length=500)
    is_published: bool = True


class ArticleResponse(BaseModel):
    id: int
    title: str
    slug: str
    summary: str | None
    view_count: int
    is_published: bool
    published_at: datetime | None
    created_at: datetime
    planet_id: int
    user_id: int
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleResponse):
    content: str


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_planets: int
    total_users: int
    total_articles: int
    memberships_by_status: dict[str, int] = {}
    avg_members_per_planet: float
    cache_info: dict = {}


# Required for forward-reference resolution (UserDetail.memberships)
UserDetail.model_rebuild()
