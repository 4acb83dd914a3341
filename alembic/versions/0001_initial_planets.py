"""initial planets schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00

"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_STATUS = sa.Enum("PENDING", "APPROVED", "REJECTED", name="membershipstatus", native_enum=False, length=16)
_ROLE = sa.Enum("OWNER", "ADMIN", "MEMBER", name="memberrole", native_enum=False, length=16)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("display_name", sa.String(length=150), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("is_superuser", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "planets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["owner_id"], ["users.id"], name="fk_planets_owner_id_users", ondelete="RESTRICT"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_planets"),
    )
    op.create_index("ix_planets_name", "planets", ["name"], unique=True)
    op.create_index("ix_planets_owner_id", "planets", ["owner_id"])
    op.create_index("ix_planets_published_created_at", "planets", ["published", "created_at"])

    op.create_table(
        "planet_memberships",
        sa.Column("planet_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("status", _STATUS, nullable=False),
        sa.Column("role", _ROLE, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "role = 'MEMBER' OR status = 'APPROVED'",
            name="ck_planet_memberships_role_status",
        ),
        sa.ForeignKeyConstraint(
            ["planet_id"], ["planets.id"],
            name="fk_planet_memberships_planet_id_planets", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_planet_memberships_user_id_users", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("planet_id", "user_id", name="pk_planet_memberships"),
    )
    op.create_index("ix_planet_memberships_user_id", "planet_memberships", ["user_id"])
    op.create_index(
        "ix_planet_memberships_planet_id_status", "planet_memberships", ["planet_id", "status"]
    )

    op.create_table(
        "planet_bookmarks",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("planet_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["planet_id"], ["planets.id"],
            name="fk_planet_bookmarks_planet_id_planets", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_planet_bookmarks_user_id_users", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("user_id", "planet_id", name="pk_planet_bookmarks"),
    )
    op.create_index("ix_planet_bookmarks_planet_id", "planet_bookmarks", ["planet_id"])

    op.create_table(
        "articles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("slug", sa.String(length=350), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.String(length=500), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("planet_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["planet_id"], ["planets.id"], name="fk_articles_planet_id_planets", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_articles_user_id_users", ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_articles"),
    )
    op.create_index("ix_articles_slug", "articles", ["slug"], unique=True)
    op.create_index("ix_articles_created_at", "articles", ["created_at"])
    op.create_index("ix_articles_planet_id_created_at", "articles", ["planet_id", "created_at"])
    op.create_index("ix_articles_user_id_created_at", "articles", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("articles")
    op.drop_table("planet_bookmarks")
    op.drop_table("planet_memberships")
    op.drop_table("planets")
    op.drop_table("users")
