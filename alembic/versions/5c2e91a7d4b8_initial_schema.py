"""Initial schema: users, board games, reservations, club states

Revision ID: 5c2e91a7d4b8
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c2e91a7d4b8"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ROLES = ("Admin", "StatesManager", "EventsManager", "BoardGamesManager")


def upgrade() -> None:
    """Create every table and seed the well-known roles."""
    # -- users & roles -------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
    )
    roles = op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(64), nullable=False, unique=True),
    )
    op.create_table(
        "user_roles",
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "role_id", sa.Integer(),
            sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column(
            "assigned_by_user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=True,
        ),
    )
    op.create_index("ix_user_roles_role_id", "user_roles", ["role_id"])
    op.create_index("ix_user_roles_assigned_by", "user_roles", ["assigned_by_user_id"])

    # -- board games ---------------------------------------------------------
    op.create_table(
        "board_game_categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("colour_hex", sa.Text(), nullable=False),
    )
    op.create_table(
        "board_games",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(512), nullable=True),
        sa.Column("players_min", sa.Integer(), nullable=True),
        sa.Column("players_max", sa.Integer(), nullable=True),
        sa.Column(
            "category_id", sa.Integer(),
            sa.ForeignKey("board_game_categories.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("note_internal", sa.String(1024), nullable=True),
        sa.Column(
            "owner_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("in_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unavailable", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("default_reservation_days", sa.Integer(), nullable=True),
    )
    op.create_index("ix_board_games_category_id", "board_games", ["category_id"])
    op.create_index("ix_board_games_owner_id", "board_games", ["owner_id"])

    # -- reservations --------------------------------------------------------
    op.create_table(
        "board_game_reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "made_by_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("made_on", sa.DateTime(), nullable=False),
        sa.Column("note_user", sa.String(1024), nullable=True),
        sa.Column("note_internal", sa.String(1024), nullable=True),
    )
    op.create_index(
        "ix_board_game_reservations_made_by_id", "board_game_reservations", ["made_by_id"]
    )
    op.create_table(
        "board_game_reservation_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reservation_id", sa.Integer(),
            sa.ForeignKey("board_game_reservations.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "board_game_id", sa.Integer(),
            sa.ForeignKey("board_games.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("expires_on", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_board_game_reservation_items_reservation_id",
        "board_game_reservation_items",
        ["reservation_id"],
    )
    op.create_index(
        "ix_board_game_reservation_items_board_game_id",
        "board_game_reservation_items",
        ["board_game_id"],
    )
    op.create_table(
        "board_game_reservation_item_events",
        sa.Column(
            "reservation_item_id", sa.Integer(),
            sa.ForeignKey("board_game_reservation_items.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("made_on", sa.DateTime(), primary_key=True),
        sa.Column(
            "made_by_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("new_state", sa.String(20), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("new_expiry", sa.DateTime(), nullable=True),
        sa.Column("note_internal", sa.String(1024), nullable=True),
    )
    op.create_index(
        "ix_board_game_reservation_item_events_made_by_id",
        "board_game_reservation_item_events",
        ["made_by_id"],
    )

    # -- club events & states ------------------------------------------------
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "made_by_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("short_description", sa.String(512), nullable=False),
        sa.Column("full_description", sa.Text(), nullable=True),
        sa.Column("url", sa.String(512), nullable=True),
        sa.Column("from", sa.DateTime(), nullable=False),
        sa.Column("to", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_events_made_by_id", "events", ["made_by_id"])

    op.create_table(
        "repeating_states",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "made_by_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_to", sa.Date(), nullable=False),
        sa.Column("time_from", sa.Time(), nullable=False),
        sa.Column("time_to", sa.Time(), nullable=False),
        sa.Column("note_internal", sa.String(1024), nullable=True),
        sa.Column("note_public", sa.String(1024), nullable=True),
    )
    op.create_index("ix_repeating_states_made_by_id", "repeating_states", ["made_by_id"])

    op.create_table(
        "planned_states",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "made_by_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("start", sa.DateTime(), nullable=False),
        sa.Column("planned_end", sa.DateTime(), nullable=True),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("ended", sa.DateTime(), nullable=True),
        sa.Column(
            "closed_by_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=True,
        ),
        sa.Column("note_internal", sa.String(1024), nullable=True),
        sa.Column("note_public", sa.String(1024), nullable=True),
        sa.Column(
            "next_planned_state_id", sa.Integer(),
            sa.ForeignKey("planned_states.id", ondelete="RESTRICT"), nullable=True,
        ),
        sa.Column(
            "repeating_state_id", sa.Integer(),
            sa.ForeignKey("repeating_states.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column(
            "associated_event_id", sa.Integer(),
            sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True,
        ),
    )
    op.create_index(
        "ix_planned_states_next_planned_state_id",
        "planned_states",
        ["next_planned_state_id"],
        unique=True,
    )
    op.create_index(
        "ix_planned_states_repeating_state_id", "planned_states", ["repeating_state_id"]
    )
    op.create_index(
        "ix_planned_states_associated_event_id", "planned_states", ["associated_event_id"]
    )
    op.create_index("ix_planned_states_made_by_id", "planned_states", ["made_by_id"])
    op.create_index("ix_planned_states_closed_by_id", "planned_states", ["closed_by_id"])
    op.create_index("ix_planned_states_start", "planned_states", ["start"])

    op.bulk_insert(roles, [{"name": name} for name in _ROLES])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    for table in (
        "planned_states",
        "repeating_states",
        "events",
        "board_game_reservation_item_events",
        "board_game_reservation_items",
        "board_game_reservations",
        "board_games",
        "board_game_categories",
        "user_roles",
        "roles",
        "users",
    ):
        op.drop_table(table)
