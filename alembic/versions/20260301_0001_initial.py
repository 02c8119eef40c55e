"""initial schedule schema"""

from alembic import op
import sqlalchemy as sa


revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
    )
    op.create_index("ix_teams_club_id", "teams", ["club_id"])

    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_seasons_club_id", "seasons", ["club_id"])

    op.create_table(
        "training_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("club_id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), sa.ForeignKey("seasons.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("session_type", sa.String(length=20), nullable=False, server_default="training"),
        sa.Column("anchor_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("coach_id", sa.Integer(), nullable=True),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("recurrence_pattern", sa.String(length=16), nullable=True),
        sa.Column("recurrence_days", sa.JSON(), nullable=True),
        sa.Column("recurrence_end_date", sa.Date(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("max_participants IS NULL OR max_participants >= 1", name="ck_training_sessions_capacity"),
    )
    op.create_index("ix_training_sessions_club_status", "training_sessions", ["club_id", "status"])
    op.create_index("ix_training_sessions_anchor", "training_sessions", ["anchor_date", "start_time"])
    op.create_index("ix_training_sessions_season_id", "training_sessions", ["season_id"])

    op.create_table(
        "training_session_teams",
        sa.Column(
            "training_session_id",
            sa.Integer(),
            sa.ForeignKey("training_sessions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_training_session_teams_team_id", "training_session_teams", ["team_id"])

    op.create_table(
        "training_session_exceptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "training_session_id",
            sa.Integer(),
            sa.ForeignKey("training_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("occurrence_date", sa.Date(), nullable=False),
        sa.Column("exception_type", sa.String(length=16), nullable=False),
        sa.Column("override_date", sa.Date(), nullable=True),
        sa.Column("override_start_time", sa.Time(), nullable=True),
        sa.Column("override_end_time", sa.Time(), nullable=True),
        sa.Column("override_title", sa.String(length=200), nullable=True),
        sa.Column("override_description", sa.Text(), nullable=True),
        sa.Column("override_location", sa.String(length=200), nullable=True),
        sa.Column("override_coach_id", sa.Integer(), nullable=True),
        sa.Column("override_max_participants", sa.Integer(), nullable=True),
        sa.Column("override_status", sa.String(length=16), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("training_session_id", "occurrence_date", name="uq_session_exception_occurrence"),
    )
    op.create_index(
        "ix_training_session_exceptions_training_session_id",
        "training_session_exceptions",
        ["training_session_id"],
    )
    op.create_index(
        "ix_training_session_exceptions_occurrence_date",
        "training_session_exceptions",
        ["occurrence_date"],
    )
    op.create_index("ix_session_exceptions_override_date", "training_session_exceptions", ["override_date"])


def downgrade() -> None:
    op.drop_table("training_session_exceptions")
    op.drop_table("training_session_teams")
    op.drop_table("training_sessions")
    op.drop_table("seasons")
    op.drop_table("teams")
