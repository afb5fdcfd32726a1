"""Initial schema."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261018_01_initial"
down_revision = None
branch_labels = None
depends_on = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _user_fk(nullable: bool = False, ondelete: str = "CASCADE", **kwargs) -> sa.Column:
    return sa.Column(
        "user_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
        **kwargs,
    )


def _timestamp(name: str, nullable: bool = True, now: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        nullable=nullable,
        server_default=sa.text("NOW()") if now else None,
    )


prayer_name = postgresql.ENUM(
    "fajr", "dhuhr", "asr", "maghrib", "isha", name="prayer_name", create_type=False
)
prayer_status = postgresql.ENUM(
    "on_time", "late", "missed", name="prayer_status", create_type=False
)
ledger_action = postgresql.ENUM(
    "prayer_on_time",
    "prayer_late",
    "fasting_bonus",
    "fasting_revoke",
    "missed_prayer",
    name="ledger_action",
    create_type=False,
)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    bind = op.get_bind()
    prayer_name.create(bind, checkfirst=True)
    prayer_status.create(bind, checkfirst=True)
    ledger_action.create(bind, checkfirst=True)

    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("timezone", sa.String(), nullable=False, server_default=sa.text("'UTC'")),
        _timestamp("created_at"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "api_keys",
        _uuid_pk(),
        _user_fk(),
        sa.Column("key_hash", sa.Text(), nullable=False),
        sa.Column("key_prefix", sa.String(length=12), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("last_used_at", now=False),
        _timestamp("expires_at", now=False),
        _timestamp("revoked_at", now=False),
        sa.UniqueConstraint("key_hash", name="uq_api_keys_key_hash"),
    )

    op.create_table(
        "user_settings",
        _user_fk(primary_key=True),
        sa.Column(
            "on_time_window_minutes",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("30"),
        ),
        sa.Column("quiet_hours_start", sa.Time(), nullable=True),
        sa.Column("quiet_hours_end", sa.Time(), nullable=True),
        sa.Column("notify_prayer_reminder", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_friend_prayer", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_friend_fasting", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_missed_prayer", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "on_time_window_minutes BETWEEN 5 AND 120",
            name="ck_on_time_window_range",
        ),
    )

    op.create_table(
        "friendships",
        _uuid_pk(),
        sa.Column(
            "user_id_1",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id_2",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.CheckConstraint("user_id_1 < user_id_2", name="ck_friendship_ordered"),
        sa.UniqueConstraint("user_id_1", "user_id_2", name="uq_friendship"),
    )
    op.create_index("idx_friendships_user_2", "friendships", ["user_id_2"])

    op.create_table(
        "blocks",
        _uuid_pk(),
        sa.Column(
            "blocker_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "blocked_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _timestamp("created_at"),
        sa.CheckConstraint("blocker_id != blocked_id", name="ck_block_not_self"),
        sa.UniqueConstraint("blocker_id", "blocked_id", name="uq_block"),
    )

    op.create_table(
        "device_tokens",
        _uuid_pk(),
        _user_fk(),
        sa.Column("expo_push_token", sa.Text(), nullable=False),
        sa.Column("device_name", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "expo_push_token", name="uq_device_token"),
    )

    op.create_table(
        "prayer_day_timings",
        _uuid_pk(),
        _user_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        *[
            sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=False)
            for name in ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha", "midnight")
        ],
        sa.Column("calc_method", sa.Integer(), nullable=True),
        sa.Column("calc_school", sa.Integer(), nullable=True),
        sa.Column("latitude_used", sa.Float(), nullable=True),
        sa.Column("longitude_used", sa.Float(), nullable=True),
        sa.Column("timezone_used", sa.Text(), nullable=False),
        sa.Column("raw_response", postgresql.JSONB(), nullable=True),
        _timestamp("retrieved_at"),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "date", name="uq_prayer_day_timings"),
    )

    op.create_table(
        "prayer_logs",
        _uuid_pk(),
        _user_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("prayer", prayer_name, nullable=False),
        sa.Column("status", prayer_status, nullable=False),
        _timestamp("marked_at", now=False),
        sa.Column("prayer_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("prayer_end_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        sa.UniqueConstraint("user_id", "date", "prayer", name="uq_prayer_log"),
    )
    op.create_index("idx_prayer_logs_date", "prayer_logs", ["date"])

    op.create_table(
        "fasting_logs",
        _uuid_pk(),
        _user_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_fasting", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("broken", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("broken_at", now=False),
        sa.Column("points_awarded", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("user_id", "date", name="uq_fasting_log"),
    )

    op.create_table(
        "hasanat_ledger",
        _uuid_pk(),
        _user_fk(),
        sa.Column("action", ledger_action, nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("prayer", prayer_name, nullable=True),
        sa.Column("idempotency_key", sa.Text(), nullable=False),
        sa.Column("extra_data", postgresql.JSONB(), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("idempotency_key", name="uq_hasanat_ledger_idempotency_key"),
    )
    op.create_index("idx_ledger_user_created", "hasanat_ledger", ["user_id", "created_at"])
    op.create_index("idx_ledger_user_date", "hasanat_ledger", ["user_id", "date"])

    op.create_table(
        "hasanat_totals",
        _user_fk(primary_key=True),
        sa.Column("all_time_total", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("updated_at"),
    )

    op.create_table(
        "hasanat_daily_totals",
        _user_fk(primary_key=True),
        sa.Column("date", sa.Date(), primary_key=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _timestamp("updated_at"),
    )

    op.create_table(
        "audit_events",
        _uuid_pk(),
        _user_fk(nullable=True, ondelete="SET NULL"),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        _timestamp("created_at", nullable=False),
    )
    op.create_index("idx_audit_user", "audit_events", ["user_id", "created_at"])
    op.create_index("idx_audit_event_type", "audit_events", ["event_type", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_audit_event_type", table_name="audit_events")
    op.drop_index("idx_audit_user", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_table("hasanat_daily_totals")
    op.drop_table("hasanat_totals")

    op.drop_index("idx_ledger_user_date", table_name="hasanat_ledger")
    op.drop_index("idx_ledger_user_created", table_name="hasanat_ledger")
    op.drop_table("hasanat_ledger")

    op.drop_table("fasting_logs")

    op.drop_index("idx_prayer_logs_date", table_name="prayer_logs")
    op.drop_table("prayer_logs")

    op.drop_table("prayer_day_timings")
    op.drop_table("device_tokens")
    op.drop_table("blocks")

    op.drop_index("idx_friendships_user_2", table_name="friendships")
    op.drop_table("friendships")

    op.drop_table("user_settings")
    op.drop_table("api_keys")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS ledger_action")
    op.execute("DROP TYPE IF EXISTS prayer_status")
    op.execute("DROP TYPE IF EXISTS prayer_name")
    op.execute("DROP EXTENSION IF EXISTS pgcrypto")
