"""initial lifecycle schema

Revision ID: 5c1e0a7b9d42
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e0a7b9d42"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create users, posts, conversations, messages, notifications and sessions."""
    op.create_table(
        "user_account",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("sessions_count", sa.Integer(), nullable=False),
        sa.Column("average_rating", sa.Float(), nullable=False),
        sa.Column("total_reviews", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )

    op.create_table(
        "post",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=True),
        sa.Column("subject_codes", sa.JSON(), nullable=False),
        sa.Column("subject_names", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        _timestamp("availability_date"),
        _timestamp("closed_at"),
        sa.Column("close_reason", sa.String(length=500), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "status IN ('active', 'matched', 'expired', 'closed')", name="ck_post_status"
        ),
        sa.ForeignKeyConstraint(["author_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_post_status_availability", "post", ["status", "availability_date"])

    op.create_table(
        "join_request",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("receiver_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected')", name="ck_join_request_status"
        ),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["requester_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["receiver_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("post_id", "requester_id", name="uq_join_request_post_requester"),
    )
    op.create_index("ix_join_request_post_id", "join_request", ["post_id"])

    op.create_table(
        "conversation",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("participant_a_id", sa.Integer(), nullable=False),
        sa.Column("participant_b_id", sa.Integer(), nullable=False),
        sa.Column("participants_key", sa.String(length=64), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=True),
        _timestamp("first_opened_at"),
        _timestamp("expires_at"),
        _timestamp("max_expires_at"),
        _timestamp("last_message_at"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("type IN ('post', 'direct')", name="ck_conversation_type"),
        sa.CheckConstraint(
            "participant_a_id <> participant_b_id",
            name="ck_conversation_distinct_participants",
        ),
        sa.ForeignKeyConstraint(["participant_a_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["participant_b_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["post_id"], ["post.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_conversation_direct_pair",
        "conversation",
        ["type", "participants_key"],
        unique=True,
        sqlite_where=sa.text("type = 'direct'"),
        postgresql_where=sa.text("type = 'direct'"),
    )
    op.create_index(
        "uq_conversation_post_pair",
        "conversation",
        ["type", "post_id", "participants_key"],
        unique=True,
        sqlite_where=sa.text("type = 'post'"),
        postgresql_where=sa.text("type = 'post'"),
    )
    op.create_index("ix_conversation_expires_at", "conversation", ["expires_at"])

    op.create_table(
        "conversation_flag",
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("flag", sa.String(length=16), nullable=False),
        sa.CheckConstraint(
            "flag IN ('archived', 'pinned', 'deleted')", name="ck_conversation_flag_kind"
        ),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("conversation_id", "user_id", "flag"),
    )

    op.create_table(
        "message",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("sender_id", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        _timestamp("created_at"),
        _timestamp("delivered_at"),
        _timestamp("read_at"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_message_conversation_created", "message", ["conversation_id", "created_at"]
    )

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("conversation_ref", sa.String(length=64), nullable=True),
        sa.Column("post_ref", sa.String(length=64), nullable=True),
        sa.Column("join_request_ref", sa.String(length=64), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False),
        _timestamp("read_at"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["user_id"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])
    op.create_index("ix_notification_conversation_ref", "notification", ["conversation_ref"])
    op.create_index("ix_notification_post_ref", "notification", ["post_ref"])
    op.create_index("ix_notification_join_request_ref", "notification", ["join_request_ref"])

    op.create_table(
        "study_session",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.Integer(), nullable=True),
        sa.Column("participant_a_id", sa.Integer(), nullable=False),
        sa.Column("participant_b_id", sa.Integer(), nullable=False),
        sa.Column("post_snapshot", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        _timestamp("started_at"),
        _timestamp("ended_at"),
        sa.Column("ending_requested_by", sa.Integer(), nullable=True),
        _timestamp("ending_requested_at"),
        _timestamp("auto_close_at"),
        _timestamp("completion_deadline_at"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('in_progress', 'pending_confirmation', 'completed')",
            name="ck_study_session_status",
        ),
        sa.CheckConstraint(
            "participant_a_id <> participant_b_id",
            name="ck_study_session_distinct_participants",
        ),
        sa.ForeignKeyConstraint(["participant_a_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["participant_b_id"], ["user_account.id"]),
        sa.ForeignKeyConstraint(["ending_requested_by"], ["user_account.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("conversation_id"),
    )
    op.create_index(
        "ix_study_session_status_auto_close", "study_session", ["status", "auto_close_at"]
    )

    op.create_table(
        "study_session_mark",
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "kind IN ('confirmed', 'completed')", name="ck_study_session_mark_kind"
        ),
        sa.ForeignKeyConstraint(["session_id"], ["study_session.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("session_id", "user_id", "kind"),
    )

    op.create_table(
        "study_session_rating",
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("target_user_id", sa.Integer(), nullable=False),
        sa.Column("rater_id", sa.Integer(), nullable=False),
        sa.Column("score", sa.SmallInteger(), nullable=False),
        sa.Column("review", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("score BETWEEN 1 AND 5", name="ck_study_session_rating_score"),
        sa.ForeignKeyConstraint(["session_id"], ["study_session.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("session_id", "target_user_id"),
    )


def downgrade() -> None:
    """Drop every lifecycle table."""
    op.drop_table("study_session_rating")
    op.drop_table("study_session_mark")
    op.drop_index("ix_study_session_status_auto_close", table_name="study_session")
    op.drop_table("study_session")
    op.drop_index("ix_notification_join_request_ref", table_name="notification")
    op.drop_index("ix_notification_post_ref", table_name="notification")
    op.drop_index("ix_notification_conversation_ref", table_name="notification")
    op.drop_index("ix_notification_user_id", table_name="notification")
    op.drop_table("notification")
    op.drop_index("ix_message_conversation_created", table_name="message")
    op.drop_table("message")
    op.drop_table("conversation_flag")
    op.drop_index("ix_conversation_expires_at", table_name="conversation")
    op.drop_index("uq_conversation_post_pair", table_name="conversation")
    op.drop_index("uq_conversation_direct_pair", table_name="conversation")
    op.drop_table("conversation")
    op.drop_index("ix_join_request_post_id", table_name="join_request")
    op.drop_table("join_request")
    op.drop_index("ix_post_status_availability", table_name="post")
    op.drop_table("post")
    op.drop_table("user_account")
