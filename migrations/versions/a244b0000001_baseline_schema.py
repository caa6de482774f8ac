"""Baseline schema for the State 244 Hub.

Revision ID: a244b0000001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a244b0000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_sign_in_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "alliances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("recruitment_status", sa.String(32), nullable=False, server_default="open"),
        sa.Column("contact_info", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("name"),
    )
    op.create_index("idx_alliances_rank", "alliances", ["rank"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("display_name", sa.String(50), nullable=False),
        sa.Column("hq_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("power", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="member"),
        sa.Column("alliance_id", sa.Integer(), nullable=True),
        sa.Column("can_edit_alliance", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_president", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["alliance_id"], ["alliances.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_profiles_alliance", "profiles", ["alliance_id"])
    op.create_index("idx_profiles_role", "profiles", ["role"])

    op.create_table(
        "auth_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token_hash"),
    )
    op.create_index("idx_auth_tokens_user", "auth_tokens", ["user_id"])

    op.create_table(
        "rate_limits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("ip_address", sa.String(100), nullable=True),
        sa.Column("resource_type", sa.String(64), nullable=False),
        sa.Column("request_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("window_start", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_rate_limits_user", "rate_limits", ["user_id", "resource_type", "window_start"])
    op.create_index("idx_rate_limits_ip", "rate_limits", ["ip_address", "resource_type", "window_start"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    op.create_table(
        "migration_applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("player_name", sa.String(100), nullable=False),
        sa.Column("topic", sa.String(120), nullable=False),
        sa.Column("current_server", sa.String(50), nullable=False),
        sa.Column("current_alliance", sa.String(100), nullable=True),
        sa.Column("power_level", sa.BigInteger(), nullable=False),
        sa.Column("hq_level", sa.Integer(), nullable=False),
        sa.Column("troop_level", sa.String(50), nullable=True),
        sa.Column("arena_power", sa.BigInteger(), nullable=True),
        sa.Column("duel_points", sa.BigInteger(), nullable=True),
        sa.Column("svs_participation", sa.String(255), nullable=True),
        sa.Column("motivation", sa.Text(), nullable=False),
        sa.Column("screenshots", sa.JSON(), nullable=True),
        sa.Column("target_alliance_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="submitted"),
        sa.Column("alliance_status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("alliance_reviewed_by", sa.Integer(), nullable=True),
        sa.Column("alliance_reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("alliance_note", sa.String(500), nullable=True),
        sa.Column("president_status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("president_reviewed_by", sa.Integer(), nullable=True),
        sa.Column("president_reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("president_note", sa.String(500), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("submitter_ip", sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(["target_alliance_id"], ["alliances.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["alliance_reviewed_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["president_reviewed_by"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_applications_target", "migration_applications", ["target_alliance_id"])
    op.create_index("idx_applications_status", "migration_applications", ["status"])
    op.create_index("idx_applications_submitted", "migration_applications", ["submitted_at"])

    op.create_table(
        "contact_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(80), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("topic", sa.String(32), nullable=False, server_default="general"),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("source_path", sa.String(200), nullable=False, server_default="/contact"),
        sa.Column("ip_address", sa.String(100), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="new"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_contact_messages_created", "contact_messages", ["created_at"])
    op.create_index("idx_contact_messages_ip", "contact_messages", ["ip_address", "created_at"])
    op.create_index("idx_contact_messages_status", "contact_messages", ["status"])

    op.create_table(
        "state_info",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("section_key", sa.String(64), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("section_key"),
    )
    op.create_index("idx_state_info_order", "state_info", ["display_order"])

    op.create_table(
        "state_info_proposals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("section_key", sa.String(64), nullable=False),
        sa.Column("proposed_title", sa.String(200), nullable=False),
        sa.Column("proposed_content", sa.Text(), nullable=False),
        sa.Column("proposed_by", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["proposed_by"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_state_info_proposals_status", "state_info_proposals", ["status"])
    op.create_index("idx_state_info_proposals_created", "state_info_proposals", ["created_at"])

    op.create_table(
        "state_info_votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("proposal_id", sa.Integer(), nullable=False),
        sa.Column("voter_id", sa.Integer(), nullable=False),
        sa.Column("vote", sa.String(16), nullable=False),
        sa.Column("voted_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["proposal_id"], ["state_info_proposals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["voter_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("proposal_id", "voter_id", name="uq_state_info_votes_proposal_voter"),
    )

    op.create_table(
        "war_roster_players",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("alliance_id", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(50), nullable=False),
        sa.Column("notes", sa.String(250), nullable=True),
        sa.Column("linked_profile_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["alliance_id"], ["alliances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["linked_profile_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["updated_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("alliance_id", "player_name", name="uq_war_roster_alliance_name"),
    )
    op.create_index("idx_war_roster_alliance", "war_roster_players", ["alliance_id"])

    op.create_table(
        "war_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("alliance_id", sa.Integer(), nullable=False),
        sa.Column("mode", sa.String(32), nullable=False, server_default="glory_war"),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["alliance_id"], ["alliances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["updated_by"], ["profiles.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("alliance_id", "mode", name="uq_war_plans_alliance_mode"),
    )

    op.create_table(
        "war_plan_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("roster_player_id", sa.Integer(), nullable=False),
        sa.Column("team", sa.String(16), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["plan_id"], ["war_plans.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["roster_player_id"], ["war_roster_players.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("plan_id", "roster_player_id", name="uq_war_plan_assignment_player"),
    )
    op.create_index("idx_war_plan_assignments_plan", "war_plan_assignments", ["plan_id", "team", "position"])

    op.create_table(
        "ai_generated_images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("alliance_id", sa.Integer(), nullable=True),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("revised_prompt", sa.Text(), nullable=True),
        sa.Column("image_type", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["alliance_id"], ["alliances.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_ai_images_user_created", "ai_generated_images", ["user_id", "created_at"])

    op.create_table(
        "alliance_presentations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("alliance_id", sa.Integer(), nullable=False),
        sa.Column("generated_by", sa.Integer(), nullable=True),
        sa.Column("bullet_points", sa.JSON(), nullable=False),
        sa.Column("tone", sa.String(32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["alliance_id"], ["alliances.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["generated_by"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_presentations_alliance", "alliance_presentations", ["alliance_id", "created_at"])

    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("room_name", sa.String(64), nullable=False, server_default="state-244-diplomacy"),
        sa.Column("sender_id", sa.Integer(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("image_key", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["sender_id"], ["profiles.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_chat_messages_room_created", "chat_messages", ["room_name", "created_at"])


def downgrade() -> None:
    for table in (
        "chat_messages",
        "alliance_presentations",
        "ai_generated_images",
        "war_plan_assignments",
        "war_plans",
        "war_roster_players",
        "state_info_votes",
        "state_info_proposals",
        "state_info",
        "contact_messages",
        "migration_applications",
        "audit_events",
        "rate_limits",
        "auth_tokens",
        "profiles",
        "alliances",
        "users",
    ):
        op.drop_table(table)
