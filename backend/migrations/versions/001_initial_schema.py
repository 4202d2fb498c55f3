"""Initial schema: identities, projects, consent, flow wiring and progress.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── users ────────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("participant_code", sa.String(64), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("last_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("pronouns", sa.Text(), nullable=False, server_default=""),
        sa.Column("date_of_birth", sa.String(40), nullable=True),
        sa.Column("system_role", sa.String(20), nullable=False, server_default="participant"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("participant_code", name="uq_users_participant_code"),
    )

    # ── projects ─────────────────────────────────────────────────────────────
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("short_code", sa.String(64), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("signup_status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("max_participants", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("participant_minimum_age", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("participant_visibility", sa.String(20), nullable=False, server_default="code"),
        sa.Column("connect_participant_to_consent", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("complete_message", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── project_user_links ───────────────────────────────────────────────────
    op.create_table(
        "project_user_links",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("linked_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── consent ──────────────────────────────────────────────────────────────
    op.create_table(
        "consent_forms",
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("content_in_markdown", sa.Text(), nullable=False, server_default=""),
        sa.Column("contact_information_display", sa.Text(), nullable=False, server_default=""),
        sa.Column("institution_information_display", sa.Text(), nullable=False, server_default=""),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "consent_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        # 0 for anonymised consent; deliberately no FK.
        sa.Column("participant_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("consent_status", sa.String(30), nullable=False, server_default="declined"),
        sa.Column("date_consented", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("participant_comments", sa.Text(), nullable=False, server_default=""),
        sa.Column("researcher_comments", sa.Text(), nullable=False, server_default=""),
        sa.Column("participant_provided_first_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("participant_provided_last_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("participant_provided_contact_information", sa.Text(), nullable=False, server_default=""),
    )
    op.create_index("ix_consent_responses_project_id", "consent_responses", ["project_id"])
    op.create_index("ix_consent_responses_participant_id", "consent_responses", ["participant_id"])

    # ── modules & blocks ─────────────────────────────────────────────────────
    op.create_table(
        "modules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("block_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("allow_reset", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("content", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── flow wiring ──────────────────────────────────────────────────────────
    op.create_table(
        "project_modules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=False),
        sa.Column("flow_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("project_id", "module_id", name="uq_project_module"),
    )
    op.create_table(
        "module_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=False),
        sa.Column("block_id", sa.Integer(), sa.ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("flow_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("module_id", "block_id", name="uq_module_block"),
    )

    # ── progress ─────────────────────────────────────────────────────────────
    op.create_table(
        "block_user_statuses",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("block_id", sa.Integer(), sa.ForeignKey("blocks.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="not_started"),
        sa.Column("last_updated_on", sa.DateTime(timezone=True), nullable=False),
    )

    # ── form submissions ─────────────────────────────────────────────────────
    op.create_table(
        "form_submissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=False),
        sa.Column("block_id", sa.Integer(), sa.ForeignKey("blocks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("results", sa.String(20), nullable=False, server_default="na"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_form_submissions_user_id", "form_submissions", ["user_id"])
    op.create_table(
        "form_submission_responses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "submission_id", sa.Integer(), sa.ForeignKey("form_submissions.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("question_id", sa.Integer(), nullable=False),
        sa.Column("option_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("text_response", sa.Text(), nullable=True),
        sa.Column("is_correct", sa.String(10), nullable=False, server_default="na"),
    )
    op.create_index("ix_form_submission_responses_submission_id", "form_submission_responses", ["submission_id"])

    # ── notes ────────────────────────────────────────────────────────────────
    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("note_type", sa.String(20), nullable=False, server_default="journal"),
        sa.Column("project_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("module_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("block_id", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="private"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_on", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notes_user_id", "notes", ["user_id"])


def downgrade() -> None:
    for table in (
        "notes",
        "form_submission_responses",
        "form_submissions",
        "block_user_statuses",
        "module_blocks",
        "project_modules",
        "blocks",
        "modules",
        "consent_responses",
        "consent_forms",
        "project_user_links",
        "projects",
        "users",
    ):
        op.drop_table(table)
