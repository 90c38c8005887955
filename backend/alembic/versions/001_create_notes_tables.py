"""Create workspaces, workspace_members and notes tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema. `workspaces` and `workspace_members` mirror the
       externally managed workspace entity that NoteDock reads; `notes`
       holds the note documents.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "workspaces",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "owner_id",
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment="Holds the owner role without a membership row",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "workspace_members",
        sa.Column("workspace_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "role",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'editor'"),
            comment="owner, editor or viewer",
        ),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("workspace_id", "user_id"),
    )

    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column(
            "author_id",
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment="User who created the note; never changes",
        ),
        # No foreign key: the workspace entity is owned by another service
        sa.Column(
            "workspace_id",
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment="Workspace currently owning the note",
        ),
        sa.Column("note_type", sa.String(32), nullable=False, comment="content, template or chat"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column(
            "embedding",
            sa.JSON(),
            nullable=True,
            comment="NULL when the embedding provider was unavailable at the last content write",
        ),
        sa.Column(
            "version",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("1"),
            comment="Optimistic concurrency token, bumped on every replace",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Search reads exactly one (workspace, type) slice per call
    op.create_index("idx_notes_workspace_type", "notes", ["workspace_id", "note_type"])
    op.create_index("idx_notes_updated_at", "notes", [sa.text("updated_at DESC")])


def downgrade() -> None:
    op.drop_index("idx_notes_updated_at", table_name="notes")
    op.drop_index("idx_notes_workspace_type", table_name="notes")
    op.drop_table("notes")
    op.drop_table("workspace_members")
    op.drop_table("workspaces")
