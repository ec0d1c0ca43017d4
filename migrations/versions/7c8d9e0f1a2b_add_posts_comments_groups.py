"""Add posts, post_tags, comments, tag_summaries, groups and group_members.

Revision ID: 7c8d9e0f1a2b
Revises: 3f1a2b4c5d6e
Create Date: 2026-09-21
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "7c8d9e0f1a2b"
down_revision: Union[str, Sequence[str], None] = "3f1a2b4c5d6e"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table: str) -> bool:
    return sa.inspect(op.get_bind()).has_table(table)


def upgrade() -> None:
    if not _has_table("posts"):
        op.create_table(
            "posts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_posts_author_id", "posts", ["author_id"])
        op.create_index("idx_posts_created_at", "posts", ["created_at"])

    if not _has_table("post_tags"):
        op.create_table(
            "post_tags",
            sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("tag", sa.String(64), primary_key=True),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        )
        op.create_index("idx_post_tags_tag", "post_tags", ["tag"])

    if not _has_table("comments"):
        op.create_table(
            "comments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("post_id", sa.Integer(), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
            sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_comments_post_id", "comments", ["post_id"])
        op.create_index("idx_comments_created_at", "comments", ["created_at"])

    if not _has_table("tag_summaries"):
        op.create_table(
            "tag_summaries",
            sa.Column("tag", sa.String(64), primary_key=True),
            sa.Column("total_posts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("computed_at", sa.DateTime(timezone=False), nullable=False),
        )

    if not _has_table("groups"):
        op.create_table(
            "groups",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_groups_name", "groups", ["name"])

    if not _has_table("group_members"):
        op.create_table(
            "group_members",
            sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("joined_at", sa.DateTime(timezone=False), nullable=False),
        )


def downgrade() -> None:
    for table in ("group_members", "groups", "tag_summaries", "comments", "post_tags", "posts"):
        if _has_table(table):
            op.drop_table(table)
