from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.agora.models import Base

if TYPE_CHECKING:
    from app.agora.models import User


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (
        Index("idx_posts_author_id", "author_id"),
        Index("idx_posts_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    author: Mapped["User"] = relationship("User", lazy="selectin")
    tag_links: Mapped[list["PostTag"]] = relationship(
        "PostTag",
        back_populates="post",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PostTag.position",
    )
    comments: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Comment.created_at",
    )

    @property
    def tags(self) -> list[str]:
        return [link.tag for link in self.tag_links]


class PostTag(Base):
    """One row per (post, tag); backs tag filtering and per-tag counts."""

    __tablename__ = "post_tags"
    __table_args__ = (Index("idx_post_tags_tag", "tag"),)

    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True)
    tag: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    post: Mapped[Post] = relationship("Post", back_populates="tag_links")


class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("idx_comments_post_id", "post_id"),
        Index("idx_comments_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    post_id: Mapped[int] = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    author_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    post: Mapped[Post] = relationship("Post", back_populates="comments")
    author: Mapped["User"] = relationship("User", lazy="selectin")


class TagSummary(Base):
    """Materialized output of the admin tag aggregation (replaced wholesale on each run)."""

    __tablename__ = "tag_summaries"

    tag: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_posts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
