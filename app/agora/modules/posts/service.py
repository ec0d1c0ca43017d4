from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, exists, func, or_, select

from app.agora.audit import record_event
from app.agora.constants import COMMENT_TTL_DAYS
from app.agora.errors import Unauthenticated, ValidationError
from app.agora.models import User
from app.agora.modules.posts.models import Comment, Post, PostTag, TagSummary

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.agora.identity import SessionIdentity


MAX_TAG_LENGTH = 64


def parse_tags(raw: str | None) -> list[str]:
    """Split a comma-separated tag field; trims, drops blanks and repeats, keeps order."""
    tags: list[str] = []
    for part in (raw or "").split(","):
        tag = part.strip()[:MAX_TAG_LENGTH]
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def validate_post_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("title") or "").strip():
        errors.append("Title is required.")
    if not (payload.get("content") or "").strip():
        errors.append("Content is required.")
    return errors


def comment_cutoff(now: datetime | None = None) -> datetime:
    return (now or datetime.utcnow()) - timedelta(days=COMMENT_TTL_DAYS)


def _require_author(s: "Session", identity: "SessionIdentity") -> User:
    user = s.get(User, identity.id)
    if user is None:
        raise Unauthenticated("Your account no longer exists. Please register again.")
    return user


def create_post(s: "Session", payload: dict, identity: "SessionIdentity") -> Post:
    errors = validate_post_payload(payload)
    if errors:
        raise ValidationError(errors)
    author = _require_author(s, identity)

    post = Post(
        title=(payload.get("title") or "").strip(),
        content=(payload.get("content") or "").strip(),
        author_id=author.id,
        created_at=datetime.utcnow(),
    )
    post.tag_links = [PostTag(tag=t, position=i) for i, t in enumerate(parse_tags(payload.get("tags")))]
    s.add(post)
    s.flush()

    record_event(
        s,
        actor=identity,
        action="post.create",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"title": post.title, "tags": post.tags},
    )
    return post


def recent_posts(s: "Session", limit: int | None = None) -> list[Post]:
    q = select(Post).order_by(Post.created_at.desc(), Post.id.desc())
    if limit:
        q = q.limit(limit)
    return list(s.scalars(q))


def visible_comments(s: "Session", post: Post, *, now: datetime | None = None) -> list[Comment]:
    q = (
        select(Comment)
        .where(Comment.post_id == post.id, Comment.created_at >= comment_cutoff(now))
        .order_by(Comment.created_at.asc(), Comment.id.asc())
    )
    return list(s.scalars(q))


def add_comment(s: "Session", post: Post, content: str | None, identity: "SessionIdentity") -> Comment:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Content is required.")
    author = _require_author(s, identity)

    comment = Comment(content=content, post_id=post.id, author_id=author.id, created_at=datetime.utcnow())
    s.add(comment)
    s.flush()

    record_event(
        s,
        actor=identity,
        action="comment.create",
        entity_type="Comment",
        entity_id=str(comment.id),
        metadata={"post_id": post.id},
    )
    return comment


def filter_posts(s: "Session", keyword: str | None = None, tag: str | None = None) -> tuple[list[Post], list[tuple[str, int]]]:
    """
    Posts matching any keyword word (title or content, case-insensitive) and
    carrying `tag`, plus per-tag counts over the matched posts.
    """
    q = select(Post.id)
    words = [w for w in (keyword or "").split() if w]
    if words:
        clauses = []
        for w in words:
            like = f"%{w}%"
            clauses.append(Post.title.ilike(like))
            clauses.append(Post.content.ilike(like))
        q = q.where(or_(*clauses))
    tag = (tag or "").strip()
    if tag:
        q = q.where(exists().where(PostTag.post_id == Post.id, PostTag.tag == tag))
    matched_ids = q.subquery()

    posts = list(
        s.scalars(
            select(Post)
            .where(Post.id.in_(select(matched_ids.c.id)))
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
    )
    counts = s.execute(
        select(PostTag.tag, func.count(PostTag.post_id).label("n"))
        .where(PostTag.post_id.in_(select(matched_ids.c.id)))
        .group_by(PostTag.tag)
        .order_by(func.count(PostTag.post_id).desc(), PostTag.tag.asc())
    ).all()
    return posts, [(row.tag, row.n) for row in counts]


def delete_post(s: "Session", post_id: int, identity: "SessionIdentity") -> bool:
    post = s.get(Post, post_id)
    if post is None:
        return False
    record_event(
        s,
        actor=identity,
        action="post.delete",
        entity_type="Post",
        entity_id=str(post.id),
        metadata={"title": post.title, "author_id": post.author_id},
    )
    s.delete(post)
    s.flush()
    return True


def bulk_delete_comments(s: "Session", comment_ids: list[int], identity: "SessionIdentity") -> int:
    ids = sorted({int(i) for i in comment_ids})
    if not ids:
        return 0
    result = s.execute(delete(Comment).where(Comment.id.in_(ids)).execution_options(synchronize_session="evaluate"))
    record_event(
        s,
        actor=identity,
        action="comment.bulk_delete",
        entity_type="Comment",
        entity_id=",".join(str(i) for i in ids)[:128],
        metadata={"comment_ids": ids, "deleted": result.rowcount},
    )
    return result.rowcount


def aggregate_tags(s: "Session", identity: "SessionIdentity | None" = None) -> list[TagSummary]:
    """Recompute per-tag post totals into tag_summaries, replacing the previous run."""
    now = datetime.utcnow()
    rows = s.execute(
        select(PostTag.tag, func.count(func.distinct(PostTag.post_id)).label("total"))
        .group_by(PostTag.tag)
        .order_by(PostTag.tag.asc())
    ).all()

    s.execute(delete(TagSummary))
    summaries = [TagSummary(tag=row.tag, total_posts=row.total, computed_at=now) for row in rows]
    s.add_all(summaries)
    s.flush()

    record_event(
        s,
        actor=identity,
        action="tags.aggregate",
        entity_type="TagSummary",
        metadata={"tags": len(summaries)},
    )
    return summaries


def purge_expired_comments(s: "Session", *, now: datetime | None = None) -> int:
    result = s.execute(delete(Comment).where(Comment.created_at < comment_cutoff(now)))
    return result.rowcount
