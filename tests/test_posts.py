"""Tests for posts, comments and tag aggregation."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.agora.constants import COMMENT_TTL_DAYS
from app.agora.db import session_scope
from app.agora.errors import ValidationError
from app.agora.identity import SessionIdentity
from app.agora.modules.posts.models import Comment, Post, TagSummary
from app.agora.modules.posts.service import (
    add_comment,
    aggregate_tags,
    bulk_delete_comments,
    create_post,
    filter_posts,
    parse_tags,
    purge_expired_comments,
    visible_comments,
)
from app.agora.store import AccountStore


def _identity(s, email="alice@example.com"):
    return SessionIdentity.from_user(AccountStore(s).find_by_email(email))


def _login(client, email="alice@example.com", password="secret1"):
    client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=True)


def _seed_posts(app):
    with session_scope(app) as s:
        alice = _identity(s)
        create_post(s, {"title": "Flask tips", "content": "Python blueprints everywhere", "tags": "python, web"}, alice)
        create_post(s, {"title": "Gardening", "content": "Tomatoes need sun", "tags": "garden"}, alice)
        create_post(s, {"title": "Async Python", "content": "Event loops explained", "tags": "python"}, alice)


def test_parse_tags_trims_and_dedupes():
    assert parse_tags(" python, web ,,python, ") == ["python", "web"]
    assert parse_tags(None) == []


def test_create_post_requires_title_and_content(app):
    with session_scope(app) as s:
        with pytest.raises(ValidationError) as exc:
            create_post(s, {"title": "", "content": ""}, _identity(s))
    assert exc.value.errors == ["Title is required.", "Content is required."]


def test_create_post_route(client, app):
    _login(client)
    r = client.post(
        "/posts",
        data={"title": "Hello", "content": "First post", "tags": "intro, misc"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Post created successfully." in r.data
    assert b"Hello" in r.data

    with session_scope(app) as s:
        post = s.scalars(select(Post)).one()
        assert post.tags == ["intro", "misc"]
        assert post.author.email == "alice@example.com"


def test_posts_require_login(client):
    r = client.get("/posts")
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_filter_by_keyword_and_tag_counts(app):
    _seed_posts(app)
    with session_scope(app) as s:
        posts, counts = filter_posts(s, "python tomatoes", None)
        assert {p.title for p in posts} == {"Flask tips", "Gardening", "Async Python"}
        assert counts[0] == ("python", 2)
        assert ("garden", 1) in counts

        posts, counts = filter_posts(s, "", "python")
        assert {p.title for p in posts} == {"Flask tips", "Async Python"}
        assert dict(counts) == {"python": 2, "web": 1}

        posts, counts = filter_posts(s, "loops", "garden")
        assert posts == []
        assert counts == []


def test_filter_route(client, app):
    _seed_posts(app)
    _login(client)
    r = client.post("/posts/advanced-filter", data={"keyword": "garden", "tag": ""})
    assert r.status_code == 200
    assert b"Gardening" in r.data
    assert b"Async Python" not in r.data


def test_comment_route_and_detail(client, app):
    _seed_posts(app)
    with session_scope(app) as s:
        post_id = s.scalars(select(Post.id).where(Post.title == "Gardening")).one()

    _login(client)
    r = client.post(f"/posts/{post_id}/comments", data={"content": "Nice!"}, follow_redirects=True)
    assert b"Comment added successfully." in r.data
    assert b"Nice!" in r.data


def test_missing_post_redirects_to_list(client):
    _login(client)
    r = client.get("/posts/999", follow_redirects=True)
    assert b"Post not found." in r.data


def test_expired_comments_are_hidden_then_purged(app):
    _seed_posts(app)
    now = datetime.utcnow()
    with session_scope(app) as s:
        alice = _identity(s)
        post = s.scalars(select(Post).where(Post.title == "Flask tips")).one()
        fresh = add_comment(s, post, "still here", alice)
        old = add_comment(s, post, "ancient", alice)
        old.created_at = now - timedelta(days=COMMENT_TTL_DAYS + 1)
        s.flush()

        assert [c.content for c in visible_comments(s, post, now=now)] == ["still here"]
        assert purge_expired_comments(s, now=now) == 1
        assert s.scalar(select(func.count(Comment.id))) == 1
        assert s.get(Comment, fresh.id) is not None


def test_admin_can_delete_post(client, app):
    _seed_posts(app)
    with session_scope(app) as s:
        post_id = s.scalars(select(Post.id).where(Post.title == "Gardening")).one()
        add_comment(s, s.get(Post, post_id), "gone soon", _identity(s))

    _login(client, "admin@example.com", "adminpw")
    r = client.post(f"/admin/posts/{post_id}/delete", follow_redirects=True)
    assert b"Post deleted successfully." in r.data

    with session_scope(app) as s:
        assert s.get(Post, post_id) is None
        assert s.scalar(select(func.count(Comment.id))) == 0

    assert client.post(f"/admin/posts/{post_id}/delete").status_code == 404


def test_user_cannot_delete_post(client, app):
    _seed_posts(app)
    with session_scope(app) as s:
        post_id = s.scalars(select(Post.id)).first()
    _login(client)
    r = client.post(f"/admin/posts/{post_id}/delete", follow_redirects=True)
    assert b"You are not authorized to view that resource." in r.data
    with session_scope(app) as s:
        assert s.get(Post, post_id) is not None


def test_bulk_delete_comments(client, app):
    _seed_posts(app)
    with session_scope(app) as s:
        alice = _identity(s)
        post = s.scalars(select(Post)).first()
        ids = [add_comment(s, post, f"c{i}", alice).id for i in range(3)]

    _login(client, "admin@example.com", "adminpw")
    r = client.post(
        "/admin/comments/bulk-delete",
        data={"comment_ids": [str(ids[0]), str(ids[1]), "9999"]},
        follow_redirects=True,
    )
    assert b"Deleted 2 comment(s)." in r.data
    with session_scope(app) as s:
        assert [c.id for c in s.scalars(select(Comment))] == [ids[2]]


def test_bulk_delete_ignores_empty_selection(app):
    with session_scope(app) as s:
        assert bulk_delete_comments(s, [], _identity(s, "admin@example.com")) == 0


def test_tag_aggregation_replaces_previous_run(client, app):
    _seed_posts(app)
    with session_scope(app) as s:
        summaries = aggregate_tags(s, _identity(s, "admin@example.com"))
        assert {t.tag: t.total_posts for t in summaries} == {"garden": 1, "python": 2, "web": 1}

    with session_scope(app) as s:
        create_post(s, {"title": "More python", "content": "Typing", "tags": "python"}, _identity(s))

    _login(client, "admin@example.com", "adminpw")
    r = client.post("/admin/tags/aggregate", follow_redirects=True)
    assert b"Tag aggregation executed and output saved." in r.data

    with session_scope(app) as s:
        totals = {t.tag: t.total_posts for t in s.scalars(select(TagSummary))}
    assert totals == {"garden": 1, "python": 3, "web": 1}
