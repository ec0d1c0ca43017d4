from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.agora.db import db_session
from app.agora.errors import AccessError
from app.agora.identity import SessionIdentity
from app.agora.models import Role
from app.agora.modules.posts.models import Post
from app.agora.modules.posts.service import (
    add_comment,
    aggregate_tags,
    bulk_delete_comments,
    create_post,
    delete_post,
    filter_posts,
    recent_posts,
    visible_comments,
)
from app.agora.rbac import require_login, require_role

bp = Blueprint("posts", __name__)


def _identity() -> SessionIdentity:
    identity = getattr(g, "identity", None)
    if not identity:
        raise RuntimeError("No current identity")
    return identity


def _back(default: str):
    referrer = request.referrer
    if referrer and referrer.startswith(request.host_url):
        return redirect(referrer)
    return redirect(default)


# ---------- New ----------
@bp.get("/posts/new")
@require_login
def posts_new_get():
    return render_template("posts/new.html", title="New Post")


@bp.post("/posts")
@require_login
def posts_create():
    s = db_session()
    identity = _identity()
    payload = {
        "title": request.form.get("title"),
        "content": request.form.get("content"),
        "tags": request.form.get("tags"),
    }
    try:
        post = create_post(s, payload, identity)
        s.commit()
    except AccessError as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("posts.posts_new_get"))

    current_app.logger.info("Post Created: ID %s by %s", post.id, identity.email)
    flash("Post created successfully.", "success")
    return redirect(url_for("routes.dashboard"))


# ---------- List ----------
@bp.get("/posts")
@require_login
def posts_list():
    s = db_session()
    return render_template("posts/list.html", title="All Posts", posts=recent_posts(s))


# ---------- Advanced filter ----------
@bp.get("/posts/advanced-filter")
@require_login
def posts_filter_get():
    return render_template(
        "posts/filter.html",
        title="Advanced Filter",
        posts=[],
        tag_counts=None,
        keyword="",
        tag="",
    )


@bp.post("/posts/advanced-filter")
@require_login
def posts_filter_post():
    s = db_session()
    keyword = (request.form.get("keyword") or "").strip()
    tag = (request.form.get("tag") or "").strip()
    posts, tag_counts = filter_posts(s, keyword, tag)
    return render_template(
        "posts/filter.html",
        title="Advanced Filter",
        posts=posts,
        tag_counts=tag_counts,
        keyword=keyword,
        tag=tag,
    )


# ---------- Detail ----------
@bp.get("/posts/<int:post_id>")
@require_login
def post_detail(post_id: int):
    s = db_session()
    post = s.get(Post, post_id)
    if not post:
        flash("Post not found.", "danger")
        return redirect(url_for("posts.posts_list"))
    return render_template("posts/detail.html", title=post.title, post=post, comments=visible_comments(s, post))


@bp.post("/posts/<int:post_id>/comments")
@require_login
def post_comment_create(post_id: int):
    s = db_session()
    identity = _identity()
    post = s.get(Post, post_id)
    if not post:
        flash("Post not found.", "danger")
        return redirect(url_for("posts.posts_list"))
    try:
        comment = add_comment(s, post, request.form.get("content"), identity)
        s.commit()
    except AccessError as e:
        s.rollback()
        flash(e.message, "danger")
        return redirect(url_for("posts.post_detail", post_id=post_id))

    current_app.logger.info("Comment Created: ID %s on Post %s by %s", comment.id, post.id, identity.email)
    flash("Comment added successfully.", "success")
    return redirect(url_for("posts.post_detail", post_id=post_id))


# ---------- Moderation ----------
@bp.post("/admin/posts/<int:post_id>/delete")
@require_role(Role.ADMIN)
def admin_post_delete(post_id: int):
    s = db_session()
    identity = _identity()
    if not delete_post(s, post_id, identity):
        abort(404)
    s.commit()
    current_app.logger.info("Post Deleted: ID %s by admin %s", post_id, identity.email)
    flash("Post deleted successfully.", "success")
    return redirect(url_for("posts.posts_list"))


@bp.post("/admin/comments/bulk-delete")
@require_role(Role.ADMIN)
def admin_comments_bulk_delete():
    s = db_session()
    identity = _identity()
    raw_ids = request.form.getlist("comment_ids")
    try:
        ids = [int(v) for v in raw_ids if str(v).strip()]
    except ValueError:
        flash("Invalid comment selection.", "danger")
        return _back(url_for("posts.posts_list"))
    if not ids:
        flash("No comments selected.", "warning")
        return _back(url_for("posts.posts_list"))

    deleted = bulk_delete_comments(s, ids, identity)
    s.commit()
    current_app.logger.info("Bulk Comment Deletion: Deleted comments %s by admin %s", ids, identity.email)
    flash(f"Deleted {deleted} comment(s).", "success")
    return _back(url_for("posts.posts_list"))


@bp.post("/admin/tags/aggregate")
@require_role(Role.ADMIN)
def admin_tags_aggregate():
    s = db_session()
    summaries = aggregate_tags(s, _identity())
    s.commit()
    current_app.logger.info("Tag aggregation executed: %s tag(s) saved", len(summaries))
    flash("Tag aggregation executed and output saved.", "success")
    return redirect(url_for("admin.index"))
