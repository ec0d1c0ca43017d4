"""
Posts and comments.

- Posts carry free-form tags (one post_tags row per tag) for filtering and per-tag counts
- Comments expire COMMENT_TTL_DAYS after creation; expired ones are hidden and purged by script
- Admins moderate: delete posts, bulk-delete comments, materialize tag totals
"""
