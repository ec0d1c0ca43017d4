"""
Central constants for the Agora application.
"""
from __future__ import annotations

# Consecutive password mismatches that lock an account.
LOCK_THRESHOLD = 5

MIN_PASSWORD_LENGTH = 6

# Werkzeug hash method: scrypt with N=2**15, r=8, p=1 and a random 16-char salt.
# Fixed here so every stored hash carries the same cost.
PASSWORD_HASH_METHOD = "scrypt:32768:8:1"
PASSWORD_SALT_LENGTH = 16

# Comments disappear 30 days after creation.
COMMENT_TTL_DAYS = 30

DASHBOARD_POST_LIMIT = 5
AUDIT_LIST_LIMIT = 200

ALLOWED_PICTURE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp"})
