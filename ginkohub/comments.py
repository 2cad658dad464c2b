"""Comment board and voting.

Each page keeps its comments as one list value under ``comments:<pageId>``,
newest first and capped at ``Config.COMMENT_LIMIT``. Updates are
read-modify-write without a version check, so two writers racing on the same
page can lose one update. Store failures here are not swallowed: the caller
turns them into a 500. A lock taken for a write that then fails is released
so the caller can retry straight away.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from typing import List

import markdown
import nh3

from ginkohub.config import Config
from ginkohub.store import KeyValueStore
from ginkohub.utils import acquire_lock, release_lock, sanitize_ip, track_usage

ALLOWED_TAGS = {"b", "i", "em", "strong", "a", "code", "pre", "ul", "ol", "li", "blockquote"}
ALLOWED_ATTRIBUTES = {"a": {"href", "name", "target"}}
ALLOWED_SCHEMES = {"http", "https"}

VOTE_TYPES = ("up", "down")

_ID_ALPHABET = string.ascii_lowercase + string.digits


class CommentRejected(Exception):
    """A comment or vote request that must fail with a client status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def comments_key(page_id: str) -> str:
    return f"comments:{page_id}"


def new_comment_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))


def render_content(content: str) -> str:
    """Markdown to HTML, then strip everything outside the allow-list."""
    html = markdown.markdown(content)
    return nh3.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, url_schemes=ALLOWED_SCHEMES)


def clean_author(author: str) -> str:
    cleaned = nh3.clean(author or "", tags=set()).strip()
    return cleaned or "Anonymous"


def validate_content(content: str) -> None:
    if not content or len(content.strip()) < Config.COMMENT_MIN_LENGTH:
        raise CommentRejected(400, "Comment too short")
    if len(content) > Config.COMMENT_MAX_LENGTH:
        raise CommentRejected(400, f"Comment too long (max {Config.COMMENT_MAX_LENGTH} chars)")


def list_comments(store: KeyValueStore, page_id: str) -> List[dict]:
    return store.get(comments_key(page_id)) or []


def post_comment(store: KeyValueStore, page_id: str, author: str, content: str, ip: str) -> dict:
    """Validate, rate-limit, render and store a new comment.

    Raises:
        CommentRejected: 400 for bad content, 429 while the IP is rate locked
    """
    validate_content(content)

    comment = {
        "id": new_comment_id(),
        "author": clean_author(author),
        "content": render_content(content),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ups": 0,
        "downs": 0,
    }

    rate_key = f"ratelimit:comment:{sanitize_ip(ip)}"
    if not acquire_lock(store, rate_key, Config.COMMENT_RATE_LIMIT):
        raise CommentRejected(429, f"Too many requests. Wait {Config.COMMENT_RATE_LIMIT}s.")

    try:
        comments = list_comments(store, page_id)
        comments.insert(0, comment)
        store.set(comments_key(page_id), comments[:Config.COMMENT_LIMIT])
    except Exception:
        release_lock(store, rate_key)
        raise

    track_usage(store, "comments")
    return comment


def vote(store: KeyValueStore, page_id: str, comment_id: str, vote_type: str, ip: str) -> dict:
    """Record one up or down vote per comment and address per day.

    Raises:
        CommentRejected: 400 unknown type, 404 unknown comment, 403 repeat vote
    """
    if vote_type not in VOTE_TYPES:
        raise CommentRejected(400, "Invalid vote type")

    comments = list_comments(store, page_id)
    comment = next((c for c in comments if c.get("id") == comment_id), None)
    if comment is None:
        raise CommentRejected(404, "Comment not found")

    lock_key = f"votelock:{comment_id}:{sanitize_ip(ip)}"
    if not acquire_lock(store, lock_key, Config.VOTE_LOCK_TTL):
        raise CommentRejected(403, "Already voted")

    # comments stored before voting existed carry no counters
    comment.setdefault("ups", 0)
    comment.setdefault("downs", 0)
    field = "ups" if vote_type == "up" else "downs"
    comment[field] = int(comment[field] or 0) + 1

    try:
        store.set(comments_key(page_id), comments)
    except Exception:
        release_lock(store, lock_key)
        raise
    track_usage(store, "votes")
    return {"ups": comment["ups"], "downs": comment["downs"]}
