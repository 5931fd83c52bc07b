"""
Retention policy evaluation.

Decides which posts have waited long enough to be destroyed. The predicates
are pure so they can be checked against a single post snapshot; the finders
push the same rules into SQL to select sweep candidates.

Two populations are eligible:
- stubs: withdrawn by their author, untouched for the stub retention window,
  and not carrying an active flag
- hidden posts: hidden by community flags for the hidden post threshold,
  counted from the most recent time they were hidden
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session

from post_lifecycle.config import HIDDEN_POST_THRESHOLD
from post_lifecycle.models import FLAG_TYPES, ModerationAction, Post

logger = logging.getLogger(__name__)


def _active_flag_clause():
    """Correlated EXISTS for an unresolved flag on Post."""
    return exists().where(
        and_(
            ModerationAction.post_id == Post.id,
            ModerationAction.action_type.in_([t.value for t in FLAG_TYPES]),
            ModerationAction.agreed_at.is_(None),
            ModerationAction.deferred_at.is_(None),
            ModerationAction.disagreed_at.is_(None),
        )
    )


def has_active_flag(db: Session, post: Post) -> bool:
    """True if someone flagged the post and no moderator has acted on it yet."""
    actions = db.query(ModerationAction).filter(ModerationAction.post_id == post.id).all()
    return any(action.is_active_flag for action in actions)


# -----------------------------------------------------------------------------
# Predicates
# -----------------------------------------------------------------------------


def is_stub_eligible(
    post: Post,
    now: datetime,
    retention_window: timedelta,
    active_flag: bool = False,
) -> bool:
    """
    Whether an author-deleted stub may be destroyed.

    The boundary is inclusive: a stub exactly retention_window old is eligible.
    A zero window makes every unflagged stub eligible immediately.
    """
    if not post.user_deleted or post.deleted_at is not None:
        return False
    if active_flag:
        return False
    if retention_window <= timedelta(0):
        return True
    return now - post.updated_at >= retention_window


def is_hidden_post_eligible(
    post: Post,
    now: datetime,
    threshold: timedelta = HIDDEN_POST_THRESHOLD,
) -> bool:
    """Whether a hidden post has stayed hidden long enough to be destroyed. Inclusive boundary."""
    if not post.hidden or post.hidden_at is None or post.deleted_at is not None:
        return False
    return now - post.hidden_at >= threshold


# -----------------------------------------------------------------------------
# Finders
# -----------------------------------------------------------------------------


def find_stub_candidates(
    db: Session,
    now: datetime,
    retention_window: timedelta,
    limit: int = 500,
) -> list[int]:
    """
    Find ids of stubs eligible for destruction.

    Topic state is deliberately not filtered on: stubs in a removed topic are
    still cleaned up.
    """
    cutoff = now - max(retention_window, timedelta(0))

    rows = (
        db.query(Post.id)
        .filter(
            and_(
                Post.user_deleted == True,
                Post.deleted_at.is_(None),
                Post.updated_at <= cutoff,
                ~_active_flag_clause(),
            )
        )
        .order_by(Post.updated_at.asc())  # Oldest first
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]


def find_hidden_post_candidates(
    db: Session,
    now: datetime,
    threshold: timedelta = HIDDEN_POST_THRESHOLD,
    limit: int = 500,
) -> list[int]:
    """Find ids of posts hidden for at least threshold."""
    cutoff = now - threshold

    rows = (
        db.query(Post.id)
        .filter(
            and_(
                Post.hidden == True,
                Post.hidden_at.isnot(None),
                Post.hidden_at <= cutoff,
                Post.deleted_at.is_(None),
            )
        )
        .order_by(Post.hidden_at.asc())
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]


def count_pending(db: Session, now: datetime, retention_window: timedelta) -> dict:
    """Counts for status displays."""
    return {
        "stubs_pending": len(find_stub_candidates(db, now, retention_window, limit=100_000)),
        "hidden_pending": len(find_hidden_post_candidates(db, now, limit=100_000)),
        "stubs_total": (
            db.query(Post.id).filter(Post.user_deleted == True, Post.deleted_at.is_(None)).count()
        ),
        "hidden_total": (
            db.query(Post.id).filter(Post.hidden == True, Post.deleted_at.is_(None)).count()
        ),
    }
