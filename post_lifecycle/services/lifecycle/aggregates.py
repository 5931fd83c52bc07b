"""
Aggregate counters kept in step with post transitions.

Counts move by one per transition. The author's public post_count only moves
on staff removal and recovery, never on an author withdrawing a post.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from post_lifecycle.models import ACTION_COUNTER_COLUMNS, FLAG_TYPES, ModerationAction, Post, Topic, User

logger = logging.getLogger(__name__)


def adjust_topic_posts_count(topic: Topic, delta: int) -> int:
    topic.posts_count = max((topic.posts_count or 0) + delta, 0)
    return topic.posts_count


def adjust_user_post_count(user: User, delta: int) -> int:
    user.post_count = max((user.post_count or 0) + delta, 0)
    return user.post_count


def recompute_action_counters(db: Session, post: Post) -> dict[str, int]:
    """
    Recompute every per-action counter on post from surviving action rows.

    Agreed flags still count: they are the record of why the post went away.
    """
    db.flush()
    rows = (
        db.query(ModerationAction.action_type, func.count(ModerationAction.id))
        .filter(ModerationAction.post_id == post.id)
        .group_by(ModerationAction.action_type)
        .all()
    )
    counts = {action_type: count for action_type, count in rows}

    updated = {}
    for action_type, column in ACTION_COUNTER_COLUMNS.items():
        value = counts.get(action_type.value, 0)
        setattr(post, column, value)
        updated[column] = value

    logger.debug(f"Recomputed action counters for post {post.id}: {updated}", extra={"post_id": post.id})
    return updated


def flagged_post_count(db: Session) -> int:
    """Number of posts with at least one unresolved flag, for moderator queues."""
    flag_types = [t.value for t in FLAG_TYPES]
    return (
        db.query(func.count(func.distinct(ModerationAction.post_id)))
        .filter(
            ModerationAction.action_type.in_(flag_types),
            ModerationAction.agreed_at.is_(None),
            ModerationAction.deferred_at.is_(None),
            ModerationAction.disagreed_at.is_(None),
        )
        .scalar()
    ) or 0
