"""
Side effects of removing a post.

Each handler cleans one dependent subsystem and returns the number of rows it
touched. Handlers are idempotent: running one twice against the same post
touches nothing the second time. They run in list order inside the caller's
transaction and never commit.

Order matters in one place: flags are agreed and non-resolving actions purged
before the post's action counters are recomputed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from post_lifecycle.models import (
    FLAG_TYPES,
    ActionType,
    ModerationAction,
    Notification,
    Post,
    PostReply,
    TopicLink,
    User,
    UserAction,
)
from post_lifecycle.services.jobs import FEATURE_TOPIC_USERS, JobQueue
from post_lifecycle.services.lifecycle.aggregates import recompute_action_counters

logger = logging.getLogger(__name__)

NON_RESOLVING_TYPES = [t.value for t in ActionType if t not in FLAG_TYPES]


@dataclass
class FanOutContext:
    """What a handler may need besides the post."""
    actor: User
    now: datetime
    job_queue: JobQueue


Handler = Callable[[Session, Post, FanOutContext], int]


def purge_notifications(db: Session, post: Post, ctx: FanOutContext) -> int:
    """Mentions, replies, quotes and likes pointing at the post."""
    return (
        db.query(Notification)
        .filter(
            Notification.topic_id == post.topic_id,
            Notification.post_number == post.post_number,
        )
        .delete(synchronize_session=False)
    )


def purge_topic_links(db: Session, post: Post, ctx: FanOutContext) -> int:
    return db.query(TopicLink).filter(TopicLink.post_id == post.id).delete(synchronize_session=False)


def purge_public_actions(db: Session, post: Post, ctx: FanOutContext) -> int:
    """Bookmarks and likes go away with the post."""
    return (
        db.query(ModerationAction)
        .filter(
            ModerationAction.post_id == post.id,
            ModerationAction.action_type.in_(NON_RESOLVING_TYPES),
        )
        .delete(synchronize_session=False)
    )


def agree_with_flags(db: Session, post: Post, ctx: FanOutContext) -> int:
    """Removing a flagged post settles its open flags in the flaggers' favour."""
    flags = (
        db.query(ModerationAction)
        .filter(
            ModerationAction.post_id == post.id,
            ModerationAction.action_type.in_([t.value for t in FLAG_TYPES]),
            ModerationAction.agreed_at.is_(None),
            ModerationAction.deferred_at.is_(None),
            ModerationAction.disagreed_at.is_(None),
        )
        .all()
    )
    for flag in flags:
        flag.agreed_at = ctx.now
        flag.agreed_by_id = ctx.actor.id
        db.add(flag)
    return len(flags)


def purge_user_actions(db: Session, post: Post, ctx: FanOutContext) -> int:
    return db.query(UserAction).filter(UserAction.target_post_id == post.id).delete(synchronize_session=False)


def detach_from_parent(db: Session, post: Post, ctx: FanOutContext) -> int:
    """Drop the reply link to the post this one answered and lower the parent's reply_count."""
    links = db.query(PostReply).filter(PostReply.reply_id == post.id).all()
    for link in links:
        parent = db.get(Post, link.post_id)
        if parent is not None:
            parent.reply_count = max((parent.reply_count or 0) - 1, 0)
            db.add(parent)
        db.delete(link)
    return len(links)


def refresh_action_counters(db: Session, post: Post, ctx: FanOutContext) -> int:
    counters = recompute_action_counters(db, post)
    db.add(post)
    return sum(counters.values())


def feature_topic_users(db: Session, post: Post, ctx: FanOutContext) -> int:
    """Ask the worker to recompute the users featured on the topic, without this post."""
    ctx.job_queue.enqueue(FEATURE_TOPIC_USERS, {"topic_id": post.topic_id, "except_post_id": post.id})
    return 1


# Full cleanup for a staff removal
REMOVAL_HANDLERS: list[Handler] = [
    purge_notifications,
    purge_topic_links,
    purge_public_actions,
    agree_with_flags,
    purge_user_actions,
    detach_from_parent,
    refresh_action_counters,
    feature_topic_users,
]

# An author withdrawing a post keeps everything recoverable except its links
AUTHOR_STUB_HANDLERS: list[Handler] = [
    purge_topic_links,
    refresh_action_counters,
]


def run_handlers(db: Session, post: Post, ctx: FanOutContext, handlers: list[Handler]) -> dict[str, int]:
    """
    Run handlers in order and return {handler_name: rows_touched}.

    Any exception propagates so the caller's transaction rolls back as a whole.
    """
    counts = {}
    for handler in handlers:
        counts[handler.__name__] = handler(db, post, ctx)

    logger.debug(
        f"Side effects for post {post.id}: {counts}",
        extra={"event": "side_effects_applied", "post_id": post.id, "related_records": counts},
    )
    return counts
