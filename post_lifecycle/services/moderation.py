"""
Moderation actions on live posts.

Handles:
- Bookmarking, liking and flagging a post (with the matching activity log rows)
- Hiding a post on flags and unhiding it
- Deferring or disagreeing with open flags

Hiding is what starts the clock for destroy_old_hidden_posts: hidden_at is
stamped every time a post is hidden, so unhide/rehide restarts it.
"""

import logging

from sqlalchemy.orm import Session

from post_lifecycle.models import (
    FLAG_TYPES,
    ActionType,
    ModerationAction,
    Post,
    User,
    UserAction,
    UserActionType,
)
from post_lifecycle.services.clock import Clock, SystemClock
from post_lifecycle.services.lifecycle.aggregates import recompute_action_counters
from post_lifecycle.services.lifecycle.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

# Activity log entries written for the actor and for the post's author
ACTIVITY_LOG_TYPES = {
    ActionType.LIKE: (UserActionType.LIKE, UserActionType.WAS_LIKED),
    ActionType.BOOKMARK: (UserActionType.BOOKMARK, None),
}


def act(
    db: Session,
    user: User,
    post: Post,
    action_type: ActionType,
    clock: Clock | None = None,
) -> ModerationAction:
    """
    Record user's action on post and refresh the post's counters.

    Acting twice with the same type returns the existing action.
    """
    if post.deleted_at is not None:
        raise InvalidTransitionError(f"Cannot act on deleted post {post.id}")

    now = (clock or SystemClock()).now()

    existing = (
        db.query(ModerationAction)
        .filter(
            ModerationAction.post_id == post.id,
            ModerationAction.user_id == user.id,
            ModerationAction.action_type == action_type.value,
        )
        .first()
    )
    if existing:
        return existing

    action = ModerationAction(post_id=post.id, user_id=user.id, action_type=action_type.value, created_at=now)
    db.add(action)

    log_types = ACTIVITY_LOG_TYPES.get(action_type)
    if log_types:
        actor_type, author_type = log_types
        db.add(
            UserAction(
                action_type=actor_type.value,
                user_id=user.id,
                acting_user_id=user.id,
                target_topic_id=post.topic_id,
                target_post_id=post.id,
                created_at=now,
            )
        )
        if author_type:
            db.add(
                UserAction(
                    action_type=author_type.value,
                    user_id=post.user_id,
                    acting_user_id=user.id,
                    target_topic_id=post.topic_id,
                    target_post_id=post.id,
                    created_at=now,
                )
            )

    recompute_action_counters(db, post)
    db.add(post)
    db.commit()

    logger.info(
        f"User {user.id} {action_type.value} post {post.id}",
        extra={"event": "post_action", "post_id": post.id, "actor_id": user.id},
    )
    return action


def hide_post(db: Session, post: Post, reason: ActionType, clock: Clock | None = None) -> Post:
    """Hide post because of flags of type reason. Re-hiding restamps hidden_at."""
    if reason not in FLAG_TYPES:
        raise ValueError(f"{reason.value} is not a flag type")

    post.hidden = True
    post.hidden_at = (clock or SystemClock()).now()
    post.hidden_reason = reason.value
    db.add(post)
    db.commit()

    logger.info(f"Hid post {post.id} ({reason.value})", extra={"event": "post_hidden", "post_id": post.id})
    return post


def unhide_post(db: Session, post: Post) -> Post:
    post.hidden = False
    post.hidden_at = None
    post.hidden_reason = None
    db.add(post)
    db.commit()

    logger.info(f"Unhid post {post.id}", extra={"event": "post_unhidden", "post_id": post.id})
    return post


def _open_flags(db: Session, post: Post) -> list[ModerationAction]:
    return [
        action
        for action in db.query(ModerationAction).filter(ModerationAction.post_id == post.id).all()
        if action.is_active_flag
    ]


def defer_flags(db: Session, post: Post, moderator: User, clock: Clock | None = None) -> int:
    """Set aside open flags without judging them. Deferred flags no longer block stub removal."""
    now = (clock or SystemClock()).now()
    flags = _open_flags(db, post)
    for flag in flags:
        flag.deferred_at = now
        db.add(flag)
    db.commit()

    logger.info(
        f"Moderator {moderator.id} deferred {len(flags)} flags on post {post.id}",
        extra={"event": "flags_deferred", "post_id": post.id, "actor_id": moderator.id},
    )
    return len(flags)


def disagree_with_flags(db: Session, post: Post, moderator: User, clock: Clock | None = None) -> int:
    """Reject open flags and unhide the post if they had hidden it."""
    now = (clock or SystemClock()).now()
    flags = _open_flags(db, post)
    for flag in flags:
        flag.disagreed_at = now
        db.add(flag)
    if post.hidden:
        post.hidden = False
        post.hidden_at = None
        post.hidden_reason = None
        db.add(post)
    db.commit()

    logger.info(
        f"Moderator {moderator.id} disagreed with {len(flags)} flags on post {post.id}",
        extra={"event": "flags_disagreed", "post_id": post.id, "actor_id": moderator.id},
    )
    return len(flags)
