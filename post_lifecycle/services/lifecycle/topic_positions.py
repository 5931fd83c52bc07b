"""
Topic position recalculation after a post leaves or returns.

Post numbers are never renumbered. What moves is the topic's notion of its
latest post and each participant's read position, which must not point at a
post nobody can see any more.
"""

import logging

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from post_lifecycle.models import Post, PostTiming, Topic, TopicParticipant

logger = logging.getLogger(__name__)


def _live_posts(db: Session, topic_id: int):
    return db.query(Post).filter(Post.topic_id == topic_id, Post.deleted_at.is_(None))


def was_last_post(db: Session, post: Post) -> bool:
    """True if no live post in the topic comes after post."""
    later = _live_posts(db, post.topic_id).filter(Post.post_number > post.post_number).count()
    return later == 0


def reset_last_poster(db: Session, topic: Topic) -> Post | None:
    """
    Point the topic's last poster at its latest live post.

    Falls back to the first post when every reply is gone (the first post may
    itself be deleted when the whole topic was removed).
    """
    db.flush()
    latest = _live_posts(db, topic.id).order_by(Post.post_number.desc()).first()
    if latest is None:
        latest = db.query(Post).filter(Post.topic_id == topic.id).order_by(Post.post_number.asc()).first()
    if latest is None:
        return None

    topic.last_post_user_id = latest.user_id
    topic.last_posted_at = latest.created_at
    db.add(topic)

    logger.debug(
        f"Topic {topic.id} last post is now #{latest.post_number} by user {latest.user_id}",
        extra={"topic_id": topic.id, "post_id": latest.id},
    )
    return latest


def rollback_participants(db: Session, post: Post) -> int:
    """
    Roll read positions back past a removed post.

    Timings for the removed post are dropped. A last read or highest seen
    position at or beyond the removed post falls back to the latest live post
    the participant actually read; positions only ever move back. A
    participant whose posts in the topic are all gone is no longer marked as
    having posted.

    Returns the number of participant rows changed.
    """
    db.flush()
    db.query(PostTiming).filter(
        PostTiming.topic_id == post.topic_id,
        PostTiming.post_number == post.post_number,
    ).delete(synchronize_session=False)

    participants = db.query(TopicParticipant).filter(TopicParticipant.topic_id == post.topic_id).all()
    changed = 0

    for participant in participants:
        dirty = False
        last_read = participant.last_read_post_number or 0
        highest_seen = participant.highest_seen_post_number or 0

        if last_read >= post.post_number or highest_seen >= post.post_number:
            read_up_to = (
                db.query(func.max(PostTiming.post_number))
                .join(
                    Post,
                    and_(Post.topic_id == PostTiming.topic_id, Post.post_number == PostTiming.post_number),
                )
                .filter(
                    PostTiming.topic_id == post.topic_id,
                    PostTiming.user_id == participant.user_id,
                    Post.deleted_at.is_(None),
                )
                .scalar()
            ) or 0
            if last_read >= post.post_number and read_up_to < last_read:
                participant.last_read_post_number = read_up_to
                dirty = True
            if highest_seen >= post.post_number and read_up_to < highest_seen:
                participant.highest_seen_post_number = read_up_to
                dirty = True

        if participant.posted:
            still_posted = (
                _live_posts(db, post.topic_id).filter(Post.user_id == participant.user_id).count() > 0
            )
            if not still_posted:
                participant.posted = False
                dirty = True

        if dirty:
            db.add(participant)
            changed += 1

    logger.debug(
        f"Rolled back {changed} participants of topic {post.topic_id} past #{post.post_number}",
        extra={"topic_id": post.topic_id, "post_id": post.id},
    )
    return changed


def restore_participant(db: Session, post: Post) -> TopicParticipant:
    """Mark the author of a recovered post as having posted in the topic again."""
    participant = (
        db.query(TopicParticipant)
        .filter(TopicParticipant.topic_id == post.topic_id, TopicParticipant.user_id == post.user_id)
        .first()
    )
    if participant is None:
        participant = TopicParticipant(topic_id=post.topic_id, user_id=post.user_id)
    participant.posted = True
    db.add(participant)
    return participant
