"""
Discussion platform models touched by the post lifecycle.

Tables:
- User: authors, moderators and the system actor
- Topic: a thread of numbered posts
- Post: user-generated content with its lifecycle columns
- PostRevision: content snapshots taken before an author deletion
- PostReply: reply links between posts of a topic
- TopicParticipant: per-user read position in a topic
- PostTiming: which posts a user has actually read
- ModerationAction: bookmarks, likes and flags on a post
- UserAction: denormalized per-user activity log
- Notification: mentions, replies, quotes derived from post content
- TopicLink: hyperlinks extracted from post content
- AuditEntry: staff actions on posts, append-only
- QueuedJob: outbox of background jobs enqueued with the mutation
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from post_lifecycle.database import Base


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class UserRole(str, Enum):
    """Trust level that decides which destroy path a user takes."""
    REGULAR = "regular"
    MODERATOR = "moderator"
    ADMIN = "admin"
    SYSTEM = "system"


class PostState(str, Enum):
    """Derived visibility state of a post. Exactly one holds at a time."""
    VISIBLE = "visible"
    HIDDEN = "hidden"
    USER_DELETED = "user_deleted"
    MODERATOR_DELETED = "moderator_deleted"
    PURGED = "purged"


class ActionType(str, Enum):
    """Kinds of moderation action a user can take on a post."""
    BOOKMARK = "bookmark"
    LIKE = "like"
    OFF_TOPIC = "off_topic"
    INAPPROPRIATE = "inappropriate"
    SPAM = "spam"
    NOTIFY_MODERATORS = "notify_moderators"


# Flags carry a moderation judgement and survive post removal in agreed form.
FLAG_TYPES = frozenset({
    ActionType.OFF_TOPIC,
    ActionType.INAPPROPRIATE,
    ActionType.SPAM,
    ActionType.NOTIFY_MODERATORS,
})

# Post column caching the live count of each action type
ACTION_COUNTER_COLUMNS = {
    ActionType.BOOKMARK: "bookmark_count",
    ActionType.LIKE: "like_count",
    ActionType.OFF_TOPIC: "off_topic_count",
    ActionType.INAPPROPRIATE: "inappropriate_count",
    ActionType.SPAM: "spam_count",
    ActionType.NOTIFY_MODERATORS: "notify_moderators_count",
}


class UserActionType(str, Enum):
    """Activity log entry types."""
    LIKE = "like"
    WAS_LIKED = "was_liked"
    BOOKMARK = "bookmark"
    NEW_TOPIC = "new_topic"
    REPLY = "reply"
    MENTION = "mention"


class NotificationType(str, Enum):
    """Notifications derived from post content."""
    MENTIONED = "mentioned"
    REPLIED = "replied"
    QUOTED = "quoted"
    LIKED = "liked"
    POSTED = "posted"


class AuditAction(str, Enum):
    """Staff actions recorded in the audit log."""
    DELETE_POST = "delete_post"
    RECOVER_POST = "recover_post"
    PERMANENTLY_DELETE_POST = "permanently_delete_post"


class JobStatus(str, Enum):
    """Outbox job status. Workers own everything after PENDING."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


# -----------------------------------------------------------------------------
# User
# -----------------------------------------------------------------------------

SYSTEM_USER_ID = -1


class User(Base):
    """Forum account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(60), unique=True, nullable=False)
    role = Column(String(16), default=UserRole.REGULAR.value, nullable=False)  # UserRole enum
    post_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username!r} {self.role}>"


# -----------------------------------------------------------------------------
# Topic
# -----------------------------------------------------------------------------

class Topic(Base):
    """
    A thread of posts numbered from 1.

    highest_post_number only ever grows: numbers of removed posts leave gaps
    and are never handed out again.
    """
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    posts_count = Column(Integer, default=0, nullable=False)
    highest_post_number = Column(Integer, default=0, nullable=False)
    last_post_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    last_posted_at = Column(DateTime, nullable=True)

    # Soft removal
    deleted_at = Column(DateTime, nullable=True)
    deleted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    last_poster = relationship("User", foreign_keys=[last_post_user_id])
    posts = relationship("Post", back_populates="topic", order_by="Post.post_number")


# -----------------------------------------------------------------------------
# Post
# -----------------------------------------------------------------------------

class Post(Base):
    """
    User-generated content plus the columns that carry its lifecycle.

    Lifecycle columns:
    - hidden / hidden_at: hidden by community flags, hidden_at resets on re-hide
    - user_deleted: withdrawn by the author, content replaced by a stub
    - deleted_at / deleted_by_id: removed by staff (or by the stub sweep)
    - purged_at: permanently destroyed, content erased, row kept as a tombstone
    """
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    post_number = Column(Integer, nullable=False)
    reply_to_post_number = Column(Integer, nullable=True)

    # Content
    raw = Column(Text, nullable=False, default="")
    cooked = Column(Text, nullable=False, default="")
    version = Column(Integer, default=1, nullable=False)

    # Cached counters
    reply_count = Column(Integer, default=0, nullable=False)
    bookmark_count = Column(Integer, default=0, nullable=False)
    like_count = Column(Integer, default=0, nullable=False)
    off_topic_count = Column(Integer, default=0, nullable=False)
    inappropriate_count = Column(Integer, default=0, nullable=False)
    spam_count = Column(Integer, default=0, nullable=False)
    notify_moderators_count = Column(Integer, default=0, nullable=False)

    # Lifecycle
    hidden = Column(Boolean, default=False, nullable=False)
    hidden_at = Column(DateTime, nullable=True)
    hidden_reason = Column(String(32), nullable=True)  # ActionType that hid it
    user_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    purged_at = Column(DateTime, nullable=True)

    # Set explicitly from the injected clock, never by onupdate
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    topic = relationship("Topic", back_populates="posts")
    user = relationship("User", foreign_keys=[user_id])
    deleted_by = relationship("User", foreign_keys=[deleted_by_id])
    revisions = relationship("PostRevision", back_populates="post", order_by="PostRevision.number")

    __table_args__ = (
        UniqueConstraint("topic_id", "post_number", name="uq_posts_topic_post_number"),
        Index("ix_posts_user_deleted", "user_deleted"),
        Index("ix_posts_hidden_at", "hidden_at"),
        Index("ix_posts_deleted_at", "deleted_at"),
    )

    @property
    def state(self) -> PostState:
        if self.purged_at is not None:
            return PostState.PURGED
        if self.deleted_at is not None:
            return PostState.MODERATOR_DELETED
        if self.user_deleted:
            return PostState.USER_DELETED
        if self.hidden:
            return PostState.HIDDEN
        return PostState.VISIBLE

    @property
    def is_first_post(self) -> bool:
        return self.post_number == 1

    def __repr__(self) -> str:
        return f"<Post {self.id} topic={self.topic_id} #{self.post_number} {self.state.value}>"


class PostRevision(Base):
    """Content a post carried before an author deletion replaced it."""
    __tablename__ = "post_revisions"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    number = Column(Integer, nullable=False)  # Post.version this revision produced
    raw = Column(Text, nullable=False)
    cooked = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    post = relationship("Post", back_populates="revisions")

    __table_args__ = (
        Index("ix_post_revisions_post_id", "post_id"),
    )


class PostReply(Base):
    """post_id was replied to by reply_id."""
    __tablename__ = "post_replies"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    reply_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("post_id", "reply_id", name="uq_post_replies_post_reply"),
    )


# -----------------------------------------------------------------------------
# Read tracking
# -----------------------------------------------------------------------------

class TopicParticipant(Base):
    """A user's position in a topic."""
    __tablename__ = "topic_users"

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    posted = Column(Boolean, default=False, nullable=False)
    last_read_post_number = Column(Integer, nullable=True)
    highest_seen_post_number = Column(Integer, nullable=True)

    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("topic_id", "user_id", name="uq_topic_users_topic_user"),
    )


class PostTiming(Base):
    """A user spent time reading a post."""
    __tablename__ = "post_timings"

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    post_number = Column(Integer, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    msecs = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("topic_id", "post_number", "user_id", name="uq_post_timings_topic_post_user"),
    )


# -----------------------------------------------------------------------------
# Moderation
# -----------------------------------------------------------------------------

class ModerationAction(Base):
    """
    Bookmark, like or flag on a post.

    A flag is active until a moderator agrees, defers or disagrees with it.
    """
    __tablename__ = "post_actions"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    action_type = Column(String(32), nullable=False)  # ActionType enum

    agreed_at = Column(DateTime, nullable=True)
    agreed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    deferred_at = Column(DateTime, nullable=True)
    disagreed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_post_actions_post_id", "post_id"),
        UniqueConstraint("post_id", "user_id", "action_type", name="uq_post_actions_post_user_type"),
    )

    @property
    def is_flag(self) -> bool:
        return ActionType(self.action_type) in FLAG_TYPES

    @property
    def is_active_flag(self) -> bool:
        return (
            self.is_flag
            and self.agreed_at is None
            and self.deferred_at is None
            and self.disagreed_at is None
        )


class UserAction(Base):
    """Denormalized activity log row, one per user per action."""
    __tablename__ = "user_actions"

    id = Column(Integer, primary_key=True)
    action_type = Column(String(32), nullable=False)  # UserActionType enum
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    acting_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    target_topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True)
    target_post_id = Column(Integer, ForeignKey("posts.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_user_actions_target_post_id", "target_post_id"),
    )


class Notification(Base):
    """Notification derived from a post. Addressed by topic and post number."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    notification_type = Column(String(32), nullable=False)  # NotificationType enum
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True)
    post_number = Column(Integer, nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_notifications_topic_post", "topic_id", "post_number"),
    )


class TopicLink(Base):
    """A hyperlink found in a post."""
    __tablename__ = "topic_links"

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=False)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    url = Column(String(500), nullable=False)
    domain = Column(String(100), nullable=False)
    internal = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_topic_links_post_id", "post_id"),
    )


# -----------------------------------------------------------------------------
# Audit & jobs
# -----------------------------------------------------------------------------

class AuditEntry(Base):
    """Immutable record of a staff member deleting or restoring someone else's post."""
    __tablename__ = "user_histories"

    id = Column(Integer, primary_key=True)
    action = Column(String(32), nullable=False)  # AuditAction enum
    acting_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    post_id = Column(Integer, nullable=True)
    topic_id = Column(Integer, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_user_histories_post_id", "post_id"),
    )


class QueuedJob(Base):
    """Background job written in the same transaction as the change it reacts to."""
    __tablename__ = "queued_jobs"

    id = Column(Integer, primary_key=True)
    job_name = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(16), default=JobStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_queued_jobs_status", "status"),
    )
