"""
Post destroyer: the lifecycle orchestrator.

Handles:
- Author withdrawal (content replaced by a stub, recoverable)
- Staff removal (deleted_at/deleted_by, audited, side effects fanned out)
- Recovery of either form
- Permanent destruction (content erased, tombstone kept)
- Batch sweeps for old stubs and long-hidden posts

Every single-post operation is one transaction: it commits once at the end or
rolls back entirely. Sweeps run one such transaction per candidate.
"""

import html
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.orm import Session

from post_lifecycle.config import LifecycleConfig
from post_lifecycle.logging_config import ProgressTracker, log_sweep
from post_lifecycle.models import (
    AuditAction,
    AuditEntry,
    Post,
    PostReply,
    PostRevision,
    PostState,
    Topic,
    User,
)
from post_lifecycle.services.clock import Clock, SystemClock
from post_lifecycle.services.jobs import DatabaseJobQueue, JobQueue
from post_lifecycle.services.lifecycle.aggregates import adjust_topic_posts_count, adjust_user_post_count
from post_lifecycle.services.lifecycle.errors import (
    ForbiddenError,
    InvalidTransitionError,
    PostNotFoundError,
    TopicNotFoundError,
)
from post_lifecycle.services.lifecycle.retention_policy import (
    find_hidden_post_candidates,
    find_stub_candidates,
    has_active_flag,
    is_hidden_post_eligible,
    is_stub_eligible,
)
from post_lifecycle.services.lifecycle.side_effects import (
    AUTHOR_STUB_HANDLERS,
    REMOVAL_HANDLERS,
    FanOutContext,
    run_handlers,
)
from post_lifecycle.services.lifecycle.topic_positions import (
    reset_last_poster,
    restore_participant,
    rollback_participants,
    was_last_post,
)
from post_lifecycle.services.roles import (
    ActorCapability,
    DefaultRolePolicy,
    RolePolicy,
    ensure_system_user,
    resolve_capability,
)

logger = logging.getLogger(__name__)


class Transition(str, Enum):
    """What a lifecycle call did to the post."""
    NOOP = "noop"
    AUTHOR_DELETED = "author_deleted"
    DELETED = "deleted"
    AUTHOR_RECOVERED = "author_recovered"
    RECOVERED = "recovered"
    PURGED = "purged"


@dataclass
class TransitionResult:
    """Result of a single-post lifecycle call."""

    post_id: int
    transition: Transition
    capability: ActorCapability | None = None
    related_records: dict = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.transition != Transition.NOOP


@dataclass
class SweepResult:
    """Result of a batch sweep."""

    success: bool
    dry_run: bool = False
    posts_examined: int = 0
    posts_destroyed: int = 0
    posts_skipped: int = 0
    posts_failed: int = 0
    related_records: dict = field(default_factory=dict)  # rows touched per handler, summed
    errors: list[str] = field(default_factory=list)


class PostDestroyer:
    """
    Destroys and recovers one post on behalf of one actor.

    Usage:
        PostDestroyer(db, moderator, post).destroy()
        PostDestroyer(db, author, post).recover()
    """

    def __init__(
        self,
        db: Session,
        actor: User,
        post: Post | None,
        config: LifecycleConfig | None = None,
        clock: Clock | None = None,
        role_policy: RolePolicy | None = None,
        job_queue: JobQueue | None = None,
        capability: ActorCapability | None = None,
    ):
        if post is None:
            raise PostNotFoundError(None)
        self.db = db
        self.actor = actor
        self.post = post
        self.config = config or LifecycleConfig.from_settings()
        self.clock = clock or SystemClock()
        self.role_policy = role_policy or DefaultRolePolicy()
        self.job_queue = job_queue or DatabaseJobQueue(db)
        # Set by callers that already vouch for the actor, like the sweeps
        self.capability = capability
        self.topic: Topic | None = None

    @classmethod
    def for_post_id(cls, db: Session, actor: User, post_id: int, **kwargs) -> "PostDestroyer":
        post = db.get(Post, post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return cls(db, actor, post, **kwargs)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def destroy(self, context: str | None = None) -> TransitionResult:
        """
        Remove the post the way the actor is entitled to.

        An author without moderation rights only withdraws the post, unless
        the stub retention window is zero, in which case the post is removed
        outright as if staff had done it.
        """
        self._load()
        if self.post.state in (PostState.MODERATOR_DELETED, PostState.PURGED):
            return self._noop("destroy")

        capability = self._resolve_capability()

        if capability == ActorCapability.OTHER:
            raise ForbiddenError(f"User {self.actor.id} may not delete post {self.post.id}")

        if capability == ActorCapability.AUTHOR and not self.config.immediate_stub_removal:
            if self.post.user_deleted:
                return self._noop("destroy")
            return self._commit(Transition.AUTHOR_DELETED, capability, self._author_destroyed)

        return self._commit(Transition.DELETED, capability, lambda: self._staff_destroyed(context))

    def recover(self, context: str | None = None) -> TransitionResult:
        """
        Undo a withdrawal or a staff removal.

        Only reversible state comes back: notifications, links and other rows
        purged on removal stay gone. Recovering a post that was never deleted
        is a no-op.
        """
        self._load()
        state = self.post.state

        if state == PostState.PURGED:
            raise InvalidTransitionError(f"Post {self.post.id} was permanently destroyed and cannot be recovered")

        capability = self._resolve_capability()

        if state == PostState.MODERATOR_DELETED:
            if capability != ActorCapability.MODERATOR:
                raise ForbiddenError(f"User {self.actor.id} may not recover post {self.post.id}")
            return self._commit(Transition.RECOVERED, capability, lambda: self._staff_recovered(context))

        if state == PostState.USER_DELETED:
            if capability == ActorCapability.OTHER:
                raise ForbiddenError(f"User {self.actor.id} may not recover post {self.post.id}")
            return self._commit(Transition.AUTHOR_RECOVERED, capability, lambda: self._author_recovered(context))

        return self._noop("recover")

    def permanently_destroy(self, context: str | None = None) -> TransitionResult:
        """
        Erase the post's content for good. Staff only.

        The row survives as a tombstone so post numbers keep their gaps and
        agreed flags keep pointing somewhere.
        """
        self._load()
        if self.post.state == PostState.PURGED:
            return self._noop("permanently_destroy")

        capability = self._resolve_capability()
        if capability != ActorCapability.MODERATOR:
            raise ForbiddenError(f"User {self.actor.id} may not permanently delete post {self.post.id}")

        return self._commit(Transition.PURGED, capability, lambda: self._purged(context))

    # -------------------------------------------------------------------------
    # Transitions (never commit)
    # -------------------------------------------------------------------------

    def _author_destroyed(self) -> dict:
        post = self.post
        now = self.clock.now()

        self.db.add(
            PostRevision(
                post_id=post.id,
                number=post.version + 1,
                raw=post.raw,
                cooked=post.cooked,
                created_at=now,
            )
        )

        placeholder = self.config.deleted_by_author_text()
        post.raw = placeholder
        post.cooked = f"<p>{html.escape(placeholder)}</p>"
        post.version += 1
        post.user_deleted = True
        post.updated_at = now
        self.db.add(post)
        self.db.flush()

        return run_handlers(self.db, post, self._fan_out_context(now), AUTHOR_STUB_HANDLERS)

    def _staff_destroyed(self, context: str | None) -> dict:
        post = self.post
        topic = self.topic
        now = self.clock.now()

        was_last = was_last_post(self.db, post)

        post.deleted_at = now
        post.deleted_by_id = self.actor.id
        self.db.add(post)

        author = self.db.get(User, post.user_id)
        if author is not None:
            adjust_user_post_count(author, -1)
            self.db.add(author)
        adjust_topic_posts_count(topic, -1)

        # Removing the first post takes the topic with it
        if post.is_first_post and topic.deleted_at is None:
            topic.deleted_at = now
            topic.deleted_by_id = self.actor.id
        self.db.add(topic)

        if self.actor.id != post.user_id:
            self._audit(AuditAction.DELETE_POST, context, now)

        self.db.flush()

        counts = run_handlers(self.db, post, self._fan_out_context(now), REMOVAL_HANDLERS)
        counts["topic_participants"] = rollback_participants(self.db, post)
        if was_last:
            reset_last_poster(self.db, topic)
        return counts

    def _author_recovered(self, context: str | None) -> dict:
        post = self.post
        now = self.clock.now()

        revision = (
            self.db.query(PostRevision)
            .filter(PostRevision.post_id == post.id)
            .order_by(PostRevision.number.desc())
            .first()
        )
        if revision is None:
            raise InvalidTransitionError(f"Post {post.id} has no revision to restore")

        post.raw = revision.raw
        post.cooked = revision.cooked
        post.version += 1
        post.user_deleted = False
        post.updated_at = now
        self.db.add(post)

        if self.actor.id != post.user_id:
            self._audit(AuditAction.RECOVER_POST, context, now)
        return {}

    def _staff_recovered(self, context: str | None) -> dict:
        post = self.post
        topic = self.topic
        now = self.clock.now()

        post.deleted_at = None
        post.deleted_by_id = None
        self.db.add(post)

        author = self.db.get(User, post.user_id)
        if author is not None:
            adjust_user_post_count(author, 1)
            self.db.add(author)
        adjust_topic_posts_count(topic, 1)

        if post.is_first_post and topic.deleted_at is not None:
            topic.deleted_at = None
            topic.deleted_by_id = None
        self.db.add(topic)

        restore_participant(self.db, post)
        reset_last_poster(self.db, topic)

        if self.actor.id != post.user_id:
            self._audit(AuditAction.RECOVER_POST, context, now)
        return {}

    def _purged(self, context: str | None) -> dict:
        post = self.post
        counts = {}
        if post.deleted_at is None:
            counts = self._staff_destroyed(context)

        now = self.clock.now()
        counts["post_revisions"] = (
            self.db.query(PostRevision).filter(PostRevision.post_id == post.id).delete(synchronize_session=False)
        )
        counts["post_replies"] = (
            self.db.query(PostReply).filter(PostReply.post_id == post.id).delete(synchronize_session=False)
        )

        post.raw = ""
        post.cooked = ""
        post.reply_count = 0
        post.version += 1
        post.purged_at = now
        post.updated_at = now
        self.db.add(post)

        if self.actor.id != post.user_id:
            self._audit(AuditAction.PERMANENTLY_DELETE_POST, context, now)
        return counts

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        """Re-read the post under a row lock so concurrent calls converge."""
        post = (
            self.db.query(Post)
            .filter(Post.id == self.post.id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if post is None:
            raise PostNotFoundError(self.post.id)
        topic = self.db.get(Topic, post.topic_id)
        if topic is None:
            raise TopicNotFoundError(post.topic_id)
        self.post = post
        self.topic = topic

    def _resolve_capability(self) -> ActorCapability:
        if self.capability is not None:
            return self.capability
        return resolve_capability(self.role_policy, self.actor, self.post)

    def _fan_out_context(self, now) -> FanOutContext:
        return FanOutContext(actor=self.actor, now=now, job_queue=self.job_queue)

    def _audit(self, action: AuditAction, context: str | None, now) -> AuditEntry:
        entry = AuditEntry(
            action=action.value,
            acting_user_id=self.actor.id,
            target_user_id=self.post.user_id,
            post_id=self.post.id,
            topic_id=self.post.topic_id,
            details={"post_number": self.post.post_number, "context": context},
            created_at=now,
        )
        self.db.add(entry)
        return entry

    def _commit(
        self,
        transition: Transition,
        capability: ActorCapability,
        operation: Callable[[], dict],
    ) -> TransitionResult:
        try:
            counts = operation() or {}
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"Failed to {transition.value} post {self.post.id}: {e}",
                extra={"event": "transition_failed", "post_id": self.post.id, "actor_id": self.actor.id},
            )
            raise

        logger.info(
            f"Post {self.post.id} {transition.value} by user {self.actor.id} ({capability.value})",
            extra={
                "event": "post_transition",
                "post_id": self.post.id,
                "topic_id": self.post.topic_id,
                "actor_id": self.actor.id,
                "transition": transition.value,
                "related_records": counts,
            },
        )
        return TransitionResult(
            post_id=self.post.id,
            transition=transition,
            capability=capability,
            related_records=counts,
        )

    def _noop(self, operation: str) -> TransitionResult:
        logger.debug(
            f"{operation} on post {self.post.id} in state {self.post.state.value}: nothing to do",
            extra={"event": "transition_noop", "post_id": self.post.id, "actor_id": self.actor.id},
        )
        return TransitionResult(post_id=self.post.id, transition=Transition.NOOP)

    # -------------------------------------------------------------------------
    # Sweeps
    # -------------------------------------------------------------------------

    @classmethod
    def destroy_stubs(
        cls,
        db: Session,
        config: LifecycleConfig | None = None,
        clock: Clock | None = None,
        batch_size: int | None = None,
        dry_run: bool = False,
        **kwargs,
    ) -> SweepResult:
        """
        Destroy author-withdrawn posts whose retention window has passed.

        Stubs with an unresolved flag are left for a moderator. Running the
        sweep twice in a row changes nothing the second time.
        """
        config = config or LifecycleConfig.from_settings()
        clock = clock or SystemClock()

        with log_sweep("destroy_stubs"):
            now = clock.now()
            window = config.stub_retention_window
            candidate_ids = find_stub_candidates(db, now, window, limit=batch_size or config.sweep_batch_size)

            def eligible(post: Post) -> bool:
                return is_stub_eligible(post, now, window, has_active_flag(db, post))

            return cls._sweep(db, "destroy_stubs", candidate_ids, eligible, config, clock, dry_run, **kwargs)

    @classmethod
    def destroy_old_hidden_posts(
        cls,
        db: Session,
        config: LifecycleConfig | None = None,
        clock: Clock | None = None,
        batch_size: int | None = None,
        dry_run: bool = False,
        **kwargs,
    ) -> SweepResult:
        """Destroy posts that have stayed hidden for the hidden post threshold (30 days)."""
        config = config or LifecycleConfig.from_settings()
        clock = clock or SystemClock()

        with log_sweep("destroy_old_hidden_posts"):
            now = clock.now()
            threshold = config.hidden_post_threshold
            candidate_ids = find_hidden_post_candidates(
                db, now, threshold, limit=batch_size or config.sweep_batch_size
            )

            def eligible(post: Post) -> bool:
                return is_hidden_post_eligible(post, now, threshold)

            return cls._sweep(db, "destroy_old_hidden_posts", candidate_ids, eligible, config, clock, dry_run, **kwargs)

    @classmethod
    def _sweep(
        cls,
        db: Session,
        name: str,
        candidate_ids: list[int],
        eligible: Callable[[Post], bool],
        config: LifecycleConfig,
        clock: Clock,
        dry_run: bool,
        **kwargs,
    ) -> SweepResult:
        """
        Destroy each candidate as the system user, one transaction per post.

        A failing candidate is rolled back, recorded and skipped; the sweep
        carries on with the rest.
        """
        result = SweepResult(success=True, dry_run=dry_run, posts_examined=len(candidate_ids))
        if not candidate_ids:
            logger.info(f"{name}: nothing to do", extra={"event": "sweep_empty", "items_processed": 0})
            return result

        system_user = None if dry_run else ensure_system_user(db)
        tracker = ProgressTracker(total=len(candidate_ids), stage=name)

        for post_id in candidate_ids:
            try:
                post = db.get(Post, post_id)
                if post is None or not eligible(post):
                    result.posts_skipped += 1
                    tracker.increment()
                    continue

                if dry_run:
                    result.posts_destroyed += 1
                    tracker.increment()
                    continue

                outcome = cls(
                    db,
                    system_user,
                    post,
                    config=config,
                    clock=clock,
                    capability=ActorCapability.MODERATOR,
                    **kwargs,
                ).destroy(context=name)
                if outcome.changed:
                    result.posts_destroyed += 1
                    for table, count in outcome.related_records.items():
                        result.related_records[table] = result.related_records.get(table, 0) + count
                else:
                    result.posts_skipped += 1
                tracker.increment()

            except Exception as e:
                db.rollback()
                logger.error(
                    f"{name}: failed to destroy post {post_id}: {e}",
                    extra={"event": "sweep_item_failed", "post_id": post_id},
                    exc_info=True,
                )
                result.errors.append(f"Post {post_id}: {str(e)}")
                result.posts_failed += 1
                result.success = False
                tracker.increment(success=False)

        tracker.finish()
        logger.info(
            f"{name} complete: {result.posts_destroyed} destroyed, "
            f"{result.posts_skipped} skipped, {result.posts_failed} failed (dry_run={dry_run})",
            extra={
                "event": "sweep_summary",
                "items_processed": result.posts_examined,
                "items_failed": result.posts_failed,
            },
        )
        return result
