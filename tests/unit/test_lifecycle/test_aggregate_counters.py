# tests/unit/test_lifecycle/test_aggregate_counters.py
"""Unit tests for topic, user and post counters."""

from unittest.mock import MagicMock

from post_lifecycle.models import ActionType, Post, Topic, User
from post_lifecycle.services import moderation
from post_lifecycle.services.lifecycle.aggregates import (
    adjust_topic_posts_count,
    adjust_user_post_count,
    flagged_post_count,
    recompute_action_counters,
)


class TestAdjustCounts:
    """Tests for adjust_topic_posts_count() and adjust_user_post_count()."""

    def test_topic_count_moves_by_delta(self):
        topic = MagicMock(spec=Topic)
        topic.posts_count = 3

        assert adjust_topic_posts_count(topic, -1) == 2
        assert adjust_topic_posts_count(topic, 1) == 3

    def test_topic_count_never_negative(self):
        topic = MagicMock(spec=Topic)
        topic.posts_count = 0

        assert adjust_topic_posts_count(topic, -1) == 0

    def test_user_count_never_negative(self):
        user = MagicMock(spec=User)
        user.post_count = None

        assert adjust_user_post_count(user, -1) == 0
        assert adjust_user_post_count(user, 2) == 2


class TestRecomputeActionCounters:
    """Tests for recompute_action_counters()."""

    def test_counts_each_action_type(self, db, fab, clock):
        post = fab.post()
        for _ in range(2):
            moderation.act(db, fab.user(), post, ActionType.LIKE, clock=clock)
        moderation.act(db, fab.user(), post, ActionType.BOOKMARK, clock=clock)
        moderation.act(db, fab.user(), post, ActionType.SPAM, clock=clock)

        counters = recompute_action_counters(db, post)

        assert counters["like_count"] == 2
        assert counters["bookmark_count"] == 1
        assert counters["spam_count"] == 1
        assert counters["off_topic_count"] == 0
        assert post.like_count == 2

    def test_resets_stale_values(self, db, fab):
        post = fab.post()
        post.inappropriate_count = 7

        recompute_action_counters(db, post)

        assert post.inappropriate_count == 0


class TestFlaggedPostCount:
    """Tests for flagged_post_count()."""

    def test_counts_posts_with_open_flags(self, db, fab, clock):
        flagged = fab.post()
        other = fab.post()
        moderation.act(db, fab.user(), flagged, ActionType.SPAM, clock=clock)
        moderation.act(db, fab.user(), flagged, ActionType.OFF_TOPIC, clock=clock)
        moderation.act(db, fab.user(), other, ActionType.LIKE, clock=clock)

        assert flagged_post_count(db) == 1

    def test_resolved_flags_do_not_count(self, db, fab, clock):
        post = fab.post()
        moderation.act(db, fab.user(), post, ActionType.SPAM, clock=clock)
        moderation.disagree_with_flags(db, post, fab.moderator(), clock=clock)

        assert flagged_post_count(db) == 0
        assert db.get(Post, post.id).spam_count == 1
