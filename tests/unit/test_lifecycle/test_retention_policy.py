# tests/unit/test_lifecycle/test_retention_policy.py
"""Unit tests for retention policy predicates and finders."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

NOW = datetime(2026, 3, 1, 12, 0, 0)


def _stub_post(updated_ago: timedelta):
    from post_lifecycle.models import Post

    post = MagicMock(spec=Post)
    post.user_deleted = True
    post.deleted_at = None
    post.updated_at = NOW - updated_ago
    return post


def _hidden_post(hidden_ago: timedelta | None):
    from post_lifecycle.models import Post

    post = MagicMock(spec=Post)
    post.hidden = True
    post.hidden_at = NOW - hidden_ago if hidden_ago is not None else None
    post.deleted_at = None
    return post


class TestIsStubEligible:
    """Tests for is_stub_eligible()."""

    def test_eligible_after_window(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        assert is_stub_eligible(_stub_post(timedelta(hours=25)), NOW, timedelta(hours=24)) == True

    def test_boundary_is_inclusive(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        assert is_stub_eligible(_stub_post(timedelta(hours=24)), NOW, timedelta(hours=24)) == True

    def test_not_eligible_inside_window(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        assert is_stub_eligible(_stub_post(timedelta(hours=23, minutes=59)), NOW, timedelta(hours=24)) == False

    def test_zero_window_is_immediate(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        assert is_stub_eligible(_stub_post(timedelta(0)), NOW, timedelta(0)) == True

    def test_active_flag_blocks(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        post = _stub_post(timedelta(days=10))

        assert is_stub_eligible(post, NOW, timedelta(hours=24), active_flag=True) == False
        assert is_stub_eligible(post, NOW, timedelta(0), active_flag=True) == False

    def test_live_post_is_not_a_stub(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        post = _stub_post(timedelta(days=10))
        post.user_deleted = False

        assert is_stub_eligible(post, NOW, timedelta(hours=24)) == False

    def test_removed_stub_is_not_eligible(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_stub_eligible

        post = _stub_post(timedelta(days=10))
        post.deleted_at = NOW - timedelta(days=1)

        assert is_stub_eligible(post, NOW, timedelta(hours=24)) == False


class TestIsHiddenPostEligible:
    """Tests for is_hidden_post_eligible()."""

    def test_default_threshold_is_thirty_days(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_hidden_post_eligible

        assert is_hidden_post_eligible(_hidden_post(timedelta(days=30)), NOW) == True
        assert is_hidden_post_eligible(_hidden_post(timedelta(days=29, hours=23)), NOW) == False

    def test_custom_threshold(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_hidden_post_eligible

        assert is_hidden_post_eligible(_hidden_post(timedelta(days=8)), NOW, timedelta(days=7)) == True

    def test_missing_hidden_at(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_hidden_post_eligible

        assert is_hidden_post_eligible(_hidden_post(None), NOW) == False

    def test_unhidden_post(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_hidden_post_eligible

        post = _hidden_post(timedelta(days=60))
        post.hidden = False

        assert is_hidden_post_eligible(post, NOW) == False

    def test_already_removed(self):
        from post_lifecycle.services.lifecycle.retention_policy import is_hidden_post_eligible

        post = _hidden_post(timedelta(days=60))
        post.deleted_at = NOW

        assert is_hidden_post_eligible(post, NOW) == False


class TestFinders:
    """Tests for the SQL candidate finders against a real session."""

    def test_find_stub_candidates_oldest_first(self, db, fab, destroyer, clock):
        from post_lifecycle.services.lifecycle.retention_policy import find_stub_candidates

        author = fab.user()
        older = fab.post(user=author)
        newer = fab.post(user=author)
        older_id, newer_id = older.id, newer.id
        destroyer(author, newer).destroy()
        clock.advance(minutes=5)
        destroyer(author, older).destroy()
        clock.advance(hours=24)

        assert find_stub_candidates(db, clock.now(), timedelta(hours=24)) == [newer_id, older_id]

    def test_find_stub_candidates_respects_limit(self, db, fab, destroyer, clock):
        from post_lifecycle.services.lifecycle.retention_policy import find_stub_candidates

        author = fab.user()
        for _ in range(3):
            destroyer(author, fab.post(user=author)).destroy()
        clock.advance(hours=24)

        assert len(find_stub_candidates(db, clock.now(), timedelta(hours=24), limit=2)) == 2

    def test_find_stub_candidates_skips_flagged(self, db, fab, destroyer, clock):
        from post_lifecycle.models import ActionType
        from post_lifecycle.services import moderation
        from post_lifecycle.services.lifecycle.retention_policy import find_stub_candidates, has_active_flag

        author = fab.user()
        post = fab.post(user=author)
        destroyer(author, post).destroy()
        moderation.act(db, fab.user(), post, ActionType.NOTIFY_MODERATORS, clock=clock)
        clock.advance(hours=24)

        assert has_active_flag(db, post) == True
        assert find_stub_candidates(db, clock.now(), timedelta(hours=24)) == []

    def test_like_does_not_count_as_flag(self, db, fab, destroyer, clock):
        from post_lifecycle.models import ActionType
        from post_lifecycle.services import moderation
        from post_lifecycle.services.lifecycle.retention_policy import find_stub_candidates, has_active_flag

        author = fab.user()
        post = fab.post(user=author)
        post_id = post.id
        moderation.act(db, fab.user(), post, ActionType.LIKE, clock=clock)
        destroyer(author, post).destroy()
        clock.advance(hours=24)

        assert has_active_flag(db, post) == False
        assert find_stub_candidates(db, clock.now(), timedelta(hours=24)) == [post_id]

    def test_find_hidden_post_candidates(self, db, fab, clock):
        from post_lifecycle.services.lifecycle.retention_policy import find_hidden_post_candidates

        old = fab.post()
        recent = fab.post()
        old_id = old.id
        old.hidden, old.hidden_at = True, clock.now() - timedelta(days=45)
        recent.hidden, recent.hidden_at = True, clock.now() - timedelta(days=5)
        db.commit()

        assert find_hidden_post_candidates(db, clock.now()) == [old_id]

    def test_count_pending(self, db, fab, destroyer, clock):
        from post_lifecycle.services.lifecycle.retention_policy import count_pending

        author = fab.user()
        due = fab.post(user=author)
        destroyer(author, due).destroy()
        clock.advance(hours=24)
        fresh = fab.post(user=author)
        destroyer(author, fresh).destroy()
        hidden = fab.post()
        hidden.hidden, hidden.hidden_at = True, clock.now()
        db.commit()

        counts = count_pending(db, clock.now(), timedelta(hours=24))

        assert counts == {"stubs_pending": 1, "hidden_pending": 0, "stubs_total": 2, "hidden_total": 1}
