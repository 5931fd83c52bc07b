# tests/unit/test_lifecycle/test_topic_positions.py
"""Unit tests for last-poster and read-position recalculation."""

from post_lifecycle.models import PostTiming, Topic, TopicParticipant
from post_lifecycle.services.lifecycle.topic_positions import (
    reset_last_poster,
    restore_participant,
    rollback_participants,
    was_last_post,
)


def _participant(db, topic_id, user_id):
    return (
        db.query(TopicParticipant)
        .filter(TopicParticipant.topic_id == topic_id, TopicParticipant.user_id == user_id)
        .one()
    )


def _remove(db, post, clock):
    post.deleted_at = clock.now()
    db.flush()


class TestWasLastPost:
    """Tests for was_last_post()."""

    def test_latest_post(self, db, fab):
        first = fab.post()
        second = fab.post(topic=first.topic)

        assert was_last_post(db, second) == True
        assert was_last_post(db, first) == False

    def test_later_posts_already_removed(self, db, fab, clock):
        first = fab.post()
        second = fab.post(topic=first.topic)
        _remove(db, second, clock)

        assert was_last_post(db, first) == True


class TestResetLastPoster:
    """Tests for reset_last_poster()."""

    def test_points_at_latest_live_post(self, db, fab, clock):
        a = fab.user()
        first = fab.post(user=a)
        second = fab.post(topic=first.topic)
        topic_id = first.topic_id
        _remove(db, second, clock)

        latest = reset_last_poster(db, db.get(Topic, topic_id))

        assert latest.id == first.id
        assert db.get(Topic, topic_id).last_post_user_id == a.id
        assert db.get(Topic, topic_id).last_posted_at == first.created_at

    def test_falls_back_to_first_post(self, db, fab, clock):
        """A fully removed topic still names its opener."""
        a = fab.user()
        first = fab.post(user=a)
        second = fab.post(topic=first.topic)
        _remove(db, first, clock)
        _remove(db, second, clock)

        latest = reset_last_poster(db, first.topic)

        assert latest.post_number == 1
        assert first.topic.last_post_user_id == a.id


class TestRollbackParticipants:
    """Tests for rollback_participants()."""

    def test_reader_falls_back_to_last_live_post_read(self, db, fab, clock):
        reader = fab.user()
        first = fab.post()
        fab.post(topic=first.topic)
        third = fab.post(topic=first.topic)
        topic = first.topic
        for number in (1, 2, 3):
            fab.read(reader, topic, number)
        topic_id, reader_id = topic.id, reader.id
        _remove(db, third, clock)

        rollback_participants(db, third)

        row = _participant(db, topic_id, reader_id)
        assert row.last_read_post_number == 2
        assert row.highest_seen_post_number == 2

    def test_drops_timings_of_removed_post(self, db, fab, clock):
        reader = fab.user()
        first = fab.post()
        second = fab.post(topic=first.topic)
        fab.read(reader, first.topic, 2)
        topic_id = first.topic_id
        _remove(db, second, clock)

        rollback_participants(db, second)

        assert (
            db.query(PostTiming).filter(PostTiming.topic_id == topic_id, PostTiming.post_number == 2).count()
            == 0
        )

    def test_readers_behind_the_removed_post_are_untouched(self, db, fab, clock):
        early = fab.user()
        first = fab.post()
        fab.post(topic=first.topic)
        third = fab.post(topic=first.topic)
        fab.read(early, first.topic, 1)
        topic_id, early_id = first.topic_id, early.id
        _remove(db, third, clock)

        rollback_participants(db, third)

        row = _participant(db, topic_id, early_id)
        assert row.last_read_post_number == 1
        assert row.highest_seen_post_number == 1

    def test_positions_never_move_forward(self, db, fab, clock):
        """A reader whose last read sits before the removed post keeps it."""
        reader = fab.user()
        first = fab.post()
        second = fab.post(topic=first.topic)
        fab.post(topic=first.topic)
        fab.read(reader, first.topic, 1)
        row = fab.read(reader, first.topic, 3)
        row.last_read_post_number = 1
        row.highest_seen_post_number = 3
        db.commit()
        topic_id, reader_id = first.topic_id, reader.id
        _remove(db, second, clock)

        rollback_participants(db, second)

        row = _participant(db, topic_id, reader_id)
        assert row.last_read_post_number == 1
        assert row.highest_seen_post_number == 3

    def test_author_without_live_posts_is_no_longer_posted(self, db, fab, clock):
        author = fab.user()
        first = fab.post()
        mine = fab.post(user=author, topic=first.topic)
        topic_id, author_id = first.topic_id, author.id
        _remove(db, mine, clock)

        changed = rollback_participants(db, mine)

        assert changed >= 1
        assert _participant(db, topic_id, author_id).posted == False

    def test_author_with_other_live_posts_stays_posted(self, db, fab, clock):
        author = fab.user()
        first = fab.post(user=author)
        second = fab.post(user=author, topic=first.topic)
        topic_id, author_id = first.topic_id, author.id
        _remove(db, second, clock)

        rollback_participants(db, second)

        assert _participant(db, topic_id, author_id).posted == True


class TestRestoreParticipant:
    """Tests for restore_participant()."""

    def test_marks_author_posted_again(self, db, fab, clock):
        author = fab.user()
        first = fab.post()
        mine = fab.post(user=author, topic=first.topic)
        _remove(db, mine, clock)
        rollback_participants(db, mine)

        participant = restore_participant(db, mine)

        assert participant.posted == True
        assert participant.user_id == author.id
