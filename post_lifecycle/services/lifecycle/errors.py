"""Errors raised by lifecycle operations. None of them leave partial mutations behind."""


class LifecycleError(Exception):
    """Base class for lifecycle errors."""

    pass


class PostNotFoundError(LifecycleError):
    """Raised when the target post does not exist."""

    def __init__(self, post_id):
        self.post_id = post_id
        super().__init__(f"Post {post_id} not found")


class TopicNotFoundError(LifecycleError):
    """Raised when the post's topic does not exist."""

    def __init__(self, topic_id):
        self.topic_id = topic_id
        super().__init__(f"Topic {topic_id} not found")


class ForbiddenError(LifecycleError):
    """Raised when the actor may not perform the requested transition."""

    pass


class InvalidTransitionError(LifecycleError):
    """Raised when the post's state admits no such transition."""

    pass
