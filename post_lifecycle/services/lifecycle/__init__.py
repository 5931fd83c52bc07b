"""
Post lifecycle services.

A post moves through:
- visible / hidden: live, possibly hidden by community flags
- user_deleted: withdrawn by its author, content replaced by a stub
- moderator_deleted: removed by staff or by a sweep, dependents cleaned up
- purged: content erased for good, row kept as a tombstone

Services:
- destroyer: PostDestroyer, the orchestrator, and the batch sweeps
- retention_policy: which stubs and hidden posts are due
- side_effects: ordered cleanup handlers run on removal
- topic_positions: last poster and read position recalculation
- aggregates: counters on topics, users and posts
"""

from post_lifecycle.services.lifecycle.destroyer import (
    PostDestroyer,
    SweepResult,
    Transition,
    TransitionResult,
)
from post_lifecycle.services.lifecycle.errors import (
    ForbiddenError,
    InvalidTransitionError,
    LifecycleError,
    PostNotFoundError,
    TopicNotFoundError,
)
from post_lifecycle.services.lifecycle.retention_policy import (
    find_hidden_post_candidates,
    find_stub_candidates,
    is_hidden_post_eligible,
    is_stub_eligible,
)

__all__ = [
    # Orchestrator
    "PostDestroyer",
    "Transition",
    "TransitionResult",
    "SweepResult",
    # Errors
    "LifecycleError",
    "PostNotFoundError",
    "TopicNotFoundError",
    "ForbiddenError",
    "InvalidTransitionError",
    # Policy
    "is_stub_eligible",
    "is_hidden_post_eligible",
    "find_stub_candidates",
    "find_hidden_post_candidates",
]
