# post_lifecycle/services/__init__.py
"""
Business logic services.
"""

from post_lifecycle.services.clock import Clock, FrozenClock, SystemClock
from post_lifecycle.services.jobs import DatabaseJobQueue, InMemoryJobQueue, JobQueue
from post_lifecycle.services.lifecycle import PostDestroyer, SweepResult, Transition, TransitionResult
from post_lifecycle.services.roles import ActorCapability, DefaultRolePolicy, RolePolicy

__all__ = [
    "Clock",
    "SystemClock",
    "FrozenClock",
    "JobQueue",
    "DatabaseJobQueue",
    "InMemoryJobQueue",
    "RolePolicy",
    "DefaultRolePolicy",
    "ActorCapability",
    "PostDestroyer",
    "SweepResult",
    "Transition",
    "TransitionResult",
]
