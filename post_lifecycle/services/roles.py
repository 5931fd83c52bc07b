"""
Role policy and actor capability resolution.

Who may take which destroy path is decided here, once per operation, and
handed to the orchestrator as an ActorCapability.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum

from sqlalchemy.orm import Session

from post_lifecycle.models import SYSTEM_USER_ID, Post, User, UserRole

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = frozenset({UserRole.MODERATOR.value, UserRole.ADMIN.value, UserRole.SYSTEM.value})


class ActorCapability(str, Enum):
    """How an actor relates to the post it is acting on."""
    AUTHOR = "author"  # owns the post, no moderation privilege
    MODERATOR = "moderator"  # moderator, admin or system actor
    OTHER = "other"  # neither, may not touch the post


class RolePolicy(ABC):
    """Decides whether a user may moderate content."""

    @abstractmethod
    def has_moderation_privilege(self, user: User) -> bool:
        pass


class DefaultRolePolicy(RolePolicy):
    """Moderators, admins and the system user are privileged."""

    def has_moderation_privilege(self, user: User) -> bool:
        return user.role in PRIVILEGED_ROLES


def resolve_capability(role_policy: RolePolicy, actor: User, post: Post) -> ActorCapability:
    """Classify actor against post. Privilege wins over authorship."""
    if role_policy.has_moderation_privilege(actor):
        return ActorCapability.MODERATOR
    if actor.id == post.user_id:
        return ActorCapability.AUTHOR
    return ActorCapability.OTHER


def get_system_user(db: Session) -> User | None:
    return db.get(User, SYSTEM_USER_ID)


def ensure_system_user(db: Session) -> User:
    """
    Ensure the system actor exists.

    Sweeps attribute their removals to this user. Created on first use.
    """
    user = get_system_user(db)
    if user:
        return user

    user = User(id=SYSTEM_USER_ID, username="system", role=UserRole.SYSTEM.value)
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("Created system user", extra={"event": "system_user_created", "actor_id": user.id})
    return user
