"""Quiz access checks supplied by the authorization layer."""

from __future__ import annotations

from typing import Protocol

from proctor_app.core.errors import AccessDeniedError
from proctor_app.core.models import Quiz, Requester


class AccessPolicy(Protocol):
    def is_activated(self, user_id: str, quiz: Quiz) -> bool: ...


class ActivationListPolicy:
    """Treats the quiz's own ``activated_users`` list as the source of truth."""

    def is_activated(self, user_id: str, quiz: Quiz) -> bool:
        return user_id in quiz.activated_users


def ensure_quiz_access(quiz: Quiz, requester: Requester, policy: AccessPolicy) -> None:
    if requester.is_admin:
        return
    if not quiz.is_active or not policy.is_activated(requester.user_id, quiz):
        raise AccessDeniedError("You do not have access to this quiz", code="QUIZ_ACCESS_DENIED")


def ensure_admin(requester: Requester) -> None:
    if not requester.is_admin:
        raise AccessDeniedError("This action requires administrator rights", code="ADMIN_ONLY")
