"""
External collaborator protocols (``workflow_kernel.domain.collaborators``).

Responsibility
--------------
Pluggable interfaces for the systems the engine consumes but does not
own: the user directory (role / business-role / permission lookups) and
the notification dispatcher (delivery).

Architecture position
---------------------
**Kernel domain layer** -- protocols only.  Implementations live in
``workflow_services`` (static, in-memory) or in the host application.
"""

from __future__ import annotations

from typing import Protocol

from workflow_kernel.domain.execution import NotificationRequest


class UserDirectory(Protocol):
    """Pluggable interface for user lookups."""

    def is_known_user(self, user_id: str) -> bool:
        """Return True if ``user_id`` names an existing user."""
        ...

    def users_with_role(self, role_id: str) -> frozenset[str]:
        """Return ids of all users holding a global role."""
        ...

    def users_with_business_role(self, business_role_id: str) -> frozenset[str]:
        """Return ids of all users holding a business role."""
        ...

    def users_with_permission(self, permission_code: str) -> frozenset[str]:
        """Return ids of all users holding a capability."""
        ...

    def display_name(self, user_id: str) -> str | None:
        """Return the user's display name, or None if unknown."""
        ...


class NotificationDispatcher(Protocol):
    """Delivers one rendered notification.  May raise on failure."""

    def dispatch(self, request: NotificationRequest) -> None:
        ...
