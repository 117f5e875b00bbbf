"""
workflow_services.static_directory -- Dictionary-backed UserDirectory.

Satisfies the ``UserDirectory`` protocol from
``workflow_kernel.domain.collaborators``.  Suitable for tests, fixtures
and small deployments; replace with an LDAP- or database-backed
implementation in a host application.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping


def _freeze(groups: Mapping[str, Iterable[str]] | None) -> dict[str, frozenset[str]]:
    return {key: frozenset(members) for key, members in (groups or {}).items()}


class StaticUserDirectory:
    """Default UserDirectory backed by plain dicts.

    Args:
        users: user id -> display name.
        roles: role id -> member user ids.
        business_roles: business role id -> member user ids.
        permissions: permission code -> holder user ids.
    """

    def __init__(
        self,
        users: Mapping[str, str] | None = None,
        roles: Mapping[str, Iterable[str]] | None = None,
        business_roles: Mapping[str, Iterable[str]] | None = None,
        permissions: Mapping[str, Iterable[str]] | None = None,
    ) -> None:
        self._users: dict[str, str] = dict(users or {})
        self._roles = _freeze(roles)
        self._business_roles = _freeze(business_roles)
        self._permissions = _freeze(permissions)

    def is_known_user(self, user_id: str) -> bool:
        return user_id in self._users

    def users_with_role(self, role_id: str) -> frozenset[str]:
        return self._roles.get(role_id, frozenset())

    def users_with_business_role(self, business_role_id: str) -> frozenset[str]:
        return self._business_roles.get(business_role_id, frozenset())

    def users_with_permission(self, permission_code: str) -> frozenset[str]:
        return self._permissions.get(permission_code, frozenset())

    def display_name(self, user_id: str) -> str | None:
        return self._users.get(user_id)

    def capabilities_of(self, user_id: str) -> frozenset[str]:
        """Permission codes held by ``user_id``."""
        return frozenset(
            code for code, holders in self._permissions.items() if user_id in holders
        )
