"""Organisational tree over the read-only user directory.

The directory is built once from raw records, validated, and then shared by
reference with every resolver and report. The tree is fixed at four tiers:
base facilities report to a taluka, talukas to a district, districts to the
state. ``reportsTo`` may be blank for a detached unit; it then acts as the
root of its own chain.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Set

from health_procure.domain.contracts import Role, User
from health_procure.errors import ConfigurationError, NotFoundError


def _configuration_error(details: str) -> ConfigurationError:
    return ConfigurationError(code="directory_invalid", details=details)


class UserDirectory:
    def __init__(self, users: Iterable[User]) -> None:
        self._users: Dict[str, User] = {}
        for user in users:
            if user.id in self._users:
                raise _configuration_error(f"duplicate user id: {user.id}")
            self._users[user.id] = user
        self._validate()
        self._children: Dict[str, List[User]] = {}
        for user in self._users.values():
            if user.reports_to is not None:
                self._children.setdefault(user.reports_to, []).append(user)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "UserDirectory":
        users: List[User] = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise _configuration_error(f"directory entry {index} is not an object")
            user_id = str(record.get("id") or "").strip()
            if not user_id:
                raise _configuration_error(f"directory entry {index} has no id")
            role = Role.parse(record.get("role"))
            if role is None:
                raise _configuration_error(f"user {user_id} has unknown role {record.get('role')!r}")
            reports_to = str(record.get("reportsTo") or record.get("reports_to") or "").strip() or None
            users.append(
                User(
                    id=user_id,
                    name=str(record.get("name") or user_id).strip(),
                    role=role,
                    reports_to=reports_to,
                )
            )
        return cls(users)

    def _validate(self) -> None:
        for user in self._users.values():
            if user.reports_to is None:
                continue
            manager = self._users.get(user.reports_to)
            if manager is None:
                raise _configuration_error(f"user {user.id} reports to unknown user {user.reports_to}")

        for user in self._users.values():
            seen: Set[str] = {user.id}
            current = user
            while current.reports_to is not None:
                if current.reports_to in seen:
                    raise _configuration_error(f"reporting cycle through user {user.id}")
                seen.add(current.reports_to)
                current = self._users[current.reports_to]

        for user in self._users.values():
            if user.role is Role.STATE and user.reports_to is not None:
                raise _configuration_error(f"state user {user.id} cannot report to anyone")
            if user.reports_to is None:
                continue
            manager = self._users[user.reports_to]
            if manager.role.rank != user.role.rank + 1:
                raise _configuration_error(
                    f"{user.role.value} user {user.id} cannot report to {manager.role.value} user {manager.id}"
                )

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users

    def get(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        return self._users.get(str(user_id))

    def require(self, user_id: str | None) -> User:
        user = self.get(user_id)
        if user is None:
            raise NotFoundError(code="user_not_found", details=f"user {user_id} not in directory")
        return user

    def users(self) -> List[User]:
        return list(self._users.values())

    def users_with_role(self, role: Role) -> List[User]:
        return [user for user in self._users.values() if user.role is role]

    def reports_of(self, manager_id: str) -> List[User]:
        return list(self._children.get(manager_id, []))


class HierarchyResolver:
    def __init__(self, directory: UserDirectory) -> None:
        self.directory = directory

    def direct_subordinates(self, manager_id: str) -> List[User]:
        return self.directory.reports_of(manager_id)

    def subordinate_ids(self, manager_id: str) -> Set[str]:
        found: Set[str] = set()
        visited: Set[str] = {manager_id}
        worklist: List[str] = [manager_id]
        while worklist:
            current_id = worklist.pop()
            for subordinate in self.direct_subordinates(current_id):
                if subordinate.id in visited:
                    raise _configuration_error(f"reporting cycle at user {subordinate.id}")
                visited.add(subordinate.id)
                found.add(subordinate.id)
                worklist.append(subordinate.id)
        return found

    def subtree_ids(self, root_id: str, include_root: bool = True) -> Set[str]:
        ids = self.subordinate_ids(root_id)
        if include_root:
            ids.add(root_id)
        return ids

    def hierarchy_chain(self, user_id: str) -> List[User]:
        chain: List[User] = []
        seen: Set[str] = set()
        current = self.directory.get(user_id)
        while current is not None:
            if current.id in seen:
                raise _configuration_error(f"reporting cycle at user {current.id}")
            seen.add(current.id)
            chain.append(current)
            current = self.directory.get(current.reports_to)
        chain.reverse()
        return chain

    def nearest_ancestor(self, user_id: str, role: Role) -> User | None:
        for user in reversed(self.hierarchy_chain(user_id)):
            if user.role is role:
                return user
        return None

    def base_facilities_under(self, unit_id: str) -> Set[str]:
        facilities: Set[str] = set()
        for user_id in self.subtree_ids(unit_id):
            user = self.directory.get(user_id)
            if user is not None and user.role is Role.BASE:
                facilities.add(user_id)
        return facilities
