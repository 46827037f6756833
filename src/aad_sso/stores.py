"""
In-memory host collaborators.

Used by the demo app in main.py and by the tests. A real host backs these with
its own database; the method names follow the protocols in aad_sso.protocol.
"""

import itertools
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .models import Role


class InMemoryRoleStore:
    def __init__(self, roles: Iterable[Role]):
        self.roles: Dict[str, Role] = {role.id: role for role in roles}
        self.assignments: Dict[str, Set[str]] = {}

    def list_all_roles(self) -> List[Role]:
        return list(self.roles.values())

    def get_user_roles(self, user_id: str) -> Set[str]:
        return set(self.assignments.get(user_id, set()))

    def add_role_to_user(self, user_id: str, role_id: str) -> None:
        if role_id not in self.roles:
            raise KeyError(f"Unknown role: {role_id}")
        self.assignments.setdefault(user_id, set()).add(role_id)

    def remove_role_from_user(self, user_id: str, role_id: str) -> None:
        self.assignments.get(user_id, set()).discard(role_id)


class InMemoryUserStateStore:
    def __init__(self):
        self.data: Dict[Tuple[str, str, str], Any] = {}

    def get(self, namespace: str, user_id: str, key: str) -> Optional[Any]:
        return self.data.get((namespace, user_id, key))

    def set(self, namespace: str, user_id: str, key: str, value: Any) -> None:
        self.data[(namespace, user_id, key)] = value


class InMemoryUserStore:
    """Local accounts keyed by username. New accounts are blocked when registration needs approval."""

    def __init__(self, new_accounts_active: bool = True):
        self.new_accounts_active = new_accounts_active
        self.users: Dict[str, dict] = {}
        self._ids = itertools.count(1)

    def get(self, user_id: str) -> Optional[dict]:
        return self.users.get(user_id)

    def find_or_create(self, name: str, email: Optional[str]) -> str:
        for user_id, user in self.users.items():
            if user["name"] == name:
                if email:
                    user["email"] = email
                return user_id
        user_id = str(next(self._ids))
        self.users[user_id] = {"name": name, "email": email, "active": self.new_accounts_active}
        return user_id

    def is_active(self, user_id: str) -> bool:
        return bool(self.users.get(user_id, {}).get("active"))

    def activate(self, user_id: str) -> None:
        self.users[user_id]["active"] = True


class InMemoryAuthMap:
    """Links between local accounts and identity provider subjects."""

    def __init__(self):
        self.links: Dict[str, Dict[str, str]] = {}

    def link(self, user_id: str, provider_key: str, subject: str) -> None:
        self.links.setdefault(user_id, {})[provider_key] = subject

    def get_connected_accounts(self, user_id: Optional[str]) -> Dict[str, str]:
        if user_id is None:
            return {}
        return dict(self.links.get(user_id, {}))
