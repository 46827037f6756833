"""
Applies group-derived role changes to a local account.

RoleSynchronizer loads the inputs for reconcile_roles from the host stores,
applies the resulting delta one role at a time, and stores the mapped roles
for the next sign-in. Every change is written to the aad_sso.audit logger.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Set

from .authz_config import reconcile_roles
from .config import ClientConfiguration
from .errors import RoleApplicationFailed
from .models import GroupSources, RoleDelta
from .protocol import AccountStore, RoleStore, UserStateStore

logger = logging.getLogger(__name__)
audit = logging.getLogger("aad_sso.audit")

STATE_NAMESPACE = "aad_sso"
MAPPED_ROLES_KEY = "mapped_roles"


@dataclass
class SyncResult:
    delta: RoleDelta = field(default_factory=RoleDelta)
    applied_add: Set[str] = field(default_factory=set)
    applied_remove: Set[str] = field(default_factory=set)
    notices: List[str] = field(default_factory=list)
    failures: List[RoleApplicationFailed] = field(default_factory=list)


class RoleSynchronizer:
    """Reconciles and applies AD group based roles using the host's role, state and account stores."""

    def __init__(self, role_store: RoleStore, state_store: UserStateStore, account_store: AccountStore):
        self.role_store = role_store
        self.state_store = state_store
        self.account_store = account_store

    def previous_mapped_roles(self, user_id: str) -> Set[str]:
        stored = self.state_store.get(STATE_NAMESPACE, user_id, MAPPED_ROLES_KEY)
        return set(stored or [])

    def sync(self, user_id: str, sources: GroupSources, config: ClientConfiguration) -> SyncResult:
        """Reconcile and apply roles for user_id. Does nothing when group mapping is disabled."""
        result = SyncResult()
        if not config.map_ad_groups_to_roles:
            return result

        all_roles = self.role_store.list_all_roles()
        labels = {role.id: role.label for role in all_roles}
        admin_roles = {role.id for role in all_roles if role.is_admin}

        result.delta = reconcile_roles(
            sources,
            config.group_mapping_rules,
            self.role_store.get_user_roles(user_id),
            self.previous_mapped_roles(user_id),
            all_roles,
            method=config.group_mapping_method,
        )

        for role_id in sorted(result.delta.roles_to_remove):
            if self._apply(result, user_id, role_id, "remove", self.role_store.remove_role_from_user):
                result.applied_remove.add(role_id)
                audit.info(f"Removed role {labels.get(role_id, role_id)} from user {user_id}")

        for role_id in sorted(result.delta.roles_to_add):
            if self._apply(result, user_id, role_id, "add", self.role_store.add_role_to_user):
                result.applied_add.add(role_id)
                audit.info(f"Added role {labels.get(role_id, role_id)} to user {user_id}")

        if result.applied_add & admin_roles:
            self._unblock(result, user_id)

        # Roles whose removal failed stay mapped so the next sign-in retries them
        failed_removals = {f.role_id for f in result.failures if f.operation == "remove"}
        # Last writer wins; a lost update is corrected on the next sign-in
        mapped = result.delta.new_mapped_roles | failed_removals
        self.state_store.set(STATE_NAMESPACE, user_id, MAPPED_ROLES_KEY, sorted(mapped))
        return result

    def _apply(self, result: SyncResult, user_id: str, role_id: str, operation: str, fn) -> bool:
        try:
            fn(user_id, role_id)
        except Exception as e:
            failure = RoleApplicationFailed(user_id, role_id, operation, str(e))
            logger.error(str(failure))
            result.failures.append(failure)
            return False
        return True

    def _unblock(self, result: SyncResult, user_id: str) -> None:
        try:
            if self.account_store.is_active(user_id):
                return
            self.account_store.activate(user_id)
        except Exception as e:
            logger.error(f"Could not activate administrator account {user_id}: {e}")
            return
        result.notices.append(
            "Your account has been activated because you were granted an administrative role."
        )
        audit.info(f"Activated account of user {user_id} after granting an administrative role")
