"""
Group-to-role mapping for the application.

Mapping rules are plain text, one rule per line:

    role|group1;group2

The role key is a local role id or label; groups are Azure AD object ids or
display names. A user is granted a role when any of its groups is in the
user's group set. Everything here is pure: the caller loads the inputs from
its stores and applies the resulting RoleDelta.
"""

import logging
from typing import Iterable, List, Optional, Set

from .config import MAPPING_METHOD_AUTOMATIC
from .errors import UnresolvableMappingRule
from .models import GroupSources, MappingRule, Role, RoleDelta

logger = logging.getLogger(__name__)


def build_group_set(sources: Optional[GroupSources]) -> Set[str]:
    """
    Return the user's groups keyed by both object id and display name.

    Flat claim values are taken as-is; each memberOf object contributes its
    displayName and its id.
    """
    groups: Set[str] = set()
    if sources is None:
        return groups
    groups.update(g for g in sources.claims if g)
    for entry in sources.member_of:
        for key in ("displayName", "id"):
            value = entry.get(key)
            if value:
                groups.add(value)
    return groups


def _resolve_role(role_key: str, all_roles: Iterable[Role]) -> str:
    """Match role_key against role ids first, then labels (case-sensitive)."""
    roles = list(all_roles)
    for role in roles:
        if role.id == role_key:
            return role.id
    for role in roles:
        if role.label == role_key:
            return role.id
    raise UnresolvableMappingRule(role_key, f"Unknown role {role_key!r}")


def _parse_line(line: str, all_roles: Iterable[Role]) -> MappingRule:
    role_key, sep, group_text = line.partition("|")
    role_key = role_key.strip()
    if not role_key:
        raise UnresolvableMappingRule(line, "Missing role")
    role_id = _resolve_role(role_key, all_roles)
    group_ids = frozenset(g.strip() for g in group_text.split(";") if g.strip()) if sep else frozenset()
    if not group_ids:
        raise UnresolvableMappingRule(line, "No groups")
    return MappingRule(role_id=role_id, group_identifiers=group_ids)


def parse_mapping_rules(text: str, all_roles: Iterable[Role]) -> List[MappingRule]:
    """Parse rule text; lines that cannot be applied are logged and skipped."""
    roles = list(all_roles)
    rules = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        try:
            rules.append(_parse_line(line, roles))
        except UnresolvableMappingRule as e:
            logger.warning(f"Skipping AD group mapping rule {line!r}: {e.reason}")
    return rules


def validate_mapping_rules(text: str, all_roles: Iterable[Role]) -> List[str]:
    """Return a message for every rule line that parse_mapping_rules would skip."""
    roles = list(all_roles)
    problems = []
    for number, raw_line in enumerate((text or "").splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue
        try:
            _parse_line(line, roles)
        except UnresolvableMappingRule as e:
            problems.append(f"Line {number}: {e.reason} ({line!r})")
    return problems


def automatic_rules(all_roles: Iterable[Role]) -> List[MappingRule]:
    """One rule per role: a group named like the role's id or label grants it."""
    return [MappingRule(role_id=r.id, group_identifiers=frozenset({r.id, r.label})) for r in all_roles]


def map_roles(group_set: Set[str], rules: Iterable[MappingRule]) -> Set[str]:
    """Role ids whose rule shares at least one group with group_set."""
    return {rule.role_id for rule in rules if rule.group_identifiers & group_set}


def reconcile_roles(
    raw_groups: Optional[GroupSources],
    mapping_rule_text: str,
    current_user_roles: Iterable[str],
    previous_mapped_roles: Iterable[str],
    all_known_roles: Iterable[Role],
    method: str = "manual",
) -> RoleDelta:
    """
    Compute role changes for a user from their AD groups.

    Only roles this engine mapped last time (previous_mapped_roles) can be
    removed; roles granted any other way are left alone. Persist
    new_mapped_roles as previous_mapped_roles for the next call.
    """
    roles = list(all_known_roles)
    if method == MAPPING_METHOD_AUTOMATIC:
        rules = automatic_rules(roles)
    else:
        rules = parse_mapping_rules(mapping_rule_text, roles)

    mapped = map_roles(build_group_set(raw_groups), rules)
    return RoleDelta(
        roles_to_add=mapped - set(current_user_roles),
        roles_to_remove=set(previous_mapped_roles) - mapped,
        new_mapped_roles=mapped,
    )
