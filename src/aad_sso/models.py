"""Typed records passed between the token, resolver, and role mapping steps."""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Set


@dataclass(frozen=True)
class TokenSet:
    """Tokens returned by the Azure AD token endpoint."""

    id_token: str
    access_token: str
    expires_at: Optional[int] = None


@dataclass
class RawUserInfo:
    """
    Microsoft Graph profile of the signed-in user.

    name and email are derived from the Graph fields; groups holds the raw
    /me/memberOf payload when group mapping is enabled (None otherwise, {} when
    the fetch failed). raw keeps the untouched profile response.
    """

    id: Optional[str] = None
    display_name: Optional[str] = None
    given_name: Optional[str] = None
    surname: Optional[str] = None
    job_title: Optional[str] = None
    mail: Optional[str] = None
    user_principal_name: Optional[str] = None
    office_location: Optional[str] = None
    on_premises_extension_attributes: Optional[dict] = None
    name: Optional[str] = None
    email: Optional[str] = None
    groups: Optional[dict] = None
    raw: dict = field(default_factory=dict)


@dataclass
class GroupSources:
    """Group data collected for one sign-in: ID token claims and Graph memberOf objects."""

    claims: List[str] = field(default_factory=list)
    member_of: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class Role:
    """A local application role. is_admin marks elevated roles."""

    id: str
    label: str
    is_admin: bool = False


@dataclass(frozen=True)
class MappingRule:
    """One parsed role|group1;group2 line, with the role key resolved to a role id."""

    role_id: str
    group_identifiers: FrozenSet[str]


@dataclass
class RoleDelta:
    """Result of reconciling a user's roles against their AD groups."""

    roles_to_add: Set[str] = field(default_factory=set)
    roles_to_remove: Set[str] = field(default_factory=set)
    new_mapped_roles: Set[str] = field(default_factory=set)
