"""
Role resolution for projects.

A project's people fall into three disjoint groups: the single owner,
the admins and the plain members. ProjectRoster is an immutable snapshot
of those groups; every check here is a pure function of a roster and a
user id, so it is safe to call from any number of requests at once.

Ids are compared as strings, so a User, a pk int and a pk string all
resolve to the same person.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from core.exceptions import ValidationFailed


ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"

# Resolution order; only matters for reporting since the sets are disjoint
ROLE_PRECEDENCE = (ROLE_OWNER, ROLE_ADMIN, ROLE_MEMBER)

MANAGEMENT_ROLES = (ROLE_OWNER, ROLE_ADMIN)


def normalize_id(value) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "pk", value))


@dataclass(frozen=True)
class ProjectRoster:
    owner_id: str
    admin_ids: FrozenSet[str] = field(default_factory=frozenset)
    member_ids: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # Normalize whatever the caller handed in
        object.__setattr__(self, "owner_id", normalize_id(self.owner_id))
        object.__setattr__(self, "admin_ids", frozenset(normalize_id(a) for a in self.admin_ids))
        object.__setattr__(self, "member_ids", frozenset(normalize_id(m) for m in self.member_ids))

        if self.owner_id is None:
            raise ValidationFailed("A project must have exactly one owner.")
        if self.owner_id in self.admin_ids or self.owner_id in self.member_ids:
            raise ValidationFailed("The owner cannot also be an admin or member.")
        if self.admin_ids & self.member_ids:
            raise ValidationFailed("A user cannot be both admin and member.")

    @classmethod
    def from_project(cls, project) -> "ProjectRoster":
        """Build from a Project; uses prefetched memberships when present."""
        admins, members = set(), set()
        if project.pk is not None:
            for membership in project.memberships.all():
                if membership.role == ROLE_ADMIN:
                    admins.add(membership.user_id)
                else:
                    members.add(membership.user_id)
        return cls(owner_id=project.owner_id, admin_ids=admins, member_ids=members)

    def role_of(self, user_id) -> Optional[str]:
        uid = normalize_id(user_id)
        if uid is None:
            return None
        if uid == self.owner_id:
            return ROLE_OWNER
        if uid in self.admin_ids:
            return ROLE_ADMIN
        if uid in self.member_ids:
            return ROLE_MEMBER
        return None

    def has_access(self, user_id) -> bool:
        return self.role_of(user_id) is not None

    def can_manage(self, user_id) -> bool:
        return self.role_of(user_id) in MANAGEMENT_ROLES

    def all_ids(self) -> FrozenSet[str]:
        return frozenset({self.owner_id}) | self.admin_ids | self.member_ids

    # ------------------------------------------------------------------
    # Mutators: each returns a new roster and keeps the sets disjoint
    # ------------------------------------------------------------------

    def with_admin(self, user_id) -> "ProjectRoster":
        uid = normalize_id(user_id)
        if uid == self.owner_id:
            raise ValidationFailed("The owner cannot be added as an admin.")
        return ProjectRoster(
            owner_id=self.owner_id,
            admin_ids=self.admin_ids | {uid},
            member_ids=self.member_ids - {uid},
        )

    def with_member(self, user_id) -> "ProjectRoster":
        uid = normalize_id(user_id)
        if uid == self.owner_id:
            raise ValidationFailed("The owner cannot be added as a member.")
        return ProjectRoster(
            owner_id=self.owner_id,
            admin_ids=self.admin_ids - {uid},
            member_ids=self.member_ids | {uid},
        )

    def without(self, user_id) -> "ProjectRoster":
        uid = normalize_id(user_id)
        if uid == self.owner_id:
            raise ValidationFailed("The owner cannot be removed from the project.")
        return ProjectRoster(
            owner_id=self.owner_id,
            admin_ids=self.admin_ids - {uid},
            member_ids=self.member_ids - {uid},
        )


def _as_roster(project_or_roster) -> ProjectRoster:
    if isinstance(project_or_roster, ProjectRoster):
        return project_or_roster
    return ProjectRoster.from_project(project_or_roster)


def role_of(project_or_roster, user_id) -> Optional[str]:
    """owner / admin / member, or None when the user has no role."""
    return _as_roster(project_or_roster).role_of(user_id)


def has_access(project_or_roster, user_id) -> bool:
    return _as_roster(project_or_roster).has_access(user_id)


def can_manage(project_or_roster, user_id) -> bool:
    return _as_roster(project_or_roster).can_manage(user_id)
