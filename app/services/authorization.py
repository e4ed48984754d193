from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from app.db.schema import Project, User, UserRole


class Permission(str, Enum):
    CREATE_PROJECT = "create_project"
    CREATE_DPP = "create_dpp"
    UPDATE_INSTALLATION = "update_installation"
    ENRICH_DPP = "enrich_dpp"
    VIEW_ALL = "view_all"
    MANAGE_USERS = "manage_users"


# Every UserRole must have an entry; tests assert the table is exhaustive.
ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.OWNER: frozenset({
        Permission.CREATE_PROJECT,
        Permission.VIEW_ALL,
        Permission.MANAGE_USERS,
    }),
    UserRole.CONTRACTOR: frozenset({Permission.CREATE_DPP}),
    UserRole.INSTALLER: frozenset({Permission.UPDATE_INSTALLATION}),
    UserRole.SUPPLIER: frozenset({Permission.ENRICH_DPP}),
    UserRole.REGULATOR: frozenset({Permission.VIEW_ALL}),
}

# Roles that have a roster on a project. The regulator never does.
ROSTER_FIELDS: Dict[UserRole, str] = {
    UserRole.CONTRACTOR: "authorized_contractors",
    UserRole.INSTALLER: "authorized_installers",
    UserRole.SUPPLIER: "authorized_suppliers",
}


def has_permission(role: UserRole, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS[role]


def _as_role(role) -> Optional[UserRole]:
    try:
        return UserRole(role)
    except ValueError:
        return None


def roster(project: Project, role) -> List[dict]:
    """The authorization list for `role`, or an empty list for roles without one."""
    field = ROSTER_FIELDS.get(_as_role(role))
    if field is None:
        return []
    return list(getattr(project, field) or [])


def roster_identities(project: Project, role) -> List[str]:
    return [entry["wallet_address"] for entry in roster(project, role)]


def is_owner(project: Project, identity: str) -> bool:
    return project.owner_wallet_address == identity.strip().lower()


def is_authorized(project: Project, identity: str, role) -> bool:
    """
    Write authorization for `identity` acting as `role` on `project`.

    The owner passes for every role. Otherwise the identity must appear on
    the roster matching the role; roles without a roster (owner, regulator,
    anything unknown) are refused.
    """
    identity = identity.strip().lower()
    if is_owner(project, identity):
        return True
    return identity in roster_identities(project, role)


def can_view_project(project: Project, user: User) -> bool:
    """
    Read access: the owner, any regulator (standing read-only override),
    or an identity on the roster matching its own role.
    """
    if user.role == UserRole.REGULATOR:
        return True
    return is_authorized(project, user.wallet_address, user.role)


def is_on_any_roster(project: Project, identity: str) -> bool:
    identity = identity.strip().lower()
    return is_owner(project, identity) or any(
        identity in roster_identities(project, role) for role in ROSTER_FIELDS
    )
