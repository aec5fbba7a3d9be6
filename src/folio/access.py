"""Role-based permission checks."""

from folio.errors import UnauthorizedError
from folio.models import Role


def has_role(roles: dict[str, list[Role]], caller: str, role: Role) -> bool:
    """PUBLIC is held by everyone; other roles must be granted explicitly."""
    if role == Role.PUBLIC:
        return True
    return role in roles.get(caller, [])


def require_role(roles: dict[str, list[Role]], caller: str, *allowed: Role) -> Role:
    """Return the first of ``allowed`` held by ``caller``.

    Raises:
        UnauthorizedError: If the caller holds none of them
    """
    for role in allowed:
        if has_role(roles, caller, role):
            return role
    raise UnauthorizedError(
        f"{caller} lacks required role: one of {[r.value for r in allowed]}"
    )


def grant_role(roles: dict[str, list[Role]], account: str, role: Role) -> None:
    if role == Role.PUBLIC:
        return
    held = roles.setdefault(account, [])
    if role not in held:
        held.append(role)


def revoke_role(roles: dict[str, list[Role]], account: str, role: Role) -> None:
    held = roles.get(account, [])
    if role in held:
        held.remove(role)
