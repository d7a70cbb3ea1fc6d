# galerago/access.py
from pydantic import BaseModel, ConfigDict

from galerago import models
from galerago.exceptions import AuthorizationError

PROVIDER_ROLES = (models.ROLE_ACTIVITY_PROVIDER, models.ROLE_ADMIN)


class Caller(BaseModel):
    """Identity of whoever is invoking a core operation."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: str
    suspended: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == models.ROLE_ADMIN

    @classmethod
    def from_user(cls, user: models.User) -> "Caller":
        return cls(user_id=user.id, role=user.role, suspended=bool(user.is_suspended))


def require_active(caller: Caller) -> Caller:
    if caller.suspended:
        raise AuthorizationError("Your account has been suspended. Please contact an administrator.")
    return caller


def require_role(caller: Caller, *roles: str) -> Caller:
    require_active(caller)
    if caller.role not in roles:
        raise AuthorizationError(f"Unauthorized: {' or '.join(roles)} access required")
    return caller


def require_admin(caller: Caller) -> Caller:
    return require_role(caller, models.ROLE_ADMIN)


def can_manage_package(caller: Caller, package: models.Package) -> bool:
    """Admins manage every package, providers only the ones they created."""
    if caller.is_admin:
        return True
    return caller.role == models.ROLE_ACTIVITY_PROVIDER and package is not None and package.created_by == caller.user_id
