from dataclasses import dataclass, field

from fastapi import Depends, Header, Request

from vibereader.config.settings import AuthMode, Settings, SettingsDep
from vibereader.v1.core.exceptions import UnauthorizedError


@dataclass
class Principal:
    """Represents the current authenticated user."""

    user_id: str
    roles: list[str] = field(default_factory=list)


async def get_principal(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    settings: Settings = SettingsDep,
) -> Principal:
    """
    Dependency injection function to get the current principal.

    Behavior based on AUTH_MODE:
    - none: Returns the dev user with admin role
    - dev: Trusts the X-User-ID header set by an authenticating proxy
    """
    if settings.auth_mode == AuthMode.NONE:
        return Principal(user_id=settings.dev_user_id, roles=["admin"])
    elif settings.auth_mode == AuthMode.DEV:
        if not x_user_id:
            raise UnauthorizedError(
                "X-User-ID header is required in dev auth mode",
                details={"path": request.url.path},
            )

        return Principal(user_id=x_user_id, roles=["admin"])
    else:
        raise ValueError(f"Unknown auth mode: {settings.auth_mode}")


# Convenience type alias for dependency injection
PrincipalDep = Depends(get_principal)
