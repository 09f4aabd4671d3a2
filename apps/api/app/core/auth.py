from dataclasses import dataclass, field

from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings


@dataclass
class StaffUser:
    """Identity of the staff member driving a request, used for audit attribution only."""

    sub: str
    email: str | None = None
    roles: list[str] = field(default_factory=list)

    @property
    def actor(self) -> str:
        return self.email or self.sub


def _anonymous() -> StaffUser:
    return StaffUser(sub="anonymous", roles=["guest"])


async def get_current_user(request: Request) -> StaffUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.removeprefix("Bearer ") if auth_header.startswith("Bearer ") else ""
    if not token:
        return _anonymous()

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return _anonymous()

    roles = payload.get("roles", [])
    email = payload.get("email")
    return StaffUser(
        sub=str(payload.get("sub", "anonymous")),
        email=str(email) if email else None,
        roles=[str(role) for role in roles] if isinstance(roles, list) else [],
    )
