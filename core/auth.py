from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from core.data import cell_text
from core.errors import AuthenticationError, AuthorizationError, MalformedTableError


class Permission(str, Enum):
    SUPERADMIN = "SUPERADMIN"
    POINTAGE = "POINTAGE"
    LABOURAL = "LABOURAL"


ADMIN_PATHS = {
    Permission.SUPERADMIN: "/admin/superadmin",
    Permission.POINTAGE: "/admin/pointage",
    Permission.LABOURAL: "/admin/laboural",
}

EMAIL_HEADER = "EMAIL"
PASSWORD_HEADER = "PASS"
PERMISSION_HEADER = "ACCES"


@dataclass(frozen=True)
class AuthSession:
    email: str
    permission: Permission
    is_authenticated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["permission"] = self.permission.value
        return out

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AuthSession":
        return cls(
            email=str(raw["email"]),
            permission=Permission(str(raw["permission"])),
            is_authenticated=bool(raw.get("is_authenticated", True)),
        )


def _column(headers: List[Any], name: str) -> int:
    try:
        return [cell_text(h) for h in headers].index(name)
    except ValueError:
        raise MalformedTableError("Invalid data structure from server") from None


def authenticate(table: Any, email: str, password: Any) -> AuthSession:
    """Look the credentials up in the admin sheet.

    The sheet's header row names the ``EMAIL``, ``PASS`` and ``ACCES``
    columns. Emails compare case-insensitively, passwords exactly.
    """
    if not isinstance(table, list) or not table or not isinstance(table[0], list):
        raise MalformedTableError("Unable to fetch authentication data")

    headers = table[0]
    email_idx = _column(headers, EMAIL_HEADER)
    password_idx = _column(headers, PASSWORD_HEADER)
    permission_idx = _column(headers, PERMISSION_HEADER)
    width = max(email_idx, password_idx, permission_idx)

    wanted_email = (email or "").strip().lower()
    wanted_password = cell_text(password) if not isinstance(password, str) else password

    for row in table[1:]:
        if not isinstance(row, list) or len(row) <= width:
            continue
        if cell_text(row[email_idx]).lower() == wanted_email and cell_text(row[password_idx]) == wanted_password:
            try:
                permission = Permission(cell_text(row[permission_idx]))
            except ValueError:
                raise AuthorizationError("Invalid permission type") from None
            return AuthSession(email=wanted_email, permission=permission)

    raise AuthenticationError("Email ou mot de passe incorrect")


def admin_path(permission: Permission) -> str:
    return ADMIN_PATHS[Permission(permission)]


def can_access(session: Optional[AuthSession], required: Permission) -> bool:
    return bool(session and session.is_authenticated and session.permission == Permission(required))


def require_permission(session: Optional[AuthSession], required: Permission) -> AuthSession:
    if session is None or not session.is_authenticated:
        raise AuthenticationError("Vous devez vous connecter pour accéder à cette page.")
    if session.permission != Permission(required):
        raise AuthorizationError("Vous n'avez pas les permissions nécessaires pour accéder à cette page.")
    return session


# Apps Script upload targets and the permissions allowed to write to them.
UPLOAD_ACCESS: Dict[str, tuple] = {
    "pointage": (Permission.SUPERADMIN, Permission.POINTAGE),
    "presence": (Permission.SUPERADMIN, Permission.POINTAGE),
    "database": (Permission.LABOURAL,),
    "recruitment": (Permission.LABOURAL,),
    "temporary": (Permission.LABOURAL,),
    "turnover_form": (Permission.SUPERADMIN, Permission.LABOURAL),
}


def require_upload(session: Optional[AuthSession], target: str) -> AuthSession:
    """Guard one upload target; unknown targets are refused like missing rights."""
    if session is None or not session.is_authenticated:
        raise AuthenticationError("Vous devez vous connecter pour accéder à cette page.")
    if session.permission not in UPLOAD_ACCESS.get(target, ()):
        raise AuthorizationError("Vous n'avez pas les permissions nécessaires pour accéder à cette page.")
    return session


def allowed_uploads(session: Optional[AuthSession]) -> List[str]:
    if session is None or not session.is_authenticated:
        return []
    return [target for target, allowed in UPLOAD_ACCESS.items() if session.permission in allowed]
