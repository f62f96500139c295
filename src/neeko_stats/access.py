"""Users, roles and freemium gating."""

import secrets
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from neeko_stats.config import settings
from neeko_stats.db.models import User, UserRole

ADMIN_ROLE = "admin"
PREMIUM_ROLE = "premium"

# Keys left visible on a locked table row
_LOCKED_ROW_KEYS = ("player_id", "name", "team", "position")


def has_role(session: Session, user_id: Optional[int], role: str) -> bool:
    if user_id is None:
        return False
    return (
        session.query(UserRole.id).filter_by(user_id=user_id, role=role).first() is not None
    )


def is_premium(session: Session, user_id: Optional[int]) -> bool:
    return has_role(session, user_id, PREMIUM_ROLE)


def is_admin(session: Session, user_id: Optional[int]) -> bool:
    return has_role(session, user_id, ADMIN_ROLE)


def set_role(session: Session, user_id: int, role: str, granted: bool) -> None:
    """Add or remove a role row; both directions are idempotent."""
    existing = session.query(UserRole).filter_by(user_id=user_id, role=role).first()
    if granted and existing is None:
        session.add(UserRole(user_id=user_id, role=role))
    elif not granted and existing is not None:
        session.delete(existing)
    session.flush()


def user_by_token(session: Session, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    return session.query(User).filter_by(api_token=token).first()


def gate_rows(rows: Iterable[dict], premium: bool, free_rows: Optional[int] = None) -> List[dict]:
    """Mark rows past the free limit as locked and strip their metrics.

    Premium users get every row unlocked.
    """
    limit = settings.free_table_rows if free_rows is None else free_rows
    gated = []
    for index, row in enumerate(rows):
        if premium or index < limit:
            gated.append({**row, "locked": False})
        else:
            gated.append({**{k: row.get(k) for k in _LOCKED_ROW_KEYS}, "locked": True})
    return gated


def gate_analysis(records: Iterable[dict], premium: bool) -> List[dict]:
    """Hide premium AI blurbs from free users."""
    gated = []
    for record in records:
        if record.get("is_premium") and not premium:
            gated.append(
                {
                    **record,
                    "explanation": None,
                    "sparkline_data": [],
                    "stat_value": None,
                    "locked": True,
                }
            )
        else:
            gated.append({**record, "locked": False})
    return gated


def create_user(
    session: Session,
    email: str,
    roles: Iterable[str] = (),
    display_name: Optional[str] = None,
    api_token: Optional[str] = None,
) -> User:
    """Insert a user with a fresh API token (or ``api_token`` if given)."""
    user = User(
        email=email,
        display_name=display_name,
        api_token=api_token or secrets.token_urlsafe(32),
    )
    session.add(user)
    session.flush()
    for role in roles:
        set_role(session, user.id, role, True)
    return user
