"""FastAPI dependencies: database access, authentication and clients."""

from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import sessionmaker

from neeko_stats.access import is_admin, is_premium, user_by_token
from neeko_stats.config import settings
from neeko_stats.db.session import SessionLocal, session_scope
from neeko_stats.ingestion.sheets import SheetsClient
from neeko_stats.insights.gateway import AIGateway
from neeko_stats.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller, detached from any session."""

    id: int
    email: str
    premium: bool
    admin: bool


def get_session_factory() -> sessionmaker:
    return SessionLocal


def _bearer_token(authorization: str) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return authorization.strip()


def get_optional_user(
    authorization: Optional[str] = Header(None),
    factory: sessionmaker = Depends(get_session_factory),
) -> Optional[CurrentUser]:
    """Resolve the bearer token if one was sent; anonymous callers get None."""
    if not authorization:
        return None

    with session_scope(factory) as session:
        user = user_by_token(session, _bearer_token(authorization))
        current = None
        if user is not None:
            current = CurrentUser(
                id=user.id,
                email=user.email,
                premium=is_premium(session, user.id),
                admin=is_admin(session, user.id),
            )

    if current is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return current


def get_current_user(user: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.admin:
        raise HTTPException(status_code=403, detail="Forbidden: Admin access required")
    return user


def get_gateway() -> Iterator[AIGateway]:
    gateway = AIGateway.from_settings()
    try:
        yield gateway
    finally:
        gateway.close()


def get_sheet_fetcher() -> Iterator[Callable[[str], str]]:
    client = SheetsClient()
    try:
        yield client.fetch_csv
    finally:
        client.close()


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """Reject scheduled-job calls without the shared secret, when one is set."""
    if settings.cron_secret and x_cron_secret != settings.cron_secret:
        logger.warning("Invalid CRON secret provided")
        raise HTTPException(status_code=401, detail="Unauthorized")
