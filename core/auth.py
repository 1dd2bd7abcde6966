"""Bearer-token identity and access guards.

Tokens are HS256 JWTs whose `sub` claim is the user id and whose `role`
claim is `user` or `admin`. Token issuance flows (login/refresh) live
elsewhere; `create_access_token` is kept for tooling and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from core import config
from core.exceptions import ForbiddenError, NotFoundError, SubscriptionRequiredError, UnauthorizedError
from core.logger import get_logger
from database import models
from database.deps import get_db_read

logger = get_logger("core.auth")

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str = "user"
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(user_id: int, role: str = "user", email: Optional[str] = None,
                        expires_minutes: int = config.JWT_EXPIRATION_MINUTES) -> str:
    """Create a signed access token for `user_id`."""
    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": datetime.utcnow() + timedelta(minutes=expires_minutes),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Identity:
    """Verify `token` and return the identity it carries.

    Raises:
        UnauthorizedError: If the token is expired, malformed or has no subject.
    """
    try:
        payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token")

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token")
    return Identity(user_id=user_id, role=payload.get("role") or "user", email=payload.get("email"))


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Identity:
    if credentials is None:
        raise UnauthorizedError("Unauthorized: No token provided")
    return decode_access_token(credentials.credentials)


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Identity]:
    """Identity when a valid token is presented, otherwise None."""
    if credentials is None:
        return None
    try:
        return decode_access_token(credentials.credentials)
    except UnauthorizedError:
        return None


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise ForbiddenError("Forbidden: Admin only")
    return identity


def check_subscription(user: models.User, now: Optional[datetime] = None) -> None:
    """Raise unless `user` holds a subscription that has not ended.

    Raises:
        SubscriptionRequiredError: `SUBSCRIPTION_REQUIRED` when there is no
            end date, `SUBSCRIPTION_EXPIRED` when it has passed or the
            status is `expired`.
    """
    end_date = user.subscription_end_date
    if end_date is None:
        raise SubscriptionRequiredError("No active subscription", code="SUBSCRIPTION_REQUIRED")
    now = now or datetime.utcnow()
    if now > end_date or user.subscription_status == "expired":
        raise SubscriptionRequiredError(
            "Subscription has expired",
            code="SUBSCRIPTION_EXPIRED",
            details={"expired_on": end_date.isoformat()},
        )


def require_active_subscription(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db_read),
) -> Identity:
    """Admins pass; other identities need a live subscription."""
    if identity.is_admin:
        return identity
    user = db.get(models.User, identity.user_id)
    if user is None:
        raise NotFoundError("User", identity.user_id)
    check_subscription(user)
    return identity
