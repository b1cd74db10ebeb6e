from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.errors import AuthenticationError, AuthorizationError
from marketplace.models.user import User
from marketplace.services.account_service import account_service
from marketplace.services.gateway import PaymentGateway, build_gateway
from marketplace.services.notification_service import NotificationSender, build_sender


def _bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing bearer token")
    return authorization[7:]


async def get_current_token(authorization: str | None = Header(None)) -> str:
    return _bearer_token(authorization)


async def get_current_user(
    token: str = Depends(get_current_token),
    db: Session = Depends(get_db),
) -> User:
    return account_service.authenticate(db, token)


def require_role(role: str):
    async def _require_role(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise AuthorizationError(f"This action requires the {role} role")
        return user

    return _require_role


@lru_cache
def get_gateway() -> PaymentGateway:
    return build_gateway()


@lru_cache
def get_notifier() -> NotificationSender:
    return build_sender()
