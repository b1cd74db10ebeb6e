import logging
import time
import uuid

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)
from marketplace.models.user import User
from marketplace.schemas.user import ProfileUpdate, SignupRequest
from marketplace.services.notification_service import NotificationSender, notify
from marketplace.utils.hashing import sha256_text
from marketplace.utils.security import generate_token, hash_password, verify_password
from marketplace.utils.timestamps import utc_now
from marketplace.utils.validation import parse_attrs

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self):
        self._active_tokens: dict[str, tuple[str, float]] = {}  # token -> (user_id, expires_at)

    def _cleanup_expired(self):
        now = time.time()
        self._active_tokens = {
            t: entry for t, entry in self._active_tokens.items() if entry[1] > now
        }

    def _issue_token(self, user: User) -> dict:
        token = generate_token()
        self._active_tokens[token] = (user.id, time.time() + settings.session_ttl_seconds)
        return {"token": token, "expires_in_seconds": settings.session_ttl_seconds}

    def signup(self, db: Session, attrs: SignupRequest | dict) -> tuple[User, dict]:
        req = parse_attrs(SignupRequest, attrs)
        email = req.email.lower()
        if db.query(User).filter(User.email == email).first():
            raise ConflictError("User already exists with this email")

        now = utc_now()
        user = User(
            id=str(uuid.uuid4()),
            name=req.name,
            email=email,
            password_hash=hash_password(req.password),
            role=req.role,
            bio="",
            skills=[],
            profile_pic="",
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError("User already exists with this email") from exc
        db.refresh(user)
        logger.info("User %s signed up as %s", user.id, user.role)
        return user, self._issue_token(user)

    def login(self, db: Session, email: str, password: str, throttle_key: str = "login") -> tuple[User, dict]:
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            raise RateLimitedError("Too many failed attempts, try again later", retry_after_seconds=delay)

        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(user.password_hash, password):
            self._record_failed_attempt(db, throttle_key)
            raise AuthenticationError("Invalid credentials")

        self._reset_failed_attempts(db, throttle_key)
        return user, self._issue_token(user)

    def authenticate(self, db: Session, token: str) -> User:
        self._cleanup_expired()
        entry = self._active_tokens.get(token)
        if entry is None:
            raise AuthenticationError("Session is invalid or expired")
        user = db.query(User).filter(User.id == entry[0]).first()
        if not user:
            self._active_tokens.pop(token, None)
            raise AuthenticationError("Session is invalid or expired")
        return user

    def logout(self, token: str):
        self._active_tokens.pop(token, None)

    def logout_all(self):
        self._active_tokens.clear()

    def update_profile(self, db: Session, user: User, fields: ProfileUpdate | dict) -> User:
        req = parse_attrs(ProfileUpdate, fields)
        for key, value in req.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user, key, value)
        user.updated_at = utc_now()
        db.commit()
        db.refresh(user)
        return user

    def request_password_reset(self, db: Session, email: str, notifier: NotificationSender | None = None) -> None:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            raise NotFoundError("User not found with this email")

        reset_token = generate_token()
        user.reset_token_hash = sha256_text(reset_token)
        user.reset_token_expires_at = time.time() + settings.reset_token_ttl_seconds
        user.updated_at = utc_now()
        db.commit()

        reset_url = f"{settings.frontend_url}/reset-password/{reset_token}"
        notify(
            notifier,
            user.email,
            "Password Reset Request",
            f"Use the link below to reset your password:\n\n{reset_url}\n\nThis link will expire in 1 hour.",
        )

    def reset_password(self, db: Session, token: str, password: str) -> None:
        if len(password) < 6:
            raise ValidationError(
                "Password must be at least 6 characters",
                details=[{"field": "password", "message": "Password must be at least 6 characters"}],
            )
        user = (
            db.query(User)
            .filter(User.reset_token_hash == sha256_text(token))
            .filter(User.reset_token_expires_at > time.time())
            .first()
        )
        if not user:
            raise ValidationError("Invalid or expired reset token")

        user.password_hash = hash_password(password)
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        user.updated_at = utc_now()
        db.commit()
        # Existing sessions belong to the old password.
        self._active_tokens = {
            t: entry for t, entry in self._active_tokens.items() if entry[0] != user.id
        }

    def _get_throttle_delay(self, db: Session, key: str) -> float:
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if not row:
            return 0
        failed_attempts = int(row[0])
        last_failed_at = float(row[1])

        if failed_attempts < 3:
            return 0
        if failed_attempts < 5:
            delay = 5.0
        elif failed_attempts < 10:
            delay = 30.0
        else:
            delay = 300.0
        elapsed = time.time() - last_failed_at
        remaining = delay - elapsed
        return max(0, remaining)

    def _record_failed_attempt(self, db: Session, key: str):
        now = time.time()
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 1, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = failed_attempts + 1,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": now},
        )
        db.commit()

    def _reset_failed_attempts(self, db: Session, key: str):
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 0, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = 0,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": time.time()},
        )
        db.commit()


account_service = AccountService()
