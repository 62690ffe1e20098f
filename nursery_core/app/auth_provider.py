"""
Auth provider: sign-in, sign-out, current-user lookup and auth-state events.

One AuthProvider instance lives on `app.state.auth` and reaches handlers via
the `get_auth` dependency. Listeners registered with on_auth_state_change()
receive (event, user) and must call unsubscribe() on the returned
Subscription when their owner shuts down.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .security import create_access_token, decode_token, verify_password
from .store import NurseryError

logger = logging.getLogger("nursery_core.auth")


class AuthError(NurseryError):
    """Raised when credentials or tokens are rejected"""
    pass


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


AuthListener = Callable[[AuthEvent, Optional[models.User]], None]


@dataclass
class AuthSession:
    access_token: str
    user: models.User
    token_type: str = "bearer"


@dataclass(eq=False)
class Subscription:
    callback: AuthListener
    _provider: "AuthProvider" = field(repr=False)
    active: bool = True

    def unsubscribe(self) -> None:
        if self.active:
            self._provider._remove(self)
            self.active = False


class AuthProvider:

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    # -------------------------------------------------------------------------
    # subscriptions
    # -------------------------------------------------------------------------

    def on_auth_state_change(self, callback: AuthListener) -> Subscription:
        subscription = Subscription(callback=callback, _provider=self)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def listener_count(self) -> int:
        return len(self._subscriptions)

    def _emit(self, event: AuthEvent, user: Optional[models.User]) -> None:
        for subscription in list(self._subscriptions):
            try:
                subscription.callback(event, user)
            except Exception:
                # a broken listener must not undo a completed sign-in/out
                logger.exception("Auth listener failed on %s", event.value)

    # -------------------------------------------------------------------------
    # operations
    # -------------------------------------------------------------------------

    def sign_in(self, db: Session, email: str, password: str) -> AuthSession:
        user = db.query(models.User).filter(models.User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.password_hash):
            raise AuthError("Incorrect email or password")
        if not user.is_active:
            raise AuthError("User account is disabled")

        token = create_access_token({"sub": str(user.id), "role": user.role})
        logger.info("User %s signed in", user.email)
        self._emit(AuthEvent.SIGNED_IN, user)
        return AuthSession(access_token=token, user=user)

    def sign_out(self, db: Session, token: str) -> None:
        payload = decode_token(token)
        if not payload:
            raise AuthError("Invalid token")
        user = self.get_current_user(db, token)

        db.add(models.RevokedToken(jti=payload["jti"]))
        try:
            db.commit()
        except IntegrityError:
            # already signed out with this token
            db.rollback()
        self._emit(AuthEvent.SIGNED_OUT, user)

    def get_current_user(self, db: Session, token: Optional[str]) -> Optional[models.User]:
        if not token:
            return None
        payload = decode_token(token)
        if not payload or payload.get("sub") is None:
            return None

        revoked = db.query(models.RevokedToken).filter(models.RevokedToken.jti == payload.get("jti")).first()
        if revoked:
            return None

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            return None
        user = db.query(models.User).filter(models.User.id == user_id).first()
        if user is None or not user.is_active:
            return None
        return user
