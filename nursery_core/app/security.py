"""
Security Module for the Nursery Dashboard
=========================================
- Secret key management
- Password hashing and policy
- Signed access tokens
- Role-based access control with fine-grained permissions
- Login rate limiting
"""

import hashlib
import logging
import os
import re
import secrets
import warnings
from datetime import datetime, timedelta
from typing import Optional, List, Set

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError, jwt

logger = logging.getLogger("nursery_core.security")


# =============================================================================
# CONFIGURATION - Secure Defaults
# =============================================================================

def get_secret_key() -> str:
    """
    Get secret key from environment with validation.
    NEVER use a default secret key in production!
    """
    secret = os.getenv("NURSERY_SECRET_KEY")

    if not secret:
        env = os.getenv("ENVIRONMENT", "development")
        if env == "production":
            raise RuntimeError(
                "CRITICAL: NURSERY_SECRET_KEY environment variable must be set in production! "
                "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
            )
        warnings.warn(
            "Using a development secret key. Set NURSERY_SECRET_KEY for production!",
            RuntimeWarning
        )
        # Deterministic in development so tokens survive a hot-reload
        secret = hashlib.sha256(b"nursery-dev-mode-insecure-key").hexdigest()

    if len(secret) < 32:
        raise RuntimeError("NURSERY_SECRET_KEY must be at least 32 characters")

    return secret


SECRET_KEY = get_secret_key()
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("TOKEN_EXPIRE_MINUTES", "60"))


# =============================================================================
# PASSWORD SECURITY
# =============================================================================

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 72  # bcrypt only looks at the first 72 bytes


class PasswordPolicy:
    """Password strength validation"""

    @staticmethod
    def validate(password: str) -> tuple[bool, List[str]]:
        """
        Validate password against security policy.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        if len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        if len(password.encode("utf-8")) > MAX_PASSWORD_LENGTH:
            errors.append(f"Password must not exceed {MAX_PASSWORD_LENGTH} bytes")

        if not re.search(r'[A-Za-z]', password):
            errors.append("Password must contain at least one letter")

        if not re.search(r'\d', password):
            errors.append("Password must contain at least one digit")

        common_passwords = {'password', 'password123', '12345678', 'qwerty123'}
        if password.lower() in common_passwords:
            errors.append("Password is too common")

        return len(errors) == 0, errors


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # malformed hash or over-long password
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=12)).decode('utf-8')


# =============================================================================
# TOKEN MANAGEMENT
# =============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed access token carrying a unique id for revocation"""
    to_encode = data.copy()

    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
        "type": "access"
    })

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a token. Returns None when invalid or expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload


# =============================================================================
# ROLE-BASED ACCESS CONTROL (RBAC)
# =============================================================================

class Permission:
    """Fine-grained permissions for nursery operations"""

    SEEDLING_VIEW = "seedling:view"
    SEEDLING_CREATE = "seedling:create"
    SEEDLING_UPDATE = "seedling:update"
    SEEDLING_DELETE = "seedling:delete"

    BATCH_VIEW = "batch:view"
    BATCH_CREATE = "batch:create"

    ZONE_VIEW = "zone:view"
    ZONE_CREATE = "zone:create"

    PARTNER_VIEW = "partner:view"
    PARTNER_CREATE = "partner:create"
    PARTNER_UPDATE = "partner:update"
    PARTNER_DELETE = "partner:delete"

    LOG_VIEW = "log:view"
    LOG_CREATE = "log:create"

    REQUEST_VIEW = "request:view"
    REQUEST_CREATE = "request:create"
    REQUEST_APPROVE = "request:approve"
    REQUEST_DELETE = "request:delete"

    STATUS_UPDATE = "status:update"

    REPORT_VIEW = "report:view"
    REPORT_EXPORT = "report:export"

    USER_CREATE = "user:create"


_VIEW_PERMISSIONS = {
    Permission.SEEDLING_VIEW, Permission.BATCH_VIEW, Permission.ZONE_VIEW,
    Permission.PARTNER_VIEW, Permission.LOG_VIEW, Permission.REQUEST_VIEW,
    Permission.REPORT_VIEW,
}

ROLE_PERMISSIONS: dict[str, Set[str]] = {
    "Admin": _VIEW_PERMISSIONS | {
        Permission.SEEDLING_CREATE, Permission.SEEDLING_UPDATE, Permission.SEEDLING_DELETE,
        Permission.BATCH_CREATE, Permission.ZONE_CREATE,
        Permission.PARTNER_CREATE, Permission.PARTNER_UPDATE, Permission.PARTNER_DELETE,
        Permission.LOG_CREATE,
        Permission.REQUEST_CREATE, Permission.REQUEST_APPROVE, Permission.REQUEST_DELETE,
        Permission.STATUS_UPDATE,
        Permission.REPORT_EXPORT,
        Permission.USER_CREATE,
    },

    "Staff": _VIEW_PERMISSIONS | {
        Permission.SEEDLING_CREATE, Permission.SEEDLING_UPDATE,
        Permission.BATCH_CREATE, Permission.ZONE_CREATE,
        Permission.PARTNER_CREATE, Permission.PARTNER_UPDATE,
        Permission.LOG_CREATE,
        Permission.REQUEST_CREATE,
        Permission.REPORT_EXPORT,
    },

    "Viewer": set(_VIEW_PERMISSIONS),
}

ROLES = tuple(ROLE_PERMISSIONS)


def get_role_permissions(role: str) -> Set[str]:
    """Get permissions for a role"""
    return ROLE_PERMISSIONS.get(role, set())


def check_permissions(role: str, required_permissions: tuple) -> None:
    """Raise 403 when the role lacks any of the required permissions"""
    missing = set(required_permissions) - get_role_permissions(role)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permissions: {', '.join(sorted(missing))}"
        )


# =============================================================================
# RATE LIMITING
# =============================================================================

class RateLimiter:
    """
    Simple in-memory rate limiter for login attempts.
    Per-process only; run behind a shared limiter when scaled out.
    """

    _attempts: dict[str, List[datetime]] = {}

    @classmethod
    def check_rate_limit(
        cls,
        key: str,
        max_attempts: int = 5,
        window_seconds: int = 300
    ) -> tuple[bool, int]:
        """
        Check if action is rate limited.

        Returns:
            (is_allowed, remaining_attempts)
        """
        now = datetime.utcnow()
        window_start = now - timedelta(seconds=window_seconds)

        recent = [t for t in cls._attempts.get(key, []) if t > window_start]
        if not recent:
            # keys with no attempts in the window are dropped
            cls._attempts.pop(key, None)
            return True, max_attempts
        cls._attempts[key] = recent

        attempts = len(recent)
        remaining = max(0, max_attempts - attempts)

        if attempts >= max_attempts:
            logger.warning("Rate limit reached for %s", key)
            return False, 0

        return True, remaining

    @classmethod
    def record_attempt(cls, key: str):
        cls._attempts.setdefault(key, []).append(datetime.utcnow())

    @classmethod
    def reset(cls, key: str):
        cls._attempts.pop(key, None)


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def sanitize_input(value):
    """Strip null bytes and surrounding whitespace from user text"""
    if not isinstance(value, str):
        return value
    return value.replace('\x00', '').strip()
