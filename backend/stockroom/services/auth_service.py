# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Accounts and their profiles are created together: registering an account
always yields a staff profile that is active, mirroring the
"profile on signup" contract of the identity layer.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, Profile, ROLE_STAFF, ROLES
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError

DEFAULT_PROFILE_NAME = "User"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is constant-time. A malformed stored hash verifies False.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    if email is not None and not isinstance(email, str):
        raise ValidationError("A valid email address is required")
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required")
    return email


def register_user(
    email: str,
    password: str,
    name: str | None = None,
    role: str = ROLE_STAFF,
) -> User:
    """
    Create an account and its profile in one transaction.

    Self-registration always uses role=staff; the CLI may pass role=admin to
    bootstrap the first administrator.

    Raises ValidationError for bad input, ConflictError for a taken email.
    """
    email = normalize_email(email)
    if role not in ROLES:
        raise ValidationError("role must be admin or staff")

    if name is not None and not isinstance(name, str):
        raise ValidationError("name must be a string")
    display_name = (name or "").strip() or DEFAULT_PROFILE_NAME
    if len(display_name) > 255:
        raise ValidationError("name exceeds max length 255")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("An account with this email already exists")

    user = User(email=email, password_hash=hash_password(password))
    user.profile = Profile(name=display_name, role=role, is_active=True)

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("An account with this email already exists")

    current_app.logger.info("Registered account id=%s role=%s", user.id, role)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate by email and password.

    Returns the account on success, None otherwise. Inactive profiles may
    still sign in; they are limited to reads.
    """
    if not isinstance(email, str) or not isinstance(password, str):
        return None
    email = (email or "").strip().lower()
    user = db.session.query(User).filter_by(email=email).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
