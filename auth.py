"""
Authentication actions: signup, role-gated login and password reset.

Reset tokens move Requested -> TokenIssued(expiry = now + 1h) -> Redeemed or
Expired. Callers never learn whether an email exists or why a token failed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

import views
from database import USERS, Database, parse_object_id, utc_now_iso
from schemas import (
    ActionResult,
    ForgotPasswordForm,
    LoginForm,
    LoginResult,
    ResetPasswordForm,
    SignupForm,
    UserRecord,
    validate,
)
from security import create_access_token, decode_access_token, get_password_hash, new_reset_token, verify_password
from settings import Settings
from views import ViewCache

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)

UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."
INVALID_CREDENTIALS = "Invalid credentials provided."
RESET_REQUESTED = "If an account with this email exists, a password reset link has been sent."
RESET_LINK_INVALID = "This password reset link is invalid or has expired."
ACCOUNT_EXISTS = "An account with this email already exists."


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # BSON datetimes come back naive but are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def signup(db: Database, settings: Settings, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(SignupForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    email = form.email.lower()
    role = "pastor" if settings.pastor_email and email == settings.pastor_email else "member"

    try:
        users = db[USERS]
        if users.find_one({"email": email}):
            return ActionResult(success=False, message=ACCOUNT_EXISTS)

        record = UserRecord(
            name=form.name,
            email=email,
            phone=form.phone,
            role=role,
            password_hash=get_password_hash(form.password),
            joined_at=utc_now_iso(),
        )
        # The unique index on email settles concurrent signups that both pass the check above.
        users.insert_one(record.model_dump(exclude_none=True))
    except DuplicateKeyError:
        return ActionResult(success=False, message=ACCOUNT_EXISTS)
    except PyMongoError:
        logger.exception("Signup error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    cache.revalidate(views.PASTOR_DASHBOARD, views.PASTOR_MEMBERS)
    logger.info("New %s account created for %s", role, email)
    return ActionResult(success=True, message="Account created successfully! You can now log in.")


def login(db: Database, settings: Settings, raw: Mapping[str, Any]) -> LoginResult:
    form, errors = validate(LoginForm, raw)
    if errors:
        return LoginResult(success=False, message="Please correct the errors and try again.", errors=errors)

    try:
        user = db[USERS].find_one(
            {"$or": [{"email": form.identifier.lower()}, {"name": form.identifier}]},
            sort=[("_id", ASCENDING)],
        )
    except PyMongoError:
        logger.exception("Login error")
        return LoginResult(success=False, message=UNEXPECTED_ERROR)

    if not user or not verify_password(form.password, user.get("password_hash", "")):
        return LoginResult(success=False, message=INVALID_CREDENTIALS)

    # A role-specific login form only admits users holding that role.
    if form.role and user.get("role") != form.role:
        logger.warning("Login for %s rejected: role %s required", user.get("email"), form.role)
        return LoginResult(success=False, message="Login failed. You do not have the required role.")

    token = create_access_token(settings, {"sub": str(user["_id"]), "role": user.get("role")})
    return LoginResult(success=True, role=user.get("role"), email=user.get("email"), access_token=token)


def request_password_reset(db: Database, settings: Settings, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(ForgotPasswordForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    email = form.email.lower()
    try:
        user = db[USERS].find_one({"email": email})
        if user:
            token = new_reset_token()
            db[USERS].update_one(
                {"_id": user["_id"]},
                {"$set": {"reset_token": token, "reset_token_expiry": _now() + RESET_TOKEN_TTL}},
            )
            # No mail transport: the link is only written to the server log.
            logger.info("Password reset link for %s: %s/reset-password?token=%s", email, settings.base_url, token)
    except PyMongoError:
        logger.exception("Password reset request error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    return ActionResult(success=True, message=RESET_REQUESTED)


def reset_password(db: Database, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(ResetPasswordForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    try:
        user = db[USERS].find_one({"reset_token": form.token})
        expiry = user.get("reset_token_expiry") if user else None
        if not user or not isinstance(expiry, datetime) or _as_utc(expiry) <= _now():
            return ActionResult(success=False, message=RESET_LINK_INVALID)

        result = db[USERS].update_one(
            {"_id": user["_id"], "reset_token": form.token},
            {
                "$set": {"password_hash": get_password_hash(form.password)},
                "$unset": {"reset_token": "", "reset_token_expiry": ""},
            },
        )
        if result.matched_count == 0:
            return ActionResult(success=False, message=RESET_LINK_INVALID)
    except PyMongoError:
        logger.exception("Password reset error")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    logger.info("Password reset completed for %s", user.get("email"))
    return ActionResult(success=True, message="Your password has been reset successfully. You can now log in.")


def get_user_for_token(db: Database, settings: Settings, token: str) -> Optional[Dict[str, Any]]:
    """Resolve a bearer token to its stored user document, or None."""
    payload = decode_access_token(settings, token)
    if not payload:
        return None
    user_id = parse_object_id(payload.get("sub"))
    if user_id is None:
        return None
    return db[USERS].find_one({"_id": user_id})
