"""
Users and the team roster.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

import views
from database import TEAM_MEMBERS, USERS, Database, parse_object_id
from schemas import (
    ActionResult,
    ProfilePictureForm,
    TeamMember,
    TeamMemberForm,
    TeamMemberRecord,
    User,
    to_view,
    validate,
)
from views import ViewCache

logger = logging.getLogger(__name__)


def _avatar(doc: Mapping[str, Any], size: int = 40) -> str:
    if doc.get("image_url"):
        return doc["image_url"]
    initial = (doc.get("name") or "?")[:1].upper()
    return f"https://placehold.co/{size}x{size}.png?text={initial}"


def _user_view(doc: Mapping[str, Any], size: int = 40) -> Optional[User]:
    return to_view(User, doc, image_url=_avatar(doc, size), phone=doc.get("phone") or "N/A")


# -----------------------------
# Users
# -----------------------------
def fetch_users(db: Database) -> List[User]:
    """All members, newest first. The pastor is not listed."""
    docs = db.get_documents(USERS, {"role": {"$ne": "pastor"}}, sort=[("joined_at", DESCENDING)])
    return [user for user in map(_user_view, docs) if user]


def list_users(db: Database) -> List[User]:
    try:
        return fetch_users(db)
    except PyMongoError:
        logger.exception("Failed to fetch users")
        return []


def get_pastor(db: Database) -> Optional[User]:
    try:
        doc = db[USERS].find_one({"role": "pastor"}, sort=[("_id", ASCENDING)])
    except PyMongoError:
        logger.exception("Failed to fetch pastor")
        return None
    return _user_view(doc) if doc else None


def get_user_by_id(db: Database, user_id: str) -> Optional[User]:
    """Look a user up by email or by id. Returns None when nobody matches."""
    if not user_id:
        return None
    if "@" in user_id:
        query: Dict[str, Any] = {"email": user_id.lower()}
    else:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        query = {"_id": oid}
    try:
        doc = db[USERS].find_one(query)
    except PyMongoError:
        logger.exception("Failed to fetch user %s", user_id)
        return None
    return _user_view(doc, size=128) if doc else None


def update_user_profile_picture(db: Database, cache: ViewCache, user_id: str, raw: Mapping[str, Any]) -> ActionResult:
    """Set the avatar, or clear it when no image URL is given."""
    form, errors = validate(ProfilePictureForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    oid = parse_object_id(user_id)
    if oid is None:
        return ActionResult(success=False, message="Invalid user ID.")

    if form.image_url:
        update = {"$set": {"image_url": str(form.image_url)}}
    else:
        update = {"$unset": {"image_url": ""}}
    try:
        result = db[USERS].update_one({"_id": oid}, update)
    except PyMongoError:
        logger.exception("Update profile picture error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    if result.matched_count == 0:
        return ActionResult(success=False, message="Could not find the user to update.")

    cache.revalidate(views.MEMBER_DASHBOARD, views.PASTOR_DASHBOARD, views.PASTOR_MEMBERS)
    return ActionResult(success=True, message="Profile picture updated successfully!")


def delete_user(db: Database, cache: ViewCache, user_id: str) -> ActionResult:
    oid = parse_object_id(user_id)
    if oid is None:
        return ActionResult(success=False, message="Invalid user ID.")
    try:
        result = db[USERS].delete_one({"_id": oid})
    except PyMongoError:
        logger.exception("Delete user error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    if result.deleted_count == 0:
        return ActionResult(success=False, message="Could not find user to delete.")

    cache.revalidate(views.PASTOR_DASHBOARD, views.PASTOR_MEMBERS, views.PASTOR_CONTRIBUTIONS)
    return ActionResult(success=True, message="User deleted successfully.")


# -----------------------------
# Team
# -----------------------------
def save_team_member(db: Database, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    """Update the member named by `id`, or add a new one when no valid id is given."""
    form, errors = validate(TeamMemberForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    record = TeamMemberRecord(name=form.name, position=form.position, image_url=str(form.image_url))
    oid = parse_object_id(form.id)
    try:
        if oid is not None:
            result = db[TEAM_MEMBERS].update_one({"_id": oid}, {"$set": record.model_dump()})
            if result.matched_count == 0:
                return ActionResult(success=False, message="Could not find team member to update.")
        else:
            db.create_document(TEAM_MEMBERS, record)
    except PyMongoError:
        logger.exception("Team member save error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    cache.revalidate(views.PASTOR_MEMBERS, views.HOME)
    return ActionResult(success=True, message=f"Team member {'updated' if oid is not None else 'added'} successfully!")


def fetch_team_members(db: Database) -> List[TeamMember]:
    docs = db.get_documents(TEAM_MEMBERS, sort=[("name", ASCENDING)])
    return [member for member in (to_view(TeamMember, doc) for doc in docs) if member]


def list_team_members(db: Database) -> List[TeamMember]:
    try:
        return fetch_team_members(db)
    except PyMongoError:
        logger.exception("Failed to fetch team members")
        return []


def delete_team_member(db: Database, cache: ViewCache, member_id: str) -> ActionResult:
    oid = parse_object_id(member_id)
    if oid is None:
        return ActionResult(success=False, message="Invalid team member ID.")
    try:
        result = db[TEAM_MEMBERS].delete_one({"_id": oid})
    except PyMongoError:
        logger.exception("Delete team member error")
        return ActionResult(success=False, message="An unexpected error occurred.")

    if result.deleted_count == 0:
        return ActionResult(success=False, message="Could not find team member to delete.")

    cache.revalidate(views.PASTOR_MEMBERS, views.HOME)
    return ActionResult(success=True, message="Team member deleted successfully.")
