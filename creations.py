"""
AI creations the pastor chose to keep: event ideas and sermon outlines.
"""

import logging
from typing import Any, List, Mapping

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

import views
from database import SAVED_EVENT_IDEAS, SAVED_SERMON_OUTLINES, Database, parse_object_id, utc_now_iso
from schemas import (
    ActionResult,
    EventIdeaForm,
    SavedEventIdea,
    SavedEventIdeaRecord,
    SavedSermonOutline,
    SavedSermonOutlineRecord,
    SermonOutlineForm,
    to_view,
    validate,
)
from views import ViewCache

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred."


def save_event_idea(db: Database, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(EventIdeaForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    try:
        db.create_document(
            SAVED_EVENT_IDEAS,
            SavedEventIdeaRecord(title=form.title, description=form.description, created_at=utc_now_iso()),
        )
    except PyMongoError:
        logger.exception("Error saving event idea")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    cache.revalidate(views.PASTOR_CREATIONS)
    return ActionResult(success=True, message="Event idea saved successfully!")


def save_sermon_outline(db: Database, cache: ViewCache, raw: Mapping[str, Any]) -> ActionResult:
    form, errors = validate(SermonOutlineForm, raw)
    if errors:
        return ActionResult(success=False, message="Please correct the errors and try again.", errors=errors)

    try:
        db.create_document(
            SAVED_SERMON_OUTLINES,
            SavedSermonOutlineRecord(sermon_title=form.sermon_title, outline=form.outline, created_at=utc_now_iso()),
        )
    except PyMongoError:
        logger.exception("Error saving sermon outline")
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    cache.revalidate(views.PASTOR_CREATIONS)
    return ActionResult(success=True, message="Sermon outline saved successfully!")


def fetch_saved_event_ideas(db: Database) -> List[SavedEventIdea]:
    docs = db.get_documents(SAVED_EVENT_IDEAS, sort=[("created_at", DESCENDING)])
    return [idea for idea in (to_view(SavedEventIdea, doc) for doc in docs) if idea]


def list_saved_event_ideas(db: Database) -> List[SavedEventIdea]:
    try:
        return fetch_saved_event_ideas(db)
    except PyMongoError:
        logger.exception("Failed to fetch saved event ideas")
        return []


def fetch_saved_sermon_outlines(db: Database) -> List[SavedSermonOutline]:
    docs = db.get_documents(SAVED_SERMON_OUTLINES, sort=[("created_at", DESCENDING)])
    return [sermon for sermon in (to_view(SavedSermonOutline, doc) for doc in docs) if sermon]


def list_saved_sermon_outlines(db: Database) -> List[SavedSermonOutline]:
    try:
        return fetch_saved_sermon_outlines(db)
    except PyMongoError:
        logger.exception("Failed to fetch saved sermon outlines")
        return []


def _delete(db: Database, cache: ViewCache, collection: str, item_id: str, label: str) -> ActionResult:
    oid = parse_object_id(item_id)
    if oid is None:
        return ActionResult(success=False, message=f"Invalid {label} ID.")
    try:
        result = db[collection].delete_one({"_id": oid})
    except PyMongoError:
        logger.exception("Delete saved %s error", label)
        return ActionResult(success=False, message=UNEXPECTED_ERROR)

    if result.deleted_count == 0:
        return ActionResult(success=False, message=f"Could not find {label} to delete.")

    cache.revalidate(views.PASTOR_CREATIONS)
    return ActionResult(success=True, message=f"Saved {label} deleted.")


def delete_saved_event_idea(db: Database, cache: ViewCache, idea_id: str) -> ActionResult:
    return _delete(db, cache, SAVED_EVENT_IDEAS, idea_id, "idea")


def delete_saved_sermon_outline(db: Database, cache: ViewCache, sermon_id: str) -> ActionResult:
    return _delete(db, cache, SAVED_SERMON_OUTLINES, sermon_id, "sermon")
